#!/usr/bin/env python3
"""
Create a clinic (if its slug is new) and an admin staff user for it.

Usage:
    python scripts/create_staff_user.py smile-dental "Smile Dental" admin@smile.test 's3cret-pass'
"""

import argparse
import asyncio

from sqlalchemy import insert, select

from app.database import AsyncSessionLocal, engine
from app.models import clinics
from app.schemas.auth import StaffUserCreate
from app.services.auth_service import AuthService


async def create(slug: str, name: str, email: str, password: str, role: str) -> None:
    """Insert the clinic when missing, then the staff user."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(clinics.c.id).where(clinics.c.slug == slug))
        clinic_id = result.scalar()
        if clinic_id is None:
            result = await db.execute(
                insert(clinics).values(slug=slug, name=name).returning(clinics.c.id)
            )
            clinic_id = result.scalar_one()
            await db.commit()
            print(f"✓ Created clinic {slug} ({clinic_id})")

        user = await AuthService(db).create_staff_user(
            clinic_id,
            StaffUserCreate(email=email, password=password, role=role),
        )
        print(f"✓ Created {role} {user['email']} ({user['id']})")

    await engine.dispose()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Create a clinic admin")
    parser.add_argument("slug", help="Clinic slug used by the public booking page")
    parser.add_argument("name", help="Clinic display name")
    parser.add_argument("email", help="Staff email")
    parser.add_argument("password", help="Staff password (min 8 characters)")
    parser.add_argument(
        "--role",
        default="admin",
        choices=["admin", "reception", "practitioner"],
        help="Staff role (default: admin)",
    )
    args = parser.parse_args()
    asyncio.run(create(args.slug, args.name, args.email, args.password, args.role))


if __name__ == "__main__":
    main()
