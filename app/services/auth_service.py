"""Authentication service for staff logins and JWTs."""

from datetime import UTC, datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ConflictException, UnauthorizedException
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)
from app.models.users import users
from app.schemas.auth import StaffUserCreate, Token

logger = structlog.get_logger(__name__)


class AuthService:
    """Authentication service for handling staff credentials and JWT operations."""

    def __init__(self, db: AsyncSession):
        """Initialize auth service with database session."""
        self.db = db

    async def get_user_by_id(self, user_id: UUID) -> dict | None:
        """Get staff user by ID."""
        result = await self.db.execute(select(users).where(users.c.id == user_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def get_user_by_email(self, email: str) -> dict | None:
        """Get staff user by email (case-insensitive)."""
        result = await self.db.execute(select(users).where(users.c.email == email.strip().lower()))
        row = result.mappings().first()
        return dict(row) if row else None

    async def authenticate(self, email: str, password: str) -> tuple[dict, Token]:
        """
        Check credentials and issue a token pair.

        Args:
            email: Staff email
            password: Plain password

        Returns:
            Tuple of (user dict, token pair)

        Raises:
            UnauthorizedException: If the credentials are wrong or the account is inactive
        """
        user = await self.get_user_by_email(email)
        if not user or not verify_password(password, user["password_hash"]):
            logger.info("login_failed", email=email)
            raise UnauthorizedException("Incorrect email or password")
        if not user["is_active"]:
            raise UnauthorizedException("User account is deactivated")

        now = datetime.now(UTC)
        await self.db.execute(
            update(users).where(users.c.id == user["id"]).values(last_login_at=now)
        )
        await self.db.commit()
        user["last_login_at"] = now

        logger.info("login_succeeded", user_id=str(user["id"]), clinic_id=str(user["clinic_id"]))
        return user, self.create_tokens(user)

    def create_tokens(self, user: dict) -> Token:
        """
        Create access and refresh tokens for a staff user.

        Args:
            user: User row; its id and clinic go into the claims

        Returns:
            Token pair (access and refresh)
        """
        claims = {"sub": str(user["id"]), "clinic_id": str(user["clinic_id"]), "role": user["role"]}
        return Token(
            access_token=create_access_token(
                data=claims,
                expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
            ),
            refresh_token=create_refresh_token(
                data={"sub": claims["sub"]},
                expires_delta=timedelta(days=settings.refresh_token_expire_days),
            ),
        )

    async def refresh_access_token(self, refresh_token: str) -> Token:
        """
        Create a new token pair from a refresh token.

        The user is re-read so role changes and deactivation take effect.

        Raises:
            UnauthorizedException: If refresh token is invalid or the user is gone
        """
        payload = decode_refresh_token(refresh_token)
        if payload is None or not payload.get("sub"):
            raise UnauthorizedException("Invalid refresh token")

        try:
            user_id = UUID(payload["sub"])
        except ValueError as e:
            raise UnauthorizedException("Invalid refresh token") from e

        user = await self.get_user_by_id(user_id)
        if not user or not user["is_active"]:
            raise UnauthorizedException("User not found or inactive")
        return self.create_tokens(user)

    async def create_staff_user(self, clinic_id: UUID, data: StaffUserCreate) -> dict:
        """
        Add a staff member to a clinic.

        Raises:
            ConflictException: If the email is already registered
        """
        try:
            result = await self.db.execute(
                insert(users)
                .values(
                    clinic_id=clinic_id,
                    email=str(data.email).strip().lower(),
                    password_hash=get_password_hash(data.password),
                    full_name=data.full_name,
                    role=data.role,
                )
                .returning(users)
            )
            row = result.mappings().first()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictException("A user with this email already exists") from e

        logger.info("staff_user_created", user_id=str(row["id"]), role=data.role)
        return dict(row)

    async def list_staff(self, clinic_id: UUID) -> list[dict]:
        """Staff of a clinic ordered by email."""
        result = await self.db.execute(
            select(users).where(users.c.clinic_id == clinic_id).order_by(users.c.email)
        )
        return [dict(row) for row in result.mappings().all()]
