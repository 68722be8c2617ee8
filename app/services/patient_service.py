"""Patient service for business logic."""

from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.core.patient_code import base_from_name, next_free_code
from app.models.appointments import appointments
from app.models.patients import patients
from app.schemas.patients import (
    PatientCreate,
    PatientListResponse,
    PatientResponse,
    PatientSummaryResponse,
    PatientUpdate,
)

logger = structlog.get_logger(__name__)

# Spreadsheet column aliases, first match wins
IMPORT_COLUMNS = {
    "full_name": ("full_name", "name"),
    "email": ("email",),
    "phone": ("phone",),
    "date_of_birth": ("date_of_birth", "dob"),
    "patient_code": ("patient_code", "code"),
}


def clean_cell(value: Any) -> str | None:
    """Trim a spreadsheet cell; blanks become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def map_import_row(row: dict[str, Any]) -> dict[str, Any]:
    """Pick the known columns out of one imported row."""
    mapped: dict[str, Any] = {}
    for column, aliases in IMPORT_COLUMNS.items():
        mapped[column] = next(
            (clean_cell(row.get(alias)) for alias in aliases if clean_cell(row.get(alias))),
            None,
        )
    if mapped["date_of_birth"]:
        try:
            mapped["date_of_birth"] = date.fromisoformat(mapped["date_of_birth"][:10])
        except ValueError:
            mapped["date_of_birth"] = None
    return mapped


class PatientService:
    """Service for managing a clinic's patients."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _codes_like(self, clinic_id: UUID, base: str) -> list[str]:
        result = await self.db.execute(
            select(patients.c.patient_code).where(
                patients.c.clinic_id == clinic_id,
                patients.c.patient_code.ilike(f"{base}%"),
            )
        )
        return [row[0] for row in result.all()]

    async def generate_patient_code(self, clinic_id: UUID, full_name: str) -> str:
        """Unique code within the clinic derived from the patient's name."""
        base = base_from_name(full_name)
        return next_free_code(base, await self._codes_like(clinic_id, base))

    async def create_patient(
        self,
        clinic_id: UUID,
        data: PatientCreate,
        created_by: UUID | None = None,
    ) -> PatientResponse:
        """
        Create a new patient.

        Args:
            clinic_id: Clinic the patient belongs to
            data: Patient details
            created_by: Staff user creating the record

        Returns:
            Created patient

        Raises:
            ConflictException: If the patient code is already used in the clinic
        """
        values = data.model_dump()
        values["patient_code"] = values.get("patient_code") or await self.generate_patient_code(
            clinic_id, data.full_name
        )
        values.update(clinic_id=clinic_id, created_by=created_by)

        try:
            result = await self.db.execute(insert(patients).values(**values).returning(patients))
            row = result.mappings().first()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictException(f"Patient code '{values['patient_code']}' already exists") from e

        logger.info("patient_created", patient_id=str(row["id"]), clinic_id=str(clinic_id))
        return PatientResponse.model_validate(dict(row))

    async def get_patient_row(self, clinic_id: UUID, patient_id: UUID) -> dict:
        """Fetch a patient row scoped to the clinic."""
        result = await self.db.execute(
            select(patients).where(patients.c.id == patient_id, patients.c.clinic_id == clinic_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Patient not found")
        return dict(row)

    async def get_patient(self, clinic_id: UUID, patient_id: UUID) -> PatientResponse:
        """Get patient by ID."""
        return PatientResponse.model_validate(await self.get_patient_row(clinic_id, patient_id))

    async def list_patients(
        self,
        clinic_id: UUID,
        search: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> PatientListResponse:
        """
        List patients with their appointment count and latest visit.

        Args:
            clinic_id: Clinic to list
            search: Case-insensitive match on name, email, phone or code
            page: Page number
            page_size: Items per page

        Returns:
            Paginated patients, newest first
        """
        conditions = [patients.c.clinic_id == clinic_id]
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(
                    patients.c.full_name.ilike(pattern),
                    patients.c.email.ilike(pattern),
                    patients.c.phone.ilike(pattern),
                    patients.c.patient_code.ilike(pattern),
                )
            )

        count_stmt = select(func.count()).select_from(patients).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        summary = (
            select(
                appointments.c.patient_id,
                func.count(appointments.c.id).label("appointment_count"),
                func.max(appointments.c.starts_at).label("last_visit"),
            )
            .where(appointments.c.deleted_at.is_(None))
            .group_by(appointments.c.patient_id)
            .subquery()
        )

        stmt = (
            select(
                patients,
                func.coalesce(summary.c.appointment_count, 0).label("appointment_count"),
                summary.c.last_visit,
            )
            .select_from(patients.outerjoin(summary, summary.c.patient_id == patients.c.id))
            .where(and_(*conditions))
            .order_by(patients.c.created_at.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        result = await self.db.execute(stmt)

        return PatientListResponse(
            total=total,
            page=page,
            page_size=page_size,
            items=[PatientSummaryResponse.model_validate(dict(row)) for row in result.mappings()],
        )

    async def update_patient(
        self,
        clinic_id: UUID,
        patient_id: UUID,
        data: PatientUpdate,
    ) -> PatientResponse:
        """Update a patient's details."""
        await self.get_patient_row(clinic_id, patient_id)

        values = data.model_dump(exclude_unset=True)
        if not values:
            return await self.get_patient(clinic_id, patient_id)
        values["updated_at"] = datetime.now(UTC)

        try:
            result = await self.db.execute(
                update(patients)
                .where(patients.c.id == patient_id, patients.c.clinic_id == clinic_id)
                .values(**values)
                .returning(patients)
            )
            row = result.mappings().first()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictException("Patient code already exists") from e

        return PatientResponse.model_validate(dict(row))

    async def delete_patient(self, clinic_id: UUID, patient_id: UUID) -> None:
        """
        Delete a patient who has never had an appointment.

        Raises:
            ConflictException: If any appointment references the patient
        """
        await self.get_patient_row(clinic_id, patient_id)

        count_stmt = (
            select(func.count())
            .select_from(appointments)
            .where(appointments.c.patient_id == patient_id)
        )
        count = (await self.db.execute(count_stmt)).scalar() or 0
        if count > 0:
            raise ConflictException(
                "This patient has appointments and cannot be deleted. "
                "Cancel/delete appointments first."
            )

        await self.db.execute(
            delete(patients).where(patients.c.id == patient_id, patients.c.clinic_id == clinic_id)
        )
        await self.db.commit()
        logger.info("patient_deleted", patient_id=str(patient_id), clinic_id=str(clinic_id))

    async def import_rows(
        self,
        clinic_id: UUID,
        rows: list[dict[str, Any]],
        created_by: UUID | None = None,
    ) -> tuple[int, int]:
        """
        Bulk insert patients parsed from a spreadsheet.

        Rows without a name are skipped; rows without a code get one generated.

        Returns:
            Tuple of (imported, skipped)

        Raises:
            BadRequestException: If there are no rows, too many rows, or no valid rows
        """
        if not rows:
            raise BadRequestException("No rows provided")
        if len(rows) > settings.max_import_rows:
            raise BadRequestException(f"Too many rows. Limit is {settings.max_import_rows}.")

        payload = [mapped for mapped in map(map_import_row, rows) if mapped["full_name"]]
        if not payload:
            raise BadRequestException("No valid rows (full_name required)")

        existing = await self.db.execute(
            select(patients.c.patient_code).where(
                patients.c.clinic_id == clinic_id,
                patients.c.patient_code.is_not(None),
            )
        )
        taken = {code.lower() for (code,) in existing.all()}

        for mapped in payload:
            code = mapped["patient_code"]
            if not code or code.lower() in taken:
                code = next_free_code(base_from_name(mapped["full_name"]), taken)
            taken.add(code.lower())
            mapped.update(patient_code=code, clinic_id=clinic_id, created_by=created_by)

        await self.db.execute(insert(patients), payload)
        await self.db.commit()

        skipped = len(rows) - len(payload)
        logger.info(
            "patients_imported",
            clinic_id=str(clinic_id),
            imported=len(payload),
            skipped=skipped,
        )
        return len(payload), skipped

    async def find_or_create_by_email(
        self,
        clinic_id: UUID,
        full_name: str,
        email: str,
        phone: str | None = None,
    ) -> dict:
        """Match a public booking to an existing patient by email, or create one."""
        result = await self.db.execute(
            select(patients)
            .where(
                patients.c.clinic_id == clinic_id,
                func.lower(patients.c.email) == email.strip().lower(),
            )
            .order_by(patients.c.created_at)
            .limit(1)
        )
        existing = result.mappings().first()
        if existing:
            return dict(existing)

        code = await self.generate_patient_code(clinic_id, full_name)
        result = await self.db.execute(
            insert(patients)
            .values(
                clinic_id=clinic_id,
                full_name=full_name.strip(),
                email=email.strip(),
                phone=phone,
                patient_code=code,
            )
            .returning(patients)
        )
        created = dict(result.mappings().first())
        logger.info("patient_created_from_booking", patient_id=str(created["id"]))
        return created
