"""Doctor service for business logic."""

import math
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medislot.core.authorization import Actor
from medislot.core.exceptions import ConflictException, ForbiddenException, NotFoundException
from medislot.core.redis_client import CacheManager, doctor_key, doctor_list_key
from medislot.models.appointments import appointments
from medislot.models.doctors import doctors
from medislot.models.users import users
from medislot.schemas.appointments import ACTIVE_STATUSES
from medislot.schemas.doctors import (
    AvailableSlotsResponse,
    DoctorAdminUpdate,
    DoctorCreate,
    DoctorListResponse,
    DoctorResponse,
    DoctorUpdate,
)
from medislot.services.slot_calculator import (
    compute_available_slots,
    find_day_availability,
    weekday_name,
)

logger = structlog.get_logger()

_ACTIVE = [s.value for s in ACTIVE_STATUSES]


class DoctorService:
    """Service for doctor profile operations and slot lookup."""

    # Cache TTL in seconds
    DOCTOR_CACHE_TTL = 900  # 15 minutes for individual doctors
    DOCTOR_LIST_CACHE_TTL = 300  # 5 minutes for lists

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    def _invalidate(self, doctor_id: UUID | None = None) -> None:
        if self.cache:
            self.cache.invalidate_doctor(doctor_id)

    @staticmethod
    def _doctor_query():
        return select(doctors, users.c.full_name).join(users, doctors.c.user_id == users.c.id)

    async def create_doctor(self, db: AsyncSession, user_id: UUID, data: DoctorCreate) -> dict:
        """
        Create the doctor profile owned by an account.

        Raises:
            ConflictException: If the account already has a profile or the
                license number is taken
        """
        if await self.get_doctor_by_user_id(db, user_id):
            raise ConflictException("Doctor profile already exists")

        values = data.model_dump(exclude={"availability"})
        values["availability"] = [entry.model_dump(mode="json") for entry in data.availability]

        try:
            result = await db.execute(
                doctors.insert().values(user_id=user_id, **values).returning(doctors.c.id)
            )
            doctor_id = result.scalar_one()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictException(
                f"Doctor with license number '{data.license_number}' already exists"
            ) from e

        self._invalidate()

        logger.info("doctor_created", doctor_id=str(doctor_id), user_id=str(user_id))
        return await self.get_doctor_by_id(  # type: ignore[return-value]
            db, doctor_id, use_cache=False
        )

    async def get_doctor_by_id(
        self,
        db: AsyncSession,
        doctor_id: UUID,
        use_cache: bool = True,
    ) -> dict | None:
        """Get doctor by ID, read through the cache unless told otherwise."""
        if use_cache and self.cache:
            cached = self.cache.get_json(doctor_key(doctor_id))
            if cached:
                return cached

        result = await db.execute(self._doctor_query().where(doctors.c.id == doctor_id))
        doctor = result.mappings().first()

        if not doctor:
            return None

        doctor_dict = dict(doctor)

        if self.cache:
            self.cache.set_json(
                doctor_key(doctor_id),
                doctor_dict,
                ttl=self.DOCTOR_CACHE_TTL,
            )

        return doctor_dict

    async def get_doctor_by_user_id(self, db: AsyncSession, user_id: UUID) -> dict | None:
        """Get the doctor profile owned by an account."""
        result = await db.execute(select(doctors).where(doctors.c.user_id == user_id))
        doctor = result.mappings().first()
        return dict(doctor) if doctor else None

    async def list_doctors(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 10,
        specialization: str | None = None,
        city: str | None = None,
    ) -> DoctorListResponse:
        """List bookable (active and verified) doctors, best rated first."""
        cache_key = doctor_list_key(
            page=page, page_size=page_size, specialization=specialization, city=city
        )
        if self.cache:
            cached = self.cache.get_json(cache_key)
            if cached:
                return DoctorListResponse.model_validate(cached)

        conditions: list[Any] = [doctors.c.is_active.is_(True), doctors.c.is_verified.is_(True)]

        if specialization:
            conditions.append(doctors.c.specialization.ilike(f"%{specialization}%"))

        if city:
            conditions.append(doctors.c.clinic_city.ilike(f"%{city}%"))

        count_stmt = select(func.count()).select_from(doctors).where(and_(*conditions))
        total = (await db.execute(count_stmt)).scalar() or 0

        stmt = (
            self._doctor_query()
            .where(and_(*conditions))
            .order_by(doctors.c.rating_average.desc(), doctors.c.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(stmt)

        response = DoctorListResponse(
            total=total,
            page=page,
            page_size=page_size,
            pages=math.ceil(total / page_size),
            items=[DoctorResponse.model_validate(dict(row)) for row in result.mappings().all()],
        )

        if self.cache:
            self.cache.set_json(
                cache_key,
                response.model_dump(mode="json"),
                ttl=self.DOCTOR_LIST_CACHE_TTL,
            )

        return response

    async def get_specializations(self, db: AsyncSession) -> list[str]:
        """Distinct specializations of bookable doctors."""
        stmt = (
            select(doctors.c.specialization)
            .where(doctors.c.is_active.is_(True), doctors.c.is_verified.is_(True))
            .distinct()
            .order_by(doctors.c.specialization)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def update_doctor(
        self,
        db: AsyncSession,
        actor: Actor,
        doctor_id: UUID,
        data: DoctorUpdate,
    ) -> dict:
        """
        Update a doctor profile.

        The owning doctor may edit the practice fields and availability;
        admins may also toggle verification and activity.

        Raises:
            NotFoundException: If the doctor does not exist
            ForbiddenException: If the actor is neither the owner nor an admin
        """
        doctor = await self.get_doctor_by_id(db, doctor_id, use_cache=False)
        if not doctor:
            raise NotFoundException("Doctor not found")

        if not actor.is_admin and doctor["user_id"] != actor.user_id:
            raise ForbiddenException("Not authorized to update this doctor profile")

        if isinstance(data, DoctorAdminUpdate) and not actor.is_admin:
            if data.is_verified is not None or data.is_active is not None:
                raise ForbiddenException("Only admins can change verification or activity")

        update_values = data.model_dump(exclude_unset=True, exclude_none=True)
        if data.availability is not None:
            update_values["availability"] = [
                entry.model_dump(mode="json") for entry in data.availability
            ]

        if update_values:
            update_values["updated_at"] = datetime.now(UTC)
            await db.execute(
                update(doctors).where(doctors.c.id == doctor_id).values(**update_values)
            )
            await db.commit()
            self._invalidate(doctor_id)
            logger.info("doctor_updated", doctor_id=str(doctor_id), fields=sorted(update_values))

        return await self.get_doctor_by_id(  # type: ignore[return-value]
            db, doctor_id, use_cache=False
        )

    async def delete_doctor(self, db: AsyncSession, actor: Actor, doctor_id: UUID) -> None:
        """
        Delete a doctor profile.

        Raises:
            ForbiddenException: If the actor is not an admin
            NotFoundException: If the doctor does not exist
            ConflictException: If the doctor still has pending or confirmed
                appointments
        """
        if not actor.is_admin:
            raise ForbiddenException("Admin access required")

        doctor = await self.get_doctor_by_id(db, doctor_id, use_cache=False)
        if not doctor:
            raise NotFoundException("Doctor not found")

        active_stmt = (
            select(func.count())
            .select_from(appointments)
            .where(
                appointments.c.doctor_id == doctor_id,
                appointments.c.status.in_(_ACTIVE),
            )
        )
        active = (await db.execute(active_stmt)).scalar() or 0
        if active:
            raise ConflictException("Cannot delete doctor with pending or confirmed appointments")

        await db.execute(delete(doctors).where(doctors.c.id == doctor_id))
        await db.commit()
        self._invalidate(doctor_id)
        logger.info("doctor_deleted", doctor_id=str(doctor_id), deleted_by=str(actor.user_id))

    async def get_available_slots(
        self,
        db: AsyncSession,
        doctor_id: UUID,
        target_date: date,
    ) -> AvailableSlotsResponse:
        """
        Free 30 minute slots of a doctor on a date.

        Always computed from the current template and bookings, never cached.

        Raises:
            NotFoundException: If the doctor does not exist
        """
        result = await db.execute(select(doctors.c.availability).where(doctors.c.id == doctor_id))
        row = result.first()
        if row is None:
            raise NotFoundException("Doctor not found")

        availability = row.availability or []

        booked_stmt = select(appointments.c.appointment_time).where(
            appointments.c.doctor_id == doctor_id,
            appointments.c.appointment_date == target_date,
            appointments.c.status.in_(_ACTIVE),
        )
        booked = (await db.execute(booked_stmt)).scalars().all()

        return AvailableSlotsResponse(
            doctor_id=doctor_id,
            date=target_date,
            day_of_week=weekday_name(target_date),
            available_slots=compute_available_slots(availability, target_date, booked),
            availability=find_day_availability(availability, target_date),
        )
