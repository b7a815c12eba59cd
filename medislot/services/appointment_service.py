"""Appointment service: booking and lifecycle transitions."""

import math
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medislot.core.authorization import (
    Actor,
    AppointmentAction,
    can_create_appointment,
    ensure_allowed,
    scope_conditions,
)
from medislot.core.clock import clinic_now, hours_until, scheduled_at
from medislot.core.exceptions import (
    AlreadyRatedException,
    AlreadyTerminalException,
    CancellationWindowClosedException,
    DoctorUnavailableException,
    ForbiddenException,
    InvalidScheduleException,
    NotFoundException,
    SlotConflictException,
    ValidationException,
)
from medislot.core.redis_client import CacheManager
from medislot.models.appointments import appointments
from medislot.models.doctors import doctors
from medislot.schemas.appointments import (
    ACTIVE_STATUSES,
    CANCELLATION_CUTOFF_HOURS,
    TERMINAL_STATUSES,
    AppointmentCancel,
    AppointmentComplete,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentRate,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
)
from medislot.services.rating_service import RatingService

logger = structlog.get_logger()

_ACTIVE = [s.value for s in ACTIVE_STATUSES]

PATIENT_FIELDS = frozenset({"reason", "symptoms"})
CLINICAL_FIELDS = frozenset(
    {"notes", "diagnosis", "prescription", "follow_up_required", "follow_up_date"}
)
SCHEDULING_FIELDS = frozenset({"duration_minutes"})
BILLING_FIELDS = frozenset({"payment_status"})
# Columns that are NOT NULL, so a patch may change but never clear them
REQUIRED_FIELDS = frozenset(
    {"reason", "duration_minutes", "payment_status", "status", "follow_up_required"}
)

SLOT_INDEX_NAME = "uq_appointments_active_slot"


def _is_slot_violation(exc: IntegrityError) -> bool:
    """Whether an insert failed on the active-slot unique index."""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    # PostgreSQL names the index, SQLite lists its columns
    return SLOT_INDEX_NAME in message or "appointments.appointment_time" in message


class AppointmentService:
    """Service for booking appointments and driving their status."""

    def __init__(
        self,
        db: AsyncSession,
        cache_manager: CacheManager | None = None,
        clock: Callable[[], datetime] = clinic_now,
    ):
        """
        Initialize service.

        Args:
            db: Database session, one per request
            cache_manager: Optional cache, invalidated when ratings change
            clock: Returns the current clinic-local time
        """
        self.db = db
        self.clock = clock
        self.cache = cache_manager
        self.ratings = RatingService()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch(self, appointment_id: UUID) -> dict:
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    def _to_response(self, row: Any) -> AppointmentResponse:
        data = dict(row)
        remaining = hours_until(data["appointment_date"], data["appointment_time"], self.clock())
        data["is_past"] = remaining < 0
        data["can_be_cancelled"] = (
            data["status"] == AppointmentStatus.CONFIRMED.value
            and remaining > CANCELLATION_CUTOFF_HOURS
        )
        return AppointmentResponse.model_validate(data)

    def _ensure_future(self, appointment_date: date, appointment_time: str) -> None:
        if scheduled_at(appointment_date, appointment_time) <= self.clock():
            raise InvalidScheduleException()

    async def _slot_taken(
        self,
        doctor_id: UUID,
        appointment_date: date,
        appointment_time: str,
        exclude_id: UUID | None = None,
    ) -> bool:
        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.appointment_date == appointment_date,
            appointments.c.appointment_time == appointment_time,
            appointments.c.status.in_(_ACTIVE),
        ]
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)

        result = await self.db.execute(select(appointments.c.id).where(and_(*conditions)).limit(1))
        return result.first() is not None

    async def _transition(
        self,
        appointment_id: UUID,
        from_statuses: Iterable[AppointmentStatus],
        values: dict[str, Any],
    ) -> dict:
        """
        Conditionally update an appointment still in one of ``from_statuses``.

        The status guard lives in the WHERE clause, so a concurrent transition
        that got there first makes this one fail instead of overwriting it.
        Does not commit.
        """
        values.setdefault("updated_at", datetime.now(UTC))
        stmt = (
            update(appointments)
            .where(
                appointments.c.id == appointment_id,
                appointments.c.status.in_([s.value for s in from_statuses]),
            )
            .values(**values)
            .returning(appointments)
        )
        row = (await self.db.execute(stmt)).mappings().first()
        if row is None:
            await self.db.rollback()
            raise AlreadyTerminalException("Appointment status changed, reload and retry")
        return dict(row)

    @staticmethod
    def _reject_terminal(status: AppointmentStatus, verb: str) -> None:
        if status in TERMINAL_STATUSES:
            raise AlreadyTerminalException(f"Cannot {verb} {status.value} appointment")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_appointment(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor is not a party to it
        """
        appointment = await self._fetch(appointment_id)
        ensure_allowed(actor, AppointmentAction.VIEW, appointment)
        return self._to_response(appointment)

    async def list_appointments(
        self,
        actor: Actor,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List the appointments visible to the actor, newest first.

        Args:
            actor: Requesting actor
            filters: Filter and pagination parameters

        Returns:
            Paginated list of appointments
        """
        conditions = scope_conditions(actor, filters.doctor_id, filters.patient_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.from_date:
            conditions.append(appointments.c.appointment_date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.appointment_date <= filters.to_date)

        where = and_(true(), *conditions)

        count_stmt = select(func.count()).select_from(appointments).where(where)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(appointments)
            .where(where)
            .order_by(
                appointments.c.appointment_date.desc(),
                appointments.c.appointment_time.desc(),
            )
            .limit(filters.page_size)
            .offset((filters.page - 1) * filters.page_size)
        )
        rows = (await self.db.execute(stmt)).mappings().all()

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            pages=math.ceil(total / filters.page_size),
            items=[self._to_response(row) for row in rows],
        )

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    async def create_appointment(
        self,
        actor: Actor,
        data: AppointmentCreate,
    ) -> AppointmentResponse:
        """
        Book a new pending appointment for the calling patient.

        Checks run in order and stop at the first failure: the doctor must be
        active and verified, the slot must be in the future, and no pending or
        confirmed appointment may hold it. The unique index on active slots
        settles races between concurrent bookings.

        Raises:
            ForbiddenException: If the actor is not a patient
            NotFoundException: If the doctor does not exist
            DoctorUnavailableException: If the doctor is inactive or unverified
            InvalidScheduleException: If the slot is not in the future
            SlotConflictException: If the slot is already booked
        """
        if not can_create_appointment(actor):
            raise ForbiddenException("Only patients can book appointments")

        result = await self.db.execute(select(doctors).where(doctors.c.id == data.doctor_id))
        doctor = result.mappings().first()
        if not doctor:
            raise NotFoundException("Doctor not found")

        if not doctor["is_active"] or not doctor["is_verified"]:
            raise DoctorUnavailableException()

        self._ensure_future(data.appointment_date, data.appointment_time)

        if await self._slot_taken(data.doctor_id, data.appointment_date, data.appointment_time):
            logger.info(
                "appointment_slot_conflict",
                doctor_id=str(data.doctor_id),
                date=data.appointment_date.isoformat(),
                time=data.appointment_time,
            )
            raise SlotConflictException()

        now = datetime.now(UTC)
        values = {
            "patient_id": actor.user_id,
            "doctor_id": data.doctor_id,
            "appointment_date": data.appointment_date,
            "appointment_time": data.appointment_time,
            "reason": data.reason,
            "symptoms": data.symptoms,
            "consultation_fee": doctor["consultation_fee"],
            "status": AppointmentStatus.PENDING.value,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.db.execute(
                insert(appointments).values(**values).returning(appointments)
            )
            row = dict(result.mappings().one())
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not _is_slot_violation(e):
                raise
            logger.info(
                "appointment_slot_conflict",
                doctor_id=str(data.doctor_id),
                date=data.appointment_date.isoformat(),
                time=data.appointment_time,
                detected_by="unique_index",
            )
            raise SlotConflictException() from e

        logger.info(
            "appointment_created",
            appointment_id=str(row["id"]),
            patient_id=str(actor.user_id),
            doctor_id=str(data.doctor_id),
        )
        return self._to_response(row)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def confirm_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
    ) -> AppointmentResponse:
        """Move a pending appointment to confirmed."""
        appointment = await self._fetch(appointment_id)
        ensure_allowed(actor, AppointmentAction.CONFIRM, appointment)

        status = AppointmentStatus(appointment["status"])
        self._reject_terminal(status, "confirm")
        if status == AppointmentStatus.CONFIRMED:
            raise ValidationException("Appointment is already confirmed")

        row = await self._transition(
            appointment_id,
            [AppointmentStatus.PENDING],
            {"status": AppointmentStatus.CONFIRMED.value},
        )
        await self.db.commit()

        logger.info("appointment_confirmed", appointment_id=str(appointment_id))
        return self._to_response(row)

    async def complete_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
        data: AppointmentComplete,
    ) -> AppointmentResponse:
        """Move a confirmed appointment to completed, recording the visit."""
        appointment = await self._fetch(appointment_id)
        ensure_allowed(actor, AppointmentAction.COMPLETE, appointment)

        status = AppointmentStatus(appointment["status"])
        self._reject_terminal(status, "complete")
        if status != AppointmentStatus.CONFIRMED:
            raise ValidationException("Only confirmed appointments can be completed")

        values = data.model_dump(exclude_unset=True)
        values["status"] = AppointmentStatus.COMPLETED.value

        row = await self._transition(appointment_id, [AppointmentStatus.CONFIRMED], values)
        await self.db.commit()

        logger.info("appointment_completed", appointment_id=str(appointment_id))
        return self._to_response(row)

    async def cancel_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
        data: AppointmentCancel,
    ) -> AppointmentResponse:
        """
        Cancel an appointment.

        Patients cannot cancel within 24 hours of the scheduled start; doctors
        and admins can cancel at any time.

        Raises:
            AlreadyTerminalException: If already cancelled, completed or
                rescheduled
            CancellationWindowClosedException: If a patient is inside the
                cutoff window
        """
        appointment = await self._fetch(appointment_id)
        ensure_allowed(actor, AppointmentAction.CANCEL, appointment)

        status = AppointmentStatus(appointment["status"])
        if status == AppointmentStatus.CANCELLED:
            raise AlreadyTerminalException("Appointment is already cancelled")
        self._reject_terminal(status, "cancel")

        if actor.is_patient:
            remaining = hours_until(
                appointment["appointment_date"],
                appointment["appointment_time"],
                self.clock(),
            )
            if remaining < CANCELLATION_CUTOFF_HOURS:
                raise CancellationWindowClosedException()

        now = datetime.now(UTC)
        row = await self._transition(
            appointment_id,
            ACTIVE_STATUSES,
            {
                "status": AppointmentStatus.CANCELLED.value,
                "cancellation_reason": data.cancellation_reason,
                "cancelled_by": actor.user_id,
                "cancelled_at": now,
                "updated_at": now,
            },
        )
        await self.db.commit()

        logger.info(
            "appointment_cancelled",
            appointment_id=str(appointment_id),
            cancelled_by=str(actor.user_id),
            role=actor.role.value,
        )
        return self._to_response(row)

    async def reschedule_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
        data: AppointmentReschedule,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new slot by creating its successor.

        The original is marked ``rescheduled`` and otherwise left untouched;
        the new pending appointment carries the patient, doctor, reason,
        symptoms and fee over and points back through ``rescheduled_from``.
        Both writes happen in one transaction.

        Returns:
            The new appointment
        """
        original = await self._fetch(appointment_id)
        ensure_allowed(actor, AppointmentAction.RESCHEDULE, original)

        status = AppointmentStatus(original["status"])
        self._reject_terminal(status, "reschedule")

        self._ensure_future(data.appointment_date, data.appointment_time)

        if await self._slot_taken(
            original["doctor_id"],
            data.appointment_date,
            data.appointment_time,
            exclude_id=appointment_id,
        ):
            raise SlotConflictException()

        now = datetime.now(UTC)
        # Release the old slot first so moving within the same slot is allowed
        await self._transition(
            appointment_id,
            ACTIVE_STATUSES,
            {"status": AppointmentStatus.RESCHEDULED.value, "updated_at": now},
        )

        values = {
            "patient_id": original["patient_id"],
            "doctor_id": original["doctor_id"],
            "appointment_date": data.appointment_date,
            "appointment_time": data.appointment_time,
            "duration_minutes": original["duration_minutes"],
            "reason": original["reason"],
            "symptoms": original["symptoms"],
            "consultation_fee": original["consultation_fee"],
            "status": AppointmentStatus.PENDING.value,
            "rescheduled_from": appointment_id,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.db.execute(
                insert(appointments).values(**values).returning(appointments)
            )
            row = dict(result.mappings().one())
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not _is_slot_violation(e):
                raise
            raise SlotConflictException() from e

        logger.info(
            "appointment_rescheduled",
            appointment_id=str(row["id"]),
            rescheduled_from=str(appointment_id),
        )
        return self._to_response(row)

    async def rate_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
        data: AppointmentRate,
    ) -> AppointmentResponse:
        """
        Attach the one-time rating to a completed appointment.

        The rating write is conditional on no score being present, and the
        doctor aggregate is advanced in the same transaction, so a score is
        counted exactly once.

        Raises:
            ValidationException: If the appointment is not completed
            AlreadyRatedException: If it already carries a rating
        """
        appointment = await self._fetch(appointment_id)
        ensure_allowed(actor, AppointmentAction.RATE, appointment)

        if appointment["status"] != AppointmentStatus.COMPLETED.value:
            raise ValidationException("Can only rate completed appointments")

        if appointment["rating_score"] is not None:
            raise AlreadyRatedException()

        now = datetime.now(UTC)
        stmt = (
            update(appointments)
            .where(
                appointments.c.id == appointment_id,
                appointments.c.status == AppointmentStatus.COMPLETED.value,
                appointments.c.rating_score.is_(None),
            )
            .values(
                rating_score=data.score,
                rating_review=data.review,
                rated_at=now,
                updated_at=now,
            )
            .returning(appointments)
        )
        row = (await self.db.execute(stmt)).mappings().first()
        if row is None:
            await self.db.rollback()
            raise AlreadyRatedException()
        row = dict(row)

        if row["doctor_id"] is not None:
            await self.ratings.apply_rating(self.db, row["doctor_id"], data.score)
        await self.db.commit()

        if self.cache and row["doctor_id"] is not None:
            self.cache.invalidate_doctor(row["doctor_id"])

        logger.info("appointment_rated", appointment_id=str(appointment_id), score=data.score)
        return self._to_response(row)

    async def update_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Patch appointment fields.

        Patients may only touch reason and symptoms. Clinical fields need a
        doctor or admin. A status in the patch goes through the same
        transitions as confirm and complete; cancelling and rescheduling have
        their own operations.
        """
        appointment = await self._fetch(appointment_id)
        ensure_allowed(actor, AppointmentAction.UPDATE, appointment)

        fields = data.model_dump(exclude_unset=True)
        cleared = sorted(
            field for field in REQUIRED_FIELDS if field in fields and fields[field] is None
        )
        if cleared:
            raise ValidationException(f"Fields cannot be cleared: {', '.join(cleared)}")

        new_status = fields.pop("status", None)
        current = AppointmentStatus(appointment["status"])

        if actor.is_patient and set(fields) - PATIENT_FIELDS:
            raise ForbiddenException("Patients may only edit reason and symptoms")

        if set(fields) & CLINICAL_FIELDS:
            ensure_allowed(actor, AppointmentAction.RECORD_CLINICAL, appointment)
            if AppointmentStatus.COMPLETED not in (current, new_status):
                raise ValidationException(
                    "Clinical details can only be recorded on completed appointments"
                )

        if set(fields) & (PATIENT_FIELDS | SCHEDULING_FIELDS):
            self._reject_terminal(current, "edit")

        from_statuses = [current]
        if new_status is not None and new_status != current:
            self._reject_terminal(current, f"move to {new_status.value}")
            if new_status == AppointmentStatus.CONFIRMED:
                ensure_allowed(actor, AppointmentAction.CONFIRM, appointment)
            elif new_status == AppointmentStatus.COMPLETED:
                ensure_allowed(actor, AppointmentAction.COMPLETE, appointment)
                if current != AppointmentStatus.CONFIRMED:
                    raise ValidationException("Only confirmed appointments can be completed")
            else:
                raise ValidationException(
                    f"Status cannot be set to {new_status.value} here; "
                    "use the cancel or reschedule operations"
                )
            fields["status"] = new_status.value

        if "payment_status" in fields:
            fields["payment_status"] = fields["payment_status"].value

        if not fields:
            return self._to_response(appointment)

        row = await self._transition(appointment_id, from_statuses, fields)
        await self.db.commit()

        logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            fields=sorted(fields),
            updated_by=str(actor.user_id),
        )
        return self._to_response(row)
