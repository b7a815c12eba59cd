"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from medislot.dependencies import CacheManagerDep, CurrentActor, DatabaseSession
from medislot.schemas.appointments import (
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
from medislot.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Book a pending appointment with a doctor for the authenticated patient.

    Fails with 409 when the slot is already taken; fetch fresh available
    slots and retry with another time.
    """
    service = AppointmentService(db)
    return await service.create_appointment(actor, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    actor: CurrentActor,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments visible to the caller.

    Patients see their own, doctors those booked with them, admins all
    (optionally narrowed by doctor_id / patient_id).
    """
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )

    service = AppointmentService(db)
    return await service.list_appointments(actor, filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    service = AppointmentService(db)
    return await service.get_appointment(actor, appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Patch appointment details, clinical notes or payment status."""
    service = AppointmentService(db)
    return await service.update_appointment(actor, appointment_id, data)


@router.patch(
    "/{appointment_id}/confirm",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm appointment",
)
async def confirm_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Move a pending appointment to confirmed."""
    service = AppointmentService(db)
    return await service.confirm_appointment(actor, appointment_id)


@router.patch(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete appointment",
)
async def complete_appointment(
    appointment_id: UUID,
    data: AppointmentComplete,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Close a confirmed appointment with notes, diagnosis and prescription."""
    service = AppointmentService(db)
    return await service.complete_appointment(actor, appointment_id, data)


@router.put(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Cancel an appointment. Patients must cancel at least 24 hours ahead."""
    service = AppointmentService(db)
    return await service.cancel_appointment(actor, appointment_id, data)


@router.put(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Move an appointment to a new slot.

    Returns the newly created appointment; the original is kept with status
    ``rescheduled``.
    """
    service = AppointmentService(db)
    return await service.reschedule_appointment(actor, appointment_id, data)


@router.put(
    "/{appointment_id}/rate",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Rate appointment",
)
async def rate_appointment(
    appointment_id: UUID,
    data: AppointmentRate,
    actor: CurrentActor,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> AppointmentResponse:
    """Rate a completed appointment once; updates the doctor's rating."""
    service = AppointmentService(db, cache_manager=cache_manager)
    return await service.rate_appointment(actor, appointment_id, data)
