"""Doctor profile and availability endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from medislot.core.exceptions import ForbiddenException, NotFoundException
from medislot.core.redis_client import CacheManager
from medislot.dependencies import CurrentActor, DatabaseSession, get_cache_manager
from medislot.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentStatus,
)
from medislot.schemas.doctors import (
    AvailableSlotsResponse,
    DoctorAdminUpdate,
    DoctorCreate,
    DoctorListResponse,
    DoctorResponse,
)
from medislot.services.appointment_service import AppointmentService
from medislot.services.doctor_service import DoctorService

router = APIRouter(prefix="/doctors", tags=["Doctors"])


def get_doctor_service(cache_manager: CacheManager = Depends(get_cache_manager)) -> DoctorService:
    """Get doctor service instance."""
    return DoctorService(cache_manager=cache_manager)


# ============================================================================
# Public Endpoints
# ============================================================================


@router.get("/", response_model=DoctorListResponse)
async def list_doctors(
    db: DatabaseSession,
    doctor_service: DoctorService = Depends(get_doctor_service),
    specialization: str | None = Query(None, description="Filter by specialization"),
    city: str | None = Query(None, description="Filter by clinic city"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
):
    """List active, verified doctors, best rated first."""
    return await doctor_service.list_doctors(
        db,
        page=page,
        page_size=page_size,
        specialization=specialization,
        city=city,
    )


@router.get("/specializations", response_model=list[str])
async def list_specializations(
    db: DatabaseSession,
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """Distinct specializations offered by bookable doctors."""
    return await doctor_service.get_specializations(db)


@router.get("/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(
    doctor_id: UUID,
    db: DatabaseSession,
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """Get a doctor profile."""
    doctor = await doctor_service.get_doctor_by_id(db, doctor_id)
    if not doctor:
        raise NotFoundException("Doctor not found")
    return doctor


@router.get("/{doctor_id}/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    doctor_id: UUID,
    db: DatabaseSession,
    target_date: date = Query(..., alias="date", description="Day to list free slots for"),
):
    """
    Free 30 minute slots of a doctor on a date.

    Computed from the doctor's weekly availability minus pending and
    confirmed appointments. A day without availability returns no slots.
    """
    return await DoctorService().get_available_slots(db, doctor_id, target_date)


# ============================================================================
# Authenticated Endpoints
# ============================================================================


@router.post("/", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
async def create_doctor(
    data: DoctorCreate,
    actor: CurrentActor,
    db: DatabaseSession,
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """Create the doctor profile for the authenticated doctor account."""
    if not actor.is_doctor:
        raise ForbiddenException("Only doctor accounts can create a doctor profile")
    return await doctor_service.create_doctor(db, actor.user_id, data)


@router.put("/{doctor_id}", response_model=DoctorResponse)
async def update_doctor(
    doctor_id: UUID,
    data: DoctorAdminUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """Update a doctor profile (owner or admin)."""
    return await doctor_service.update_doctor(db, actor, doctor_id, data)


@router.delete("/{doctor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_doctor(
    doctor_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    doctor_service: DoctorService = Depends(get_doctor_service),
) -> None:
    """Delete a doctor profile (admin only, refused while appointments are open)."""
    await doctor_service.delete_doctor(db, actor, doctor_id)


@router.get("/{doctor_id}/appointments", response_model=AppointmentListResponse)
async def list_doctor_appointments(
    doctor_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
):
    """Appointments booked with a doctor (that doctor or an admin)."""
    if not (actor.is_admin or (actor.is_doctor and actor.doctor_id == doctor_id)):
        raise ForbiddenException("Not authorized to view this doctor's appointments")

    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        page=page,
        page_size=page_size,
    )
    return await AppointmentService(db).list_appointments(actor, filters)
