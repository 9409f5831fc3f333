"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import Appointments
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentDetailResponse,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentModality,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
    DeleteAppointmentResponse,
)

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentDetailResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    service: Appointments,
) -> AppointmentDetailResponse:
    """
    Book a new appointment in the caller's organization.

    Args:
        data: Appointment booking data
        service: Appointment service scoped to the caller

    Returns:
        Created appointment

    Raises:
        HTTPException: If the patient is unknown or the slot is taken
    """
    return await service.create_appointment(data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    service: Appointments,
    from_day: date | None = Query(None),
    to_day: date | None = Query(None),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    modality: AppointmentModality | None = Query(None),
    patient_id: UUID | None = Query(None),
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments with filtering, newest day and time first.

    Args:
        service: Appointment service scoped to the caller
        from_day: Earliest day to include
        to_day: Latest day to include
        status_filter: Filter by status
        modality: Filter by modality
        patient_id: Filter by patient
        search: Case-insensitive patient name fragment
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        from_day=from_day,
        to_day=to_day,
        status=status_filter,
        modality=modality,
        patient_id=patient_id,
        search=search,
        page=page,
        page_size=page_size,
    )
    return await service.list_appointments(filters)


@router.get(
    "/billable",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments awaiting payment",
)
async def list_billable_appointments(
    service: Appointments,
    patient_id: UUID | None = Query(None),
) -> list[AppointmentResponse]:
    """List confirmed or completed appointments with no payment recorded."""
    return await service.list_billable_appointments(patient_id)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentDetailResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    service: Appointments,
) -> AppointmentDetailResponse:
    """
    Get a specific appointment with its reschedule links.

    Raises:
        HTTPException: If appointment not found
    """
    return await service.get_appointment(appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentDetailResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update or reschedule appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    service: Appointments,
) -> AppointmentDetailResponse:
    """
    Update an appointment.

    Sending ``status: rescheduled`` with ``new_day``, ``new_start_time`` and
    ``new_end_time`` books the new slot and links the original to it.

    Args:
        appointment_id: Appointment ID
        data: Update data
        service: Appointment service scoped to the caller

    Returns:
        Updated appointment

    Raises:
        HTTPException: If appointment not found, the slot is taken or the
            status change is not allowed
    """
    return await service.update_appointment(appointment_id, data)


@router.delete(
    "/{appointment_id}",
    response_model=DeleteAppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    service: Appointments,
) -> DeleteAppointmentResponse:
    """
    Soft delete an appointment.

    Appointments with payments cannot be deleted; cancel them instead.

    Raises:
        HTTPException: If appointment not found or has payments
    """
    return await service.delete_appointment(appointment_id)
