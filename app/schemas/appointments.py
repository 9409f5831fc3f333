"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    CONFIRMED = "confirmed"
    NO_RESPONSE = "no_response"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    COMPLETED = "completed"

    @property
    def is_active(self) -> bool:
        """Whether an appointment in this status occupies its slot."""
        return self not in (AppointmentStatus.CANCELLED, AppointmentStatus.RESCHEDULED)


INACTIVE_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.RESCHEDULED)


class AppointmentModality(str, Enum):
    """Appointment modality enumeration."""

    IN_PERSON = "in_person"
    VIRTUAL = "virtual"
    SHOCK_THERAPY = "shock_therapy"
    CAPILLARY_THERAPY = "capillary_therapy"


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    patient_id: UUID
    day: date
    start_time: time
    end_time: time
    modality: AppointmentModality = AppointmentModality.IN_PERSON
    location: str | None = Field(None, max_length=200)
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    notes: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def validate_slot(self) -> "AppointmentCreate":
        """Validate end time is after start time and the initial status."""
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        if self.status == AppointmentStatus.RESCHEDULED:
            raise ValueError("An appointment cannot be booked as rescheduled")
        return self


class AppointmentUpdate(BaseModel):
    """
    Schema for updating an existing appointment.

    Setting ``status`` to ``rescheduled`` together with ``new_day``,
    ``new_start_time`` and ``new_end_time`` reschedules the appointment into
    a new, linked booking.
    """

    patient_id: UUID | None = None
    day: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    modality: AppointmentModality | None = None
    location: str | None = Field(None, max_length=200)
    status: AppointmentStatus | None = None
    notes: str | None = Field(None, max_length=2000)
    # Reschedule target
    new_day: date | None = None
    new_start_time: time | None = None
    new_end_time: time | None = None

    @property
    def is_reschedule(self) -> bool:
        """Whether this update requests a reschedule."""
        return self.status == AppointmentStatus.RESCHEDULED

    @model_validator(mode="after")
    def validate_reschedule_target(self) -> "AppointmentUpdate":
        """Validate a reschedule carries a complete, well-ordered target slot."""
        target = (self.new_day, self.new_start_time, self.new_end_time)
        if self.is_reschedule:
            if any(value is None for value in target):
                raise ValueError(
                    "Rescheduling requires new_day, new_start_time and new_end_time"
                )
            if self.new_end_time <= self.new_start_time:  # type: ignore[operator]
                raise ValueError("New end time must be after new start time")
        elif any(value is not None for value in target):
            raise ValueError("new_day/new_start_time/new_end_time are only valid when rescheduling")
        return self


class PatientSummary(BaseModel):
    """Patient identity embedded in appointment responses."""

    id: UUID
    full_name: str
    patient_code: str | None = None


class AppointmentLink(BaseModel):
    """Summary of the other end of a reschedule link."""

    id: UUID
    day: date
    start_time: time
    end_time: time
    status: AppointmentStatus


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    tenant_id: UUID
    patient_id: UUID
    day: date
    start_time: time
    end_time: time
    modality: AppointmentModality
    location: str | None = None
    status: AppointmentStatus
    notes: str | None = None
    rescheduled_to_id: UUID | None = None
    rescheduled_from_id: UUID | None = None
    patient: PatientSummary | None = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None

    model_config = {"from_attributes": True}


class AppointmentDetailResponse(AppointmentResponse):
    """Schema for a single appointment with its reschedule links and payments."""

    rescheduled_to: AppointmentLink | None = None
    rescheduled_from: AppointmentLink | None = None
    payment_count: int = 0


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    from_day: date | None = None
    to_day: date | None = None
    status: AppointmentStatus | None = None
    modality: AppointmentModality | None = None
    patient_id: UUID | None = None
    search: str | None = Field(None, max_length=100)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class DeleteAppointmentResponse(BaseModel):
    """Schema for a successful deletion."""

    success: bool = True
    restored_appointment_id: UUID | None = None
