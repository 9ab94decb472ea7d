"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import validate_time_of_day, validate_weekday
from .recurrence import OccurrenceStatus, RecurrenceDefinition, RecurrencePattern, build_definition

AppointmentSource = Literal["STAFF", "PHONE", "ONLINE", "WAITLIST", "TREATMENT_PLAN", "RECALL"]


def _wall_clock(v: Optional[datetime]) -> Optional[datetime]:
    # Times are clinic-local wall clock; any offset sent by the client is dropped, not converted
    if v is not None and v.tzinfo is not None:
        return v.replace(tzinfo=None)
    return v


# ============================================================================
# AVAILABILITY
# ============================================================================


class AvailabilityRequest(BaseModel):
    """Schema for checking a proposed window"""

    providerId: int
    startTime: datetime
    endTime: datetime
    chairId: Optional[int] = None
    roomId: Optional[int] = None
    excludeAppointmentId: Optional[int] = None

    @field_validator("startTime", "endTime")
    @classmethod
    def strip_offset(cls, v):
        return _wall_clock(v)

    @model_validator(mode="after")
    def check_window(self):
        if self.endTime <= self.startTime:
            raise ValueError("End time must be after start time")
        return self


class ConflictResponse(BaseModel):
    resourceType: str
    appointmentId: int
    startTime: datetime
    endTime: datetime
    description: str


class AvailabilityResponse(BaseModel):
    isAvailable: bool
    conflicts: list[ConflictResponse] = []


# ============================================================================
# APPOINTMENTS
# ============================================================================


class AppointmentCreate(BaseModel):
    """Schema for booking a single appointment"""

    patientId: int
    appointmentTypeId: int
    providerId: int
    chairId: Optional[int] = None
    roomId: Optional[int] = None
    startTime: datetime
    endTime: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=5, le=480)
    source: AppointmentSource = "STAFF"
    notes: Optional[str] = Field(None, max_length=2000)
    patientNotes: Optional[str] = Field(None, max_length=2000)

    @field_validator("startTime", "endTime")
    @classmethod
    def strip_offset(cls, v):
        return _wall_clock(v)

    @model_validator(mode="after")
    def check_window(self):
        if self.endTime is not None and self.endTime <= self.startTime:
            raise ValueError("End time must be after start time")
        return self


class AppointmentUpdate(BaseModel):
    """Schema for rescheduling or reassigning an appointment"""

    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=5, le=480)
    providerId: Optional[int] = None
    chairId: Optional[int] = None
    roomId: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("startTime", "endTime")
    @classmethod
    def strip_offset(cls, v):
        return _wall_clock(v)


class AppointmentCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: int
    patientId: int
    patientName: Optional[str] = None
    appointmentTypeId: int
    appointmentTypeName: Optional[str] = None
    providerId: int
    providerName: Optional[str] = None
    chairId: Optional[int] = None
    roomId: Optional[int] = None
    startTime: datetime
    endTime: datetime
    duration: int
    status: str
    confirmationStatus: str
    source: str
    notes: Optional[str] = None
    cancellationReason: Optional[str] = None
    createdAt: Optional[datetime] = None


# ============================================================================
# RECURRING SERIES
# ============================================================================


class RecurringCreate(BaseModel):
    """Schema for creating a recurring series"""

    patientId: int
    appointmentTypeId: int
    providerId: int
    chairId: Optional[int] = None
    name: Optional[str] = Field(None, max_length=200)
    duration: int = Field(..., ge=1, le=480)
    preferredTime: str
    preferredDayOfWeek: Optional[int] = None
    pattern: RecurrencePattern
    interval: int = Field(1, ge=1, le=12)
    daysOfWeek: list[int] = []
    dayOfMonth: Optional[int] = Field(None, ge=1, le=31)
    weekOfMonth: Optional[int] = Field(None, ge=-1, le=4)
    startDate: date
    endDate: Optional[date] = None
    maxOccurrences: Optional[int] = Field(None, ge=1, le=52)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("preferredTime")
    @classmethod
    def validate_preferred_time(cls, v):
        return validate_time_of_day(v)

    @field_validator("preferredDayOfWeek")
    @classmethod
    def validate_preferred_day(cls, v):
        if v is not None:
            return validate_weekday(v)
        return v

    @field_validator("daysOfWeek")
    @classmethod
    def validate_days(cls, v):
        return sorted({validate_weekday(d) for d in v})

    @model_validator(mode="after")
    def check_series(self):
        if self.endDate is None and self.maxOccurrences is None:
            raise ValueError("Recurring series must have an end date or max occurrences")
        self.to_definition()
        return self

    def to_definition(self) -> RecurrenceDefinition:
        return build_definition(
            self.pattern,
            start_date=self.startDate,
            preferred_time=self.preferredTime,
            end_date=self.endDate,
            max_occurrences=self.maxOccurrences,
            interval=self.interval,
            days_of_week=self.daysOfWeek,
            day_of_month=self.dayOfMonth,
            week_of_month=self.weekOfMonth,
            preferred_day_of_week=self.preferredDayOfWeek,
        )


class RecurringResponse(BaseModel):
    """Schema for recurring series response"""

    id: int
    patientId: int
    patientName: Optional[str] = None
    appointmentTypeId: int
    appointmentTypeName: Optional[str] = None
    providerId: int
    providerName: Optional[str] = None
    chairId: Optional[int] = None
    name: Optional[str] = None
    duration: int
    preferredTime: str
    preferredDayOfWeek: Optional[int] = None
    pattern: str
    interval: int
    daysOfWeek: list[int] = []
    dayOfMonth: Optional[int] = None
    weekOfMonth: Optional[int] = None
    startDate: date
    endDate: Optional[date] = None
    maxOccurrences: Optional[int] = None
    status: str
    occurrencesCreated: int
    lastGeneratedDate: Optional[date] = None
    notes: Optional[str] = None
    createdAt: Optional[datetime] = None


class RecurringCreateResponse(RecurringResponse):
    occurrencesGenerated: int


class RecurringListResponse(BaseModel):
    items: list[RecurringResponse]
    total: int
    page: int
    pageSize: int
    totalPages: int


# ============================================================================
# OCCURRENCES
# ============================================================================


class OccurrenceAppointment(BaseModel):
    """Summary of the appointment an occurrence was turned into"""

    id: int
    status: str
    startTime: datetime
    endTime: datetime
    confirmationStatus: str


class OccurrenceResponse(BaseModel):
    id: int
    occurrenceNumber: int
    scheduledDate: date
    scheduledTime: str
    status: str
    appointmentId: Optional[int] = None
    skippedReason: Optional[str] = None
    isModified: bool
    modifiedAt: Optional[datetime] = None
    appointment: Optional[OccurrenceAppointment] = None


class OccurrenceListResponse(BaseModel):
    items: list[OccurrenceResponse]
    total: int
    page: int
    pageSize: int
    totalPages: int


class OccurrenceUpdate(BaseModel):
    """Schema for modifying one occurrence, addressed by its number"""

    occurrenceNumber: int = Field(..., ge=1)
    scheduledDate: Optional[date] = None
    scheduledTime: Optional[str] = None
    status: Optional[OccurrenceStatus] = None
    skippedReason: Optional[str] = Field(None, max_length=500)

    @field_validator("scheduledTime")
    @classmethod
    def validate_scheduled_time(cls, v):
        if v is not None:
            return validate_time_of_day(v)
        return v


class OccurrenceMaterialize(BaseModel):
    """Schema for turning a pending occurrence into an appointment"""

    occurrenceNumber: int = Field(..., ge=1)
    notes: Optional[str] = Field(None, max_length=2000)


class MaterializeResponse(BaseModel):
    occurrence: OccurrenceResponse
    appointment: AppointmentResponse


RecurringSortField = Literal["startDate", "createdAt", "status"]
SortOrder = Literal["asc", "desc"]
