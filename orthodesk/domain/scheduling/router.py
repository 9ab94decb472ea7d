"""Scheduling router - FastAPI endpoints for booking and recurring series"""

import logging
import math
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import AVAILABILITY_RATE_LIMIT
from ...database import get_db
from ...models import Appointment, StaffUser
from ...models_recurring import RecurringAppointment, RecurringOccurrence
from ...rate_limiter import create_rate_limiter
from ...shared.clock import current_time
from .availability import AvailabilityResult
from .schemas import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentResponse,
    AppointmentUpdate,
    AvailabilityRequest,
    AvailabilityResponse,
    ConflictResponse,
    MaterializeResponse,
    OccurrenceAppointment,
    OccurrenceListResponse,
    OccurrenceMaterialize,
    OccurrenceResponse,
    OccurrenceUpdate,
    RecurringCreate,
    RecurringCreateResponse,
    RecurringListResponse,
    RecurringResponse,
    RecurringSortField,
    SortOrder,
)
from .service import AppointmentService, RecurringService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/booking", tags=["Booking"])

availability_rate_limit = create_rate_limiter(
    limit=AVAILABILITY_RATE_LIMIT, window_seconds=60, key_prefix="availability"
)


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


def get_recurring_service(db: Session = Depends(get_db)) -> RecurringService:
    """Dependency injection for RecurringService"""
    return RecurringService(db)


def _full_name(person) -> Optional[str]:
    if person is None:
        return None
    return f"{person.first_name} {person.last_name}"


def _appointment_response(a: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=a.id,
        patientId=a.patient_id,
        patientName=_full_name(a.patient),
        appointmentTypeId=a.appointment_type_id,
        appointmentTypeName=a.appointment_type.name if a.appointment_type else None,
        providerId=a.provider_id,
        providerName=_full_name(a.provider),
        chairId=a.chair_id,
        roomId=a.room_id,
        startTime=a.start_time,
        endTime=a.end_time,
        duration=a.duration,
        status=a.status,
        confirmationStatus=a.confirmation_status,
        source=a.source,
        notes=a.notes,
        cancellationReason=a.cancellation_reason,
        createdAt=a.created_at,
    )


def _series_fields(s: RecurringAppointment) -> dict:
    return dict(
        id=s.id,
        patientId=s.patient_id,
        patientName=_full_name(s.patient),
        appointmentTypeId=s.appointment_type_id,
        appointmentTypeName=s.appointment_type.name if s.appointment_type else None,
        providerId=s.provider_id,
        providerName=_full_name(s.provider),
        chairId=s.chair_id,
        name=s.name,
        duration=s.duration,
        preferredTime=s.preferred_time,
        preferredDayOfWeek=s.preferred_day_of_week,
        pattern=s.pattern,
        interval=s.interval,
        daysOfWeek=s.days_of_week or [],
        dayOfMonth=s.day_of_month,
        weekOfMonth=s.week_of_month,
        startDate=s.start_date,
        endDate=s.end_date,
        maxOccurrences=s.max_occurrences,
        status=s.status,
        occurrencesCreated=s.occurrences_created,
        lastGeneratedDate=s.last_generated_date,
        notes=s.notes,
        createdAt=s.created_at,
    )


def _occurrence_response(o: RecurringOccurrence) -> OccurrenceResponse:
    appointment = None
    if o.appointment is not None:
        appointment = OccurrenceAppointment(
            id=o.appointment.id,
            status=o.appointment.status,
            startTime=o.appointment.start_time,
            endTime=o.appointment.end_time,
            confirmationStatus=o.appointment.confirmation_status,
        )
    return OccurrenceResponse(
        id=o.id,
        occurrenceNumber=o.occurrence_number,
        scheduledDate=o.scheduled_date,
        scheduledTime=o.scheduled_time,
        status=o.status,
        appointmentId=o.appointment_id,
        skippedReason=o.skipped_reason,
        isModified=bool(o.is_modified),
        modifiedAt=o.modified_at,
        appointment=appointment,
    )


def _availability_response(result: AvailabilityResult) -> AvailabilityResponse:
    return AvailabilityResponse(
        isAvailable=result.is_available,
        conflicts=[
            ConflictResponse(
                resourceType=c.resource_type.value,
                appointmentId=c.appointment_id,
                startTime=c.start_time,
                endTime=c.end_time,
                description=c.description,
            )
            for c in result.conflicts
        ],
    )


# ============================================================================
# AVAILABILITY & APPOINTMENTS
# ============================================================================


@router.post("/availability", response_model=AvailabilityResponse)
async def check_availability(
    data: AvailabilityRequest,
    _: None = Depends(availability_rate_limit),
    current_user: StaffUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Check whether a provider (and optional chair/room) is free for a window"""
    return _availability_response(service.check_availability(data, current_user))


@router.post("/appointments", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_user: StaffUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book an appointment after checking provider, chair and room availability"""
    return _appointment_response(service.create_appointment(data, current_user))


@router.get("/appointments", response_model=list[AppointmentResponse])
async def list_appointments(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    provider_id: Optional[int] = Query(None, alias="providerId"),
    patient_id: Optional[int] = Query(None, alias="patientId"),
    status: Optional[str] = Query(None),
    current_user: StaffUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """List appointments in a date range"""
    appointments = service.list_appointments(
        current_user, start, end, provider_id, patient_id, status
    )
    return [_appointment_response(a) for a in appointments]


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    current_user: StaffUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return _appointment_response(service.get_appointment(appointment_id, current_user))


@router.patch("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    current_user: StaffUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Reschedule or reassign an appointment"""
    return _appointment_response(
        service.reschedule_appointment(appointment_id, data, current_user)
    )


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    data: AppointmentCancel,
    now: datetime = Depends(current_time),
    current_user: StaffUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel an appointment; it stops blocking its provider, chair and room"""
    return _appointment_response(
        service.cancel_appointment(appointment_id, data, current_user, now)
    )


# ============================================================================
# RECURRING SERIES
# ============================================================================


@router.post("/recurring", response_model=RecurringCreateResponse, status_code=201)
async def create_recurring(
    data: RecurringCreate,
    current_user: StaffUser = Depends(get_current_user),
    service: RecurringService = Depends(get_recurring_service),
):
    """Create a recurring series and generate its occurrences"""
    series, generated = service.create_series(data, current_user)
    return RecurringCreateResponse(**_series_fields(series), occurrencesGenerated=generated)


@router.get("/recurring", response_model=RecurringListResponse)
async def list_recurring(
    patient_id: Optional[int] = Query(None, alias="patientId"),
    provider_id: Optional[int] = Query(None, alias="providerId"),
    appointment_type_id: Optional[int] = Query(None, alias="appointmentTypeId"),
    status: Optional[str] = Query(None),
    pattern: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    sort_by: RecurringSortField = Query("startDate", alias="sortBy"),
    sort_order: SortOrder = Query("asc", alias="sortOrder"),
    current_user: StaffUser = Depends(get_current_user),
    service: RecurringService = Depends(get_recurring_service),
):
    """List recurring series with filters, sorting and pagination"""
    filters = {
        "patient_id": patient_id,
        "provider_id": provider_id,
        "appointment_type_id": appointment_type_id,
        "status": status,
        "pattern": pattern,
        "search": search,
    }
    items, total = service.list_series(
        current_user, filters, page, page_size, sort_by, sort_order
    )
    return RecurringListResponse(
        items=[RecurringResponse(**_series_fields(s)) for s in items],
        total=total,
        page=page,
        pageSize=page_size,
        totalPages=math.ceil(total / page_size),
    )


@router.get("/recurring/{recurring_id}", response_model=RecurringResponse)
async def get_recurring(
    recurring_id: int,
    current_user: StaffUser = Depends(get_current_user),
    service: RecurringService = Depends(get_recurring_service),
):
    return RecurringResponse(**_series_fields(service.get_series(recurring_id, current_user)))


@router.get("/recurring/{recurring_id}/occurrences", response_model=OccurrenceListResponse)
async def list_occurrences(
    recurring_id: int,
    status: Optional[str] = Query(None),
    from_date: Optional[date] = Query(None, alias="fromDate"),
    to_date: Optional[date] = Query(None, alias="toDate"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100, alias="pageSize"),
    current_user: StaffUser = Depends(get_current_user),
    service: RecurringService = Depends(get_recurring_service),
):
    """List the occurrences of a series, with the appointment each one became"""
    items, total = service.list_occurrences(
        recurring_id, current_user, status, from_date, to_date, page, page_size
    )
    return OccurrenceListResponse(
        items=[_occurrence_response(o) for o in items],
        total=total,
        page=page,
        pageSize=page_size,
        totalPages=math.ceil(total / page_size),
    )


@router.put("/recurring/{recurring_id}/occurrences", response_model=OccurrenceResponse)
async def update_occurrence(
    recurring_id: int,
    data: OccurrenceUpdate,
    now: datetime = Depends(current_time),
    current_user: StaffUser = Depends(get_current_user),
    service: RecurringService = Depends(get_recurring_service),
):
    """Modify a single occurrence by its number"""
    return _occurrence_response(service.update_occurrence(recurring_id, data, current_user, now))


@router.post(
    "/recurring/{recurring_id}/occurrences", response_model=MaterializeResponse, status_code=201
)
async def materialize_occurrence(
    recurring_id: int,
    data: OccurrenceMaterialize,
    now: datetime = Depends(current_time),
    current_user: StaffUser = Depends(get_current_user),
    service: RecurringService = Depends(get_recurring_service),
):
    """Book a pending occurrence as a real appointment"""
    occurrence, appointment = service.materialize_occurrence(
        recurring_id, data, current_user, now
    )
    return MaterializeResponse(
        occurrence=_occurrence_response(occurrence),
        appointment=_appointment_response(appointment),
    )
