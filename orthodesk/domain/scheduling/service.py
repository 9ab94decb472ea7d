"""Scheduling service - Business logic for bookings and recurring series"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment, AppointmentType, StaffUser
from ...models_recurring import RecurringAppointment, RecurringOccurrence
from ...shared.errors import api_error
from ...shared.validators import parse_time_of_day
from .availability import AppointmentWindow, AvailabilityResult, check_availability
from .recurrence import OccurrenceStatus, expand
from .repository import AppointmentRepository, RecurringRepository
from .schemas import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentUpdate,
    AvailabilityRequest,
    OccurrenceMaterialize,
    OccurrenceUpdate,
    RecurringCreate,
)

logger = logging.getLogger(__name__)

FINAL_APPOINTMENT_STATUSES = ("CANCELLED", "COMPLETED", "NO_SHOW")


def conflict_payload(result: AvailabilityResult) -> list[dict]:
    """Serialize conflicts for an error body"""
    return [
        {
            "resourceType": c.resource_type.value,
            "appointmentId": c.appointment_id,
            "startTime": c.start_time.isoformat(),
            "endTime": c.end_time.isoformat(),
            "description": c.description,
        }
        for c in result.conflicts
    ]


class AppointmentService:
    """Service layer for single-appointment booking"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()

    # Lookups shared with the recurring workflow

    def require_patient(self, patient_id: int, user: StaffUser):
        patient = self.repo.get_patient(self.db, patient_id, user.clinic_id)
        if not patient:
            raise api_error(404, "PATIENT_NOT_FOUND", "Patient not found")
        return patient

    def require_provider(self, provider_id: int, user: StaffUser):
        provider = self.repo.get_active_provider(self.db, provider_id, user.clinic_id)
        if not provider:
            raise api_error(404, "PROVIDER_NOT_FOUND", "Provider not found or inactive")
        return provider

    def require_appointment_type(self, appointment_type_id: int, user: StaffUser) -> AppointmentType:
        appointment_type = self.repo.get_active_appointment_type(
            self.db, appointment_type_id, user.clinic_id
        )
        if not appointment_type:
            raise api_error(
                404, "APPOINTMENT_TYPE_NOT_FOUND", "Appointment type not found or inactive"
            )
        return appointment_type

    def require_chair(self, chair_id: Optional[int], user: StaffUser):
        if chair_id is not None and not self.repo.get_chair(self.db, chair_id, user.clinic_id):
            raise api_error(404, "CHAIR_NOT_FOUND", "Chair not found")

    def require_room(self, room_id: Optional[int], user: StaffUser):
        if room_id is not None and not self.repo.get_room(self.db, room_id, user.clinic_id):
            raise api_error(404, "ROOM_NOT_FOUND", "Room not found")

    def ensure_available(self, window: AppointmentWindow, user: StaffUser, code: Optional[str] = None):
        """
        Raise 409 when the window conflicts with existing bookings.

        Without an explicit code the error is named after the first conflicting
        resource (PROVIDER_CONFLICT, CHAIR_CONFLICT or ROOM_CONFLICT).
        """
        result = check_availability(self.db, user.clinic_id, window)
        if result.is_available:
            return

        first = result.conflicts[0]
        logger.warning(
            f"⚠️ Booking conflict for clinic {user.clinic_id}: {first.resource_type.value} "
            f"already booked by appointment {first.appointment_id}"
        )
        raise api_error(
            409,
            code or f"{first.resource_type.value.upper()}_CONFLICT",
            first.description if code is None else "Time slot has a conflict with an existing appointment",
            {"conflicts": conflict_payload(result)},
        )

    # Availability

    def check_availability(self, data: AvailabilityRequest, user: StaffUser) -> AvailabilityResult:
        window = AppointmentWindow(
            provider_id=data.providerId,
            start_time=data.startTime,
            end_time=data.endTime,
            chair_id=data.chairId,
            room_id=data.roomId,
            exclude_appointment_id=data.excludeAppointmentId,
        )
        return check_availability(self.db, user.clinic_id, window)

    # Appointments

    def get_appointment(self, appointment_id: int, user: StaffUser) -> Appointment:
        appointment = self.repo.get_appointment_by_id(self.db, appointment_id, user.clinic_id)
        if not appointment:
            raise api_error(404, "APPOINTMENT_NOT_FOUND", "Appointment not found")
        return appointment

    def list_appointments(
        self,
        user: StaffUser,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        provider_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        return self.repo.list_appointments(
            self.db, user.clinic_id, start, end, provider_id, patient_id, status
        )

    def create_appointment(self, data: AppointmentCreate, user: StaffUser) -> Appointment:
        """Validate references, check availability and book"""
        logger.info(f"📥 Creating appointment for patient {data.patientId} (clinic {user.clinic_id})")

        self.require_patient(data.patientId, user)
        appointment_type = self.require_appointment_type(data.appointmentTypeId, user)
        self.require_provider(data.providerId, user)
        self.require_chair(data.chairId, user)
        self.require_room(data.roomId, user)

        if appointment_type.requires_chair and data.chairId is None:
            raise api_error(
                400, "CHAIR_REQUIRED", f"{appointment_type.name} appointments need a chair"
            )
        if appointment_type.requires_room and data.roomId is None:
            raise api_error(
                400, "ROOM_REQUIRED", f"{appointment_type.name} appointments need a room"
            )

        if data.endTime is not None:
            end_time = data.endTime
            duration = int((end_time - data.startTime).total_seconds() // 60)
        else:
            duration = data.duration or appointment_type.default_duration
            end_time = data.startTime + timedelta(minutes=duration)

        window = AppointmentWindow(
            provider_id=data.providerId,
            start_time=data.startTime,
            end_time=end_time,
            chair_id=data.chairId,
            room_id=data.roomId,
        )
        self.ensure_available(window, user)

        appointment = self.repo.create_appointment(
            self.db,
            user.clinic_id,
            patient_id=data.patientId,
            appointment_type_id=data.appointmentTypeId,
            provider_id=data.providerId,
            chair_id=data.chairId,
            room_id=data.roomId,
            start_time=data.startTime,
            end_time=end_time,
            duration=duration,
            status="SCHEDULED",
            source=data.source,
            notes=data.notes,
            patient_notes=data.patientNotes,
            booked_by=user.id,
        )
        logger.info(f"✅ Appointment {appointment.id} booked {appointment.start_time:%Y-%m-%d %H:%M}")
        return appointment

    def reschedule_appointment(
        self, appointment_id: int, data: AppointmentUpdate, user: StaffUser
    ) -> Appointment:
        """Move an appointment or change its resources, checking against everything but itself"""
        appointment = self.get_appointment(appointment_id, user)
        if appointment.status in FINAL_APPOINTMENT_STATUSES:
            raise api_error(
                400,
                "INVALID_STATUS",
                f"Cannot reschedule an appointment with status {appointment.status}",
            )

        fields = data.model_fields_set
        start_time = data.startTime or appointment.start_time

        if data.endTime is not None:
            end_time = data.endTime
        elif data.duration is not None:
            end_time = start_time + timedelta(minutes=data.duration)
        else:
            end_time = start_time + timedelta(minutes=appointment.duration)

        if end_time <= start_time:
            raise api_error(400, "INVALID_TIME_RANGE", "End time must be after start time")

        provider_id = data.providerId or appointment.provider_id
        if provider_id != appointment.provider_id:
            self.require_provider(provider_id, user)

        chair_id = data.chairId if "chairId" in fields else appointment.chair_id
        room_id = data.roomId if "roomId" in fields else appointment.room_id
        self.require_chair(chair_id, user)
        self.require_room(room_id, user)

        window = AppointmentWindow(
            provider_id=provider_id,
            start_time=start_time,
            end_time=end_time,
            chair_id=chair_id,
            room_id=room_id,
            exclude_appointment_id=appointment.id,
        )
        self.ensure_available(window, user)

        updates = {
            "start_time": start_time,
            "end_time": end_time,
            "duration": int((end_time - start_time).total_seconds() // 60),
            "provider_id": provider_id,
            "chair_id": chair_id,
            "room_id": room_id,
        }
        if "notes" in fields:
            updates["notes"] = data.notes

        appointment = self.repo.update_appointment(self.db, appointment, **updates)
        logger.info(f"✅ Appointment {appointment.id} rescheduled to {start_time:%Y-%m-%d %H:%M}")
        return appointment

    def cancel_appointment(
        self, appointment_id: int, data: AppointmentCancel, user: StaffUser, now: datetime
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id, user)
        if appointment.status == "CANCELLED":
            raise api_error(400, "ALREADY_CANCELLED", "Appointment is already cancelled")

        appointment = self.repo.update_appointment(
            self.db,
            appointment,
            status="CANCELLED",
            cancellation_reason=data.reason,
            cancelled_at=now,
        )
        logger.info(f"🗑️ Appointment {appointment.id} cancelled")
        return appointment


class RecurringService:
    """Service layer for recurring series and their occurrences"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = RecurringRepository()
        self.appointments = AppointmentService(db)

    def create_series(self, data: RecurringCreate, user: StaffUser) -> tuple[RecurringAppointment, int]:
        """
        Create a series and generate all of its occurrences as PENDING.
        Returns (series, occurrences_generated)
        """
        logger.info(f"📥 Creating {data.pattern.value} series for patient {data.patientId}")

        self.appointments.require_patient(data.patientId, user)
        self.appointments.require_provider(data.providerId, user)
        self.appointments.require_appointment_type(data.appointmentTypeId, user)
        self.appointments.require_chair(data.chairId, user)

        definition = data.to_definition()

        occurrences = [
            RecurringOccurrence(
                clinic_id=user.clinic_id,
                occurrence_number=occ.occurrence_number,
                scheduled_date=occ.scheduled_date,
                scheduled_time=occ.scheduled_time,
                status=occ.status.value,
            )
            for occ in expand(definition)
        ]

        series = RecurringAppointment(
            clinic_id=user.clinic_id,
            patient_id=data.patientId,
            appointment_type_id=data.appointmentTypeId,
            provider_id=data.providerId,
            chair_id=data.chairId,
            name=data.name,
            duration=data.duration,
            preferred_time=data.preferredTime,
            preferred_day_of_week=data.preferredDayOfWeek,
            pattern=data.pattern.value,
            interval=data.interval,
            days_of_week=list(data.daysOfWeek),
            day_of_month=data.dayOfMonth,
            week_of_month=data.weekOfMonth,
            start_date=data.startDate,
            end_date=data.endDate,
            max_occurrences=data.maxOccurrences,
            status="ACTIVE",
            notes=data.notes,
            created_by=user.id,
        )
        series = self.repo.create_series(self.db, series, occurrences)

        logger.info(f"✅ Series {series.id} created with {len(occurrences)} occurrences")
        return series, len(occurrences)

    def get_series(self, recurring_id: int, user: StaffUser) -> RecurringAppointment:
        series = self.repo.get_series_by_id(self.db, recurring_id, user.clinic_id)
        if not series:
            raise api_error(404, "RECURRING_NOT_FOUND", "Recurring appointment series not found")
        return series

    def list_series(
        self,
        user: StaffUser,
        filters: dict,
        page: int,
        page_size: int,
        sort_by: str,
        sort_order: str,
    ) -> tuple[list[RecurringAppointment], int]:
        # "all" and "" mean no filter
        cleaned = {k: v for k, v in filters.items() if v not in (None, "", "all")}
        return self.repo.list_series(
            self.db, user.clinic_id, cleaned, page, page_size, sort_by, sort_order
        )

    def list_occurrences(
        self,
        recurring_id: int,
        user: StaffUser,
        status: Optional[str],
        from_date: Optional[date],
        to_date: Optional[date],
        page: int,
        page_size: int,
    ) -> tuple[list[RecurringOccurrence], int]:
        self.get_series(recurring_id, user)
        return self.repo.list_occurrences(
            self.db, recurring_id, user.clinic_id, status, from_date, to_date, page, page_size
        )

    def _require_occurrence(
        self, recurring_id: int, occurrence_number: int, user: StaffUser
    ) -> RecurringOccurrence:
        occurrence = self.repo.get_occurrence(
            self.db, recurring_id, user.clinic_id, occurrence_number
        )
        if not occurrence:
            raise api_error(404, "OCCURRENCE_NOT_FOUND", "Occurrence not found")
        return occurrence

    def update_occurrence(
        self, recurring_id: int, data: OccurrenceUpdate, user: StaffUser, now: datetime
    ) -> RecurringOccurrence:
        """Modify the date, time, status or skip reason of one occurrence"""
        self.get_series(recurring_id, user)
        occurrence = self._require_occurrence(recurring_id, data.occurrenceNumber, user)

        if (
            occurrence.status == OccurrenceStatus.SCHEDULED.value
            and occurrence.scheduled_date < now.date()
        ):
            raise api_error(400, "CANNOT_MODIFY_PAST", "Cannot modify past scheduled occurrences")

        fields = data.model_fields_set
        if "scheduledDate" in fields and data.scheduledDate is not None:
            occurrence.scheduled_date = data.scheduledDate
        if "scheduledTime" in fields and data.scheduledTime is not None:
            occurrence.scheduled_time = data.scheduledTime
        if "status" in fields and data.status is not None:
            occurrence.status = data.status.value
        if "skippedReason" in fields:
            occurrence.skipped_reason = data.skippedReason

        occurrence.is_modified = True
        occurrence.modified_at = now
        occurrence.modified_by = user.id

        self.repo.save(self.db, occurrence)
        logger.info(
            f"✏️ Occurrence {occurrence.occurrence_number} of series {recurring_id} modified"
        )
        return occurrence

    def materialize_occurrence(
        self, recurring_id: int, data: OccurrenceMaterialize, user: StaffUser, now: datetime
    ) -> tuple[RecurringOccurrence, Appointment]:
        """Turn a pending occurrence into a booked appointment"""
        series = self.get_series(recurring_id, user)
        occurrence = self.repo.get_occurrence(
            self.db, recurring_id, user.clinic_id, data.occurrenceNumber
        )
        if not occurrence or occurrence.status != OccurrenceStatus.PENDING.value:
            raise api_error(404, "OCCURRENCE_NOT_FOUND", "Pending occurrence not found")

        start_time = datetime.combine(
            occurrence.scheduled_date, parse_time_of_day(occurrence.scheduled_time)
        )
        if start_time < now:
            raise api_error(
                400, "OCCURRENCE_IN_PAST", "Cannot create appointment for past occurrence"
            )
        end_time = start_time + timedelta(minutes=series.duration)

        window = AppointmentWindow(
            provider_id=series.provider_id,
            start_time=start_time,
            end_time=end_time,
            chair_id=series.chair_id,
        )
        self.appointments.ensure_available(window, user, code="CONFLICT")

        appointment = Appointment(
            clinic_id=user.clinic_id,
            patient_id=series.patient_id,
            appointment_type_id=series.appointment_type_id,
            provider_id=series.provider_id,
            chair_id=series.chair_id,
            start_time=start_time,
            end_time=end_time,
            duration=series.duration,
            status="SCHEDULED",
            source="TREATMENT_PLAN",
            booked_by=user.id,
            notes=data.notes or series.notes,
        )
        self.db.add(appointment)
        self.db.flush()

        occurrence.status = OccurrenceStatus.SCHEDULED.value
        occurrence.appointment_id = appointment.id
        self.repo.save(self.db, appointment, occurrence)

        logger.info(
            f"✅ Occurrence {occurrence.occurrence_number} of series {recurring_id} "
            f"booked as appointment {appointment.id}"
        )
        return occurrence, appointment
