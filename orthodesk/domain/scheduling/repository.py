"""Scheduling repository - Database operations for appointments and recurring series"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, AppointmentType, Chair, Patient, Provider, Room
from ...models_recurring import RecurringAppointment, RecurringOccurrence

# Statuses that no longer hold a provider, chair or room
NON_BLOCKING_STATUSES = ("CANCELLED", "NO_SHOW")


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def find_overlapping(
        db: Session,
        clinic_id: int,
        resource_column,
        resource_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        """
        Find the earliest active appointment holding a resource during [start_time, end_time).

        An existing [apt_start, apt_end) conflicts when it:
            - starts at/before the window start and ends after it, or
            - starts before the window end and ends at/after it, or
            - lies entirely inside the window.
        Back-to-back appointments (apt_end == start_time) do not conflict.
        """
        query = db.query(Appointment).filter(
            Appointment.clinic_id == clinic_id,
            resource_column == resource_id,
            Appointment.status.notin_(NON_BLOCKING_STATUSES),
            Appointment.deleted_at.is_(None),
            or_(
                and_(Appointment.start_time <= start_time, Appointment.end_time > start_time),
                and_(Appointment.start_time < end_time, Appointment.end_time >= end_time),
                and_(Appointment.start_time >= start_time, Appointment.end_time <= end_time),
            ),
        )

        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        return query.order_by(Appointment.start_time.asc(), Appointment.id.asc()).first()

    @staticmethod
    def get_appointment_by_id(
        db: Session, appointment_id: int, clinic_id: int
    ) -> Optional[Appointment]:
        """Get a non-deleted appointment by ID"""
        return (
            db.query(Appointment)
            .options(
                joinedload(Appointment.patient),
                joinedload(Appointment.provider),
                joinedload(Appointment.appointment_type),
            )
            .filter(
                Appointment.id == appointment_id,
                Appointment.clinic_id == clinic_id,
                Appointment.deleted_at.is_(None),
            )
            .first()
        )

    @staticmethod
    def list_appointments(
        db: Session,
        clinic_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        provider_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        """List appointments ordered by start time with optional filters"""
        query = db.query(Appointment).filter(
            Appointment.clinic_id == clinic_id, Appointment.deleted_at.is_(None)
        )

        if start:
            query = query.filter(Appointment.start_time >= start)
        if end:
            query = query.filter(Appointment.start_time < end)
        if provider_id:
            query = query.filter(Appointment.provider_id == provider_id)
        if patient_id:
            query = query.filter(Appointment.patient_id == patient_id)
        if status:
            query = query.filter(Appointment.status == status)

        return query.order_by(Appointment.start_time.asc()).all()

    @staticmethod
    def create_appointment(db: Session, clinic_id: int, **appointment_data) -> Appointment:
        """Create a new appointment"""
        appointment = Appointment(clinic_id=clinic_id, **appointment_data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def update_appointment(db: Session, appointment: Appointment, **updates) -> Appointment:
        """Update an appointment with the given fields, None included"""
        for key, value in updates.items():
            if hasattr(appointment, key):
                setattr(appointment, key, value)

        db.commit()
        db.refresh(appointment)
        return appointment

    # Reference data lookups

    @staticmethod
    def get_patient(db: Session, patient_id: int, clinic_id: int) -> Optional[Patient]:
        return (
            db.query(Patient)
            .filter(Patient.id == patient_id, Patient.clinic_id == clinic_id)
            .first()
        )

    @staticmethod
    def get_active_provider(db: Session, provider_id: int, clinic_id: int) -> Optional[Provider]:
        return (
            db.query(Provider)
            .filter(
                Provider.id == provider_id,
                Provider.clinic_id == clinic_id,
                Provider.is_active.is_(True),
            )
            .first()
        )

    @staticmethod
    def get_active_appointment_type(
        db: Session, appointment_type_id: int, clinic_id: int
    ) -> Optional[AppointmentType]:
        return (
            db.query(AppointmentType)
            .filter(
                AppointmentType.id == appointment_type_id,
                AppointmentType.clinic_id == clinic_id,
                AppointmentType.is_active.is_(True),
            )
            .first()
        )

    @staticmethod
    def get_chair(db: Session, chair_id: int, clinic_id: int) -> Optional[Chair]:
        return db.query(Chair).filter(Chair.id == chair_id, Chair.clinic_id == clinic_id).first()

    @staticmethod
    def get_room(db: Session, room_id: int, clinic_id: int) -> Optional[Room]:
        return db.query(Room).filter(Room.id == room_id, Room.clinic_id == clinic_id).first()


class RecurringRepository:
    """Repository for recurring series and their occurrences"""

    SORT_COLUMNS = {
        "startDate": RecurringAppointment.start_date,
        "createdAt": RecurringAppointment.created_at,
        "status": RecurringAppointment.status,
    }

    @staticmethod
    def create_series(
        db: Session, series: RecurringAppointment, occurrences: list[RecurringOccurrence]
    ) -> RecurringAppointment:
        """Persist a series together with its generated occurrences in one commit"""
        series.occurrences = occurrences
        series.occurrences_created = len(occurrences)
        series.last_generated_date = occurrences[-1].scheduled_date if occurrences else None
        db.add(series)
        db.commit()
        db.refresh(series)
        return series

    @staticmethod
    def get_series_by_id(
        db: Session, recurring_id: int, clinic_id: int
    ) -> Optional[RecurringAppointment]:
        return (
            db.query(RecurringAppointment)
            .options(
                joinedload(RecurringAppointment.patient),
                joinedload(RecurringAppointment.provider),
                joinedload(RecurringAppointment.appointment_type),
            )
            .filter(
                RecurringAppointment.id == recurring_id,
                RecurringAppointment.clinic_id == clinic_id,
            )
            .first()
        )

    @classmethod
    def list_series(
        cls,
        db: Session,
        clinic_id: int,
        filters: dict,
        page: int,
        page_size: int,
        sort_by: str,
        sort_order: str,
    ) -> tuple[list[RecurringAppointment], int]:
        """
        List series with filters, sorting and pagination.
        Returns (items, total)
        """
        query = db.query(RecurringAppointment).filter(
            RecurringAppointment.clinic_id == clinic_id
        )

        if filters.get("patient_id"):
            query = query.filter(RecurringAppointment.patient_id == filters["patient_id"])
        if filters.get("provider_id"):
            query = query.filter(RecurringAppointment.provider_id == filters["provider_id"])
        if filters.get("appointment_type_id"):
            query = query.filter(
                RecurringAppointment.appointment_type_id == filters["appointment_type_id"]
            )
        if filters.get("status"):
            query = query.filter(RecurringAppointment.status == filters["status"])
        if filters.get("pattern"):
            query = query.filter(RecurringAppointment.pattern == filters["pattern"])
        if filters.get("search"):
            term = f"%{filters['search'].lower()}%"
            query = query.join(Patient, RecurringAppointment.patient_id == Patient.id).filter(
                or_(
                    func.lower(Patient.first_name).like(term),
                    func.lower(Patient.last_name).like(term),
                )
            )

        total = query.count()

        column = cls.SORT_COLUMNS.get(sort_by, RecurringAppointment.start_date)
        ordering = column.asc() if sort_order == "asc" else column.desc()

        items = (
            query.order_by(ordering, RecurringAppointment.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    @staticmethod
    def list_occurrences(
        db: Session,
        recurring_id: int,
        clinic_id: int,
        status: Optional[str],
        from_date: Optional[date],
        to_date: Optional[date],
        page: int,
        page_size: int,
    ) -> tuple[list[RecurringOccurrence], int]:
        """
        List occurrences of a series ordered by date.
        Returns (items, total)
        """
        query = (
            db.query(RecurringOccurrence)
            .options(joinedload(RecurringOccurrence.appointment))
            .filter(
                RecurringOccurrence.recurring_id == recurring_id,
                RecurringOccurrence.clinic_id == clinic_id,
            )
        )

        if status:
            query = query.filter(RecurringOccurrence.status == status)
        if from_date:
            query = query.filter(RecurringOccurrence.scheduled_date >= from_date)
        if to_date:
            query = query.filter(RecurringOccurrence.scheduled_date <= to_date)

        total = query.count()
        items = (
            query.order_by(
                RecurringOccurrence.scheduled_date.asc(),
                RecurringOccurrence.occurrence_number.asc(),
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    @staticmethod
    def get_occurrence(
        db: Session, recurring_id: int, clinic_id: int, occurrence_number: int
    ) -> Optional[RecurringOccurrence]:
        return (
            db.query(RecurringOccurrence)
            .filter(
                RecurringOccurrence.recurring_id == recurring_id,
                RecurringOccurrence.clinic_id == clinic_id,
                RecurringOccurrence.occurrence_number == occurrence_number,
            )
            .first()
        )

    @staticmethod
    def save(db: Session, *objects) -> None:
        """Commit pending changes and refresh the given objects"""
        for obj in objects:
            db.add(obj)
        db.commit()
        for obj in objects:
            db.refresh(obj)
