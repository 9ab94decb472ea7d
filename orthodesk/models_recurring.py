"""
Recurring Appointment Models for treatment-plan series
"""

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class RecurringAppointment(Base):
    """A recurring series definition (e.g. adjustment every 6 weeks)"""

    __tablename__ = "recurring_appointments"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    appointment_type_id = Column(Integer, ForeignKey("appointment_types.id"), nullable=False)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    chair_id = Column(Integer, ForeignKey("chairs.id"), nullable=True)

    name = Column(String(200), nullable=True)
    duration = Column(Integer, nullable=False)  # minutes
    preferred_time = Column(String(5), nullable=False)  # HH:MM format
    preferred_day_of_week = Column(Integer, nullable=True)  # 0=Sunday .. 6=Saturday

    # Pattern: DAILY, WEEKLY, BIWEEKLY, MONTHLY, CUSTOM
    pattern = Column(String(20), nullable=False, index=True)
    interval = Column(Integer, default=1, nullable=False)  # CUSTOM: every N weeks
    days_of_week = Column(JSON, default=list, nullable=False)  # WEEKLY / CUSTOM
    day_of_month = Column(Integer, nullable=True)  # MONTHLY fixed-date mode
    week_of_month = Column(Integer, nullable=True)  # MONTHLY nth-weekday mode, -1 = last

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    max_occurrences = Column(Integer, nullable=True)

    # Status: ACTIVE, PAUSED, COMPLETED, CANCELLED
    status = Column(String(20), default="ACTIVE", nullable=False, index=True)
    occurrences_created = Column(Integer, default=0, nullable=False)
    last_generated_date = Column(Date, nullable=True)

    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("staff_users.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient")
    provider = relationship("Provider")
    appointment_type = relationship("AppointmentType")
    occurrences = relationship(
        "RecurringOccurrence",
        back_populates="recurring",
        order_by="RecurringOccurrence.occurrence_number",
        cascade="all, delete-orphan",
    )


class RecurringOccurrence(Base):
    """One generated date within a series, before or after it becomes an appointment"""

    __tablename__ = "recurring_occurrences"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    recurring_id = Column(
        Integer, ForeignKey("recurring_appointments.id"), nullable=False, index=True
    )
    occurrence_number = Column(Integer, nullable=False)  # Sequential number within series
    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(String(5), nullable=False)  # HH:MM format

    # Status workflow: PENDING → SCHEDULED (appointment created) | SKIPPED | CANCELLED
    # MODIFIED marks a pending occurrence moved by staff
    status = Column(String(20), default="PENDING", nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)
    skipped_reason = Column(String(500), nullable=True)

    is_modified = Column(Boolean, default=False, nullable=False)
    modified_at = Column(DateTime, nullable=True)
    modified_by = Column(Integer, ForeignKey("staff_users.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    recurring = relationship("RecurringAppointment", back_populates="occurrences")
    appointment = relationship("Appointment")
