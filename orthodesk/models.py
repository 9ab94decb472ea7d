import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Clinic(Base):
    __tablename__ = "clinics"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, nullable=False, index=True, default=generate_public_id
    )
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), default="America/New_York")  # display only, no conversion
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class StaffUser(Base):
    """Authenticated staff member; every request is scoped to their clinic"""

    __tablename__ = "staff_users"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(String(50), default="front_desk")  # front_desk, assistant, doctor, admin
    api_token_hash = Column(String(64), unique=True, index=True, nullable=True)  # sha256 hex
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    clinic = relationship("Clinic")


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)  # E.164
    date_of_birth = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Provider(Base):
    """Bookable staff member (orthodontist, hygienist, assistant)"""

    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    title = Column(String(50), nullable=True)  # DDS, DMD, RDH
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())


class Chair(Base):
    __tablename__ = "chairs"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class AppointmentType(Base):
    __tablename__ = "appointment_types"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False)  # e.g. ADJ, BOND, DEBOND
    name = Column(String(200), nullable=False)
    default_duration = Column(Integer, nullable=False)  # minutes
    color = Column(String(7), nullable=True)  # #RRGGBB
    requires_chair = Column(Boolean, default=False, nullable=False)
    requires_room = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())


class Appointment(Base):
    """A booked block of provider (and optionally chair/room) time"""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    appointment_type_id = Column(Integer, ForeignKey("appointment_types.id"), nullable=False)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    chair_id = Column(Integer, ForeignKey("chairs.id"), nullable=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True, index=True)

    # Clinic-local wall clock, no timezone conversion
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False, index=True)
    duration = Column(Integer, nullable=False)  # minutes

    # SCHEDULED, CONFIRMED, ARRIVED, IN_PROGRESS, COMPLETED, NO_SHOW, CANCELLED
    status = Column(String(20), default="SCHEDULED", nullable=False, index=True)
    confirmation_status = Column(String(20), default="UNCONFIRMED", nullable=False)
    source = Column(String(20), default="STAFF", nullable=False)  # STAFF, PHONE, ONLINE, ...

    notes = Column(Text, nullable=True)
    patient_notes = Column(Text, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    booked_by = Column(Integer, ForeignKey("staff_users.id"), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)  # soft delete

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient")
    provider = relationship("Provider")
    appointment_type = relationship("AppointmentType")
