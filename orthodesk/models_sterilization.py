"""
Sterilization Models for instrument package chain of custody
"""

import uuid

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for label references"""
    return uuid.uuid4().hex


class SterilizationCycle(Base):
    """A single autoclave run"""

    __tablename__ = "sterilization_cycles"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(32), unique=True, nullable=False, index=True, default=generate_public_id
    )
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    cycle_number = Column(String(50), nullable=False, index=True)  # e.g. 2312, CYC-2024-001
    cycle_type = Column(String(30), nullable=True)  # STEAM_GRAVITY, STEAM_PREVACUUM, ...
    equipment_name = Column(String(100), nullable=True)  # e.g. Stclave-2

    completed_at = Column(DateTime, nullable=False)  # Clinic-local wall clock
    temperature = Column(Float, nullable=True)  # °C
    pressure = Column(Float, nullable=True)  # PSI
    exposure_time = Column(Integer, nullable=True)  # minutes

    # Status: COMPLETED, FAILED, QUARANTINED
    status = Column(String(20), default="COMPLETED", nullable=False)
    notes = Column(Text, nullable=True)
    operator_id = Column(Integer, ForeignKey("staff_users.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    packages = relationship("SterilizationPackage", back_populates="cycle")


class SterilizationPackage(Base):
    """A wrapped instrument pack produced by a cycle and tracked until used"""

    __tablename__ = "sterilization_packages"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    cycle_id = Column(Integer, ForeignKey("sterilization_cycles.id"), nullable=False, index=True)
    package_type = Column(String(30), default="Cassette", nullable=False)  # Cassette, Pouch, Wrap
    label_content = Column(String(255), nullable=False)  # Text encoded into the printed QR code

    sterilized_on = Column(Date, nullable=False)
    expires_on = Column(Date, nullable=False, index=True)

    # Status workflow: AVAILABLE → USED | EXPIRED | QUARANTINED
    status = Column(String(20), default="AVAILABLE", nullable=False, index=True)
    used_at = Column(DateTime, nullable=True)
    used_for_appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)
    used_by = Column(Integer, ForeignKey("staff_users.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    cycle = relationship("SterilizationCycle", back_populates="packages")
