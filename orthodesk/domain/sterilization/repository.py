"""Sterilization repository - Database operations for cycles and packages"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Appointment
from ...models_sterilization import SterilizationCycle, SterilizationPackage


class SterilizationRepository:
    """Repository for sterilization cycle and package operations"""

    @staticmethod
    def create_cycle(db: Session, clinic_id: int, **cycle_data) -> SterilizationCycle:
        cycle = SterilizationCycle(clinic_id=clinic_id, **cycle_data)
        db.add(cycle)
        db.commit()
        db.refresh(cycle)
        return cycle

    @staticmethod
    def get_cycle_by_id(db: Session, cycle_id: int, clinic_id: int) -> Optional[SterilizationCycle]:
        return (
            db.query(SterilizationCycle)
            .filter(SterilizationCycle.id == cycle_id, SterilizationCycle.clinic_id == clinic_id)
            .first()
        )

    @staticmethod
    def get_cycle_by_number(
        db: Session, cycle_number: str, clinic_id: int
    ) -> Optional[SterilizationCycle]:
        """Most recent cycle with this number (numbers can repeat across machines)"""
        return (
            db.query(SterilizationCycle)
            .filter(
                SterilizationCycle.cycle_number == cycle_number,
                SterilizationCycle.clinic_id == clinic_id,
            )
            .order_by(SterilizationCycle.completed_at.desc())
            .first()
        )

    @staticmethod
    def create_packages(
        db: Session, packages: list[SterilizationPackage]
    ) -> list[SterilizationPackage]:
        db.add_all(packages)
        db.commit()
        for package in packages:
            db.refresh(package)
        return packages

    @staticmethod
    def get_package_by_id(
        db: Session, package_id: int, clinic_id: int
    ) -> Optional[SterilizationPackage]:
        return (
            db.query(SterilizationPackage)
            .options(joinedload(SterilizationPackage.cycle))
            .filter(
                SterilizationPackage.id == package_id,
                SterilizationPackage.clinic_id == clinic_id,
            )
            .first()
        )

    @staticmethod
    def list_expiring(
        db: Session, clinic_id: int, from_date: date, to_date: date
    ) -> list[SterilizationPackage]:
        """Available, still sterile packages whose expiration falls within (from_date, to_date]"""
        return (
            db.query(SterilizationPackage)
            .options(joinedload(SterilizationPackage.cycle))
            .filter(
                SterilizationPackage.clinic_id == clinic_id,
                SterilizationPackage.status == "AVAILABLE",
                SterilizationPackage.expires_on > from_date,
                SterilizationPackage.expires_on <= to_date,
            )
            .order_by(SterilizationPackage.expires_on.asc(), SterilizationPackage.id.asc())
            .all()
        )

    @staticmethod
    def get_appointment(db: Session, appointment_id: int, clinic_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(
                Appointment.id == appointment_id,
                Appointment.clinic_id == clinic_id,
                Appointment.deleted_at.is_(None),
            )
            .first()
        )

    @staticmethod
    def save(db: Session, package: SterilizationPackage) -> SterilizationPackage:
        db.commit()
        db.refresh(package)
        return package
