"""Sterilization service - Chain of custody for instrument packages"""

import logging
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from ...config import STERILIZATION_EXPIRATION_DAYS
from ...models import StaffUser
from ...models_sterilization import SterilizationCycle, SterilizationPackage
from ...shared.errors import api_error
from .labels import (
    LabelData,
    calculate_expiration_date,
    days_until_expiration,
    decode_label,
    encode_json_label,
    encode_scanner_label,
    is_still_sterile,
)
from .repository import SterilizationRepository
from .schemas import CycleCreate, PackageCreate, PackageUse

logger = logging.getLogger(__name__)


class SterilizationService:
    """Service layer for sterilization cycles, packages and label scans"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SterilizationRepository()

    def create_cycle(self, data: CycleCreate, user: StaffUser) -> SterilizationCycle:
        cycle = self.repo.create_cycle(
            self.db,
            user.clinic_id,
            cycle_number=data.cycleNumber,
            cycle_type=data.cycleType,
            equipment_name=data.equipmentName,
            completed_at=data.completedAt,
            temperature=data.temperature,
            pressure=data.pressure,
            exposure_time=data.exposureTime,
            status=data.status,
            notes=data.notes,
            operator_id=user.id,
        )
        logger.info(f"✅ Sterilization cycle {cycle.cycle_number} recorded ({cycle.status})")
        return cycle

    def get_cycle(self, cycle_id: int, user: StaffUser) -> SterilizationCycle:
        cycle = self.repo.get_cycle_by_id(self.db, cycle_id, user.clinic_id)
        if not cycle:
            raise api_error(404, "CYCLE_NOT_FOUND", "Sterilization cycle not found")
        return cycle

    def create_packages(
        self, cycle_id: int, data: PackageCreate, user: StaffUser
    ) -> list[SterilizationPackage]:
        """Create labelled packages from a completed cycle"""
        cycle = self.get_cycle(cycle_id, user)
        if cycle.status != "COMPLETED":
            raise api_error(
                400,
                "CYCLE_NOT_USABLE",
                f"Packages cannot be created from a {cycle.status.lower()} cycle",
            )

        expiration_days = data.expirationDays or STERILIZATION_EXPIRATION_DAYS
        sterilized_on = cycle.completed_at.date()
        expires_on = calculate_expiration_date(sterilized_on, expiration_days)

        label = LabelData(
            cycle_id=cycle.public_id,
            cycle_number=cycle.cycle_number,
            completed_at=cycle.completed_at,
            expiration_date=expires_on,
            cycle_type=cycle.cycle_type,
            temperature=cycle.temperature,
            pressure=cycle.pressure,
            exposure_time=cycle.exposure_time,
            status=cycle.status,
            equipment_name=cycle.equipment_name,
            package_type=data.packageType,
        )
        if data.labelFormat == "json":
            content = encode_json_label(label, expiration_days)
        else:
            content = encode_scanner_label(label)

        packages = [
            SterilizationPackage(
                clinic_id=user.clinic_id,
                cycle_id=cycle.id,
                package_type=data.packageType,
                label_content=content,
                sterilized_on=sterilized_on,
                expires_on=expires_on,
                status="AVAILABLE",
            )
            for _ in range(data.count)
        ]
        packages = self.repo.create_packages(self.db, packages)

        logger.info(
            f"📦 Created {len(packages)} {data.packageType} package(s) from cycle "
            f"{cycle.cycle_number}, expiring {expires_on.isoformat()}"
        )
        return packages

    def scan_label(self, content: str, user: StaffUser, today: date) -> dict:
        """Decode label text and check it against the recorded cycle"""
        decoded = decode_label(content)
        if decoded is None:
            logger.warning(f"⚠️ Unreadable sterilization label for clinic {user.clinic_id}")
            raise api_error(400, "INVALID_LABEL", "Label content is not a recognized format")

        cycle = self.repo.get_cycle_by_number(self.db, decoded.cycle_number, user.clinic_id)
        if not cycle:
            raise api_error(
                404,
                "CYCLE_NOT_FOUND",
                f"No sterilization cycle found with number {decoded.cycle_number}",
            )

        shelf_life = (decoded.expiration_date - decoded.sterilization_date).days
        return {
            "cycleId": cycle.id,
            "cycleNumber": cycle.cycle_number,
            "cycleStatus": cycle.status,
            "labelVersion": decoded.version,
            "sterilizationDate": decoded.sterilization_date,
            "expirationDate": decoded.expiration_date,
            "isSterile": is_still_sterile(decoded.sterilization_date, shelf_life, today),
            "daysUntilExpiration": days_until_expiration(
                decoded.sterilization_date, shelf_life, today
            ),
            "equipmentName": decoded.equipment_name or cycle.equipment_name,
            "packageType": decoded.package_type,
        }

    def use_package(
        self, package_id: int, data: PackageUse, user: StaffUser, now: datetime
    ) -> SterilizationPackage:
        """Record a package as opened for a patient appointment"""
        package = self.repo.get_package_by_id(self.db, package_id, user.clinic_id)
        if not package:
            raise api_error(404, "PACKAGE_NOT_FOUND", "Sterilization package not found")

        if package.status == "USED":
            raise api_error(
                409,
                "PACKAGE_ALREADY_USED",
                "Package has already been used",
                {"usedAt": package.used_at.isoformat() if package.used_at else None},
            )
        if package.status != "AVAILABLE":
            raise api_error(
                400, "PACKAGE_NOT_AVAILABLE", f"Package is {package.status.lower()}"
            )

        shelf_life = (package.expires_on - package.sterilized_on).days
        if not is_still_sterile(package.sterilized_on, shelf_life, now.date()):
            logger.warning(f"⚠️ Attempt to use expired package {package.id}")
            raise api_error(
                400,
                "PACKAGE_EXPIRED",
                f"Package expired on {package.expires_on.isoformat()}",
            )

        if data.appointmentId is not None:
            if not self.repo.get_appointment(self.db, data.appointmentId, user.clinic_id):
                raise api_error(404, "APPOINTMENT_NOT_FOUND", "Appointment not found")

        package.status = "USED"
        package.used_at = now
        package.used_by = user.id
        package.used_for_appointment_id = data.appointmentId
        package = self.repo.save(self.db, package)

        logger.info(f"✅ Package {package.id} used for appointment {data.appointmentId}")
        return package

    def list_expiring(
        self, user: StaffUser, within_days: int, today: date
    ) -> list[SterilizationPackage]:
        return self.repo.list_expiring(
            self.db, user.clinic_id, today, today + timedelta(days=within_days)
        )
