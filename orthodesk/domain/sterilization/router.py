"""Sterilization router - FastAPI endpoints for cycles, packages and label scans"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import StaffUser
from ...models_sterilization import SterilizationCycle, SterilizationPackage
from ...shared.clock import current_time
from .schemas import (
    CycleCreate,
    CycleResponse,
    PackageCreate,
    PackageResponse,
    PackageUse,
    ScanRequest,
    ScanResponse,
)
from .service import SterilizationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sterilization", tags=["Sterilization"])


def get_sterilization_service(db: Session = Depends(get_db)) -> SterilizationService:
    """Dependency injection for SterilizationService"""
    return SterilizationService(db)


def _cycle_response(c: SterilizationCycle) -> CycleResponse:
    return CycleResponse(
        id=c.id,
        publicId=c.public_id,
        cycleNumber=c.cycle_number,
        cycleType=c.cycle_type,
        equipmentName=c.equipment_name,
        completedAt=c.completed_at,
        temperature=c.temperature,
        pressure=c.pressure,
        exposureTime=c.exposure_time,
        status=c.status,
        notes=c.notes,
    )


def _package_response(p: SterilizationPackage) -> PackageResponse:
    return PackageResponse(
        id=p.id,
        cycleId=p.cycle_id,
        cycleNumber=p.cycle.cycle_number if p.cycle else None,
        packageType=p.package_type,
        labelContent=p.label_content,
        sterilizedOn=p.sterilized_on,
        expiresOn=p.expires_on,
        status=p.status,
        usedAt=p.used_at,
        usedForAppointmentId=p.used_for_appointment_id,
    )


@router.post("/cycles", response_model=CycleResponse, status_code=201)
async def create_cycle(
    data: CycleCreate,
    current_user: StaffUser = Depends(get_current_user),
    service: SterilizationService = Depends(get_sterilization_service),
):
    """Record a completed autoclave cycle"""
    return _cycle_response(service.create_cycle(data, current_user))


@router.post("/cycles/{cycle_id}/packages", response_model=list[PackageResponse], status_code=201)
async def create_packages(
    cycle_id: int,
    data: PackageCreate,
    current_user: StaffUser = Depends(get_current_user),
    service: SterilizationService = Depends(get_sterilization_service),
):
    """Create labelled packages from a cycle"""
    return [_package_response(p) for p in service.create_packages(cycle_id, data, current_user)]


@router.post("/scan", response_model=ScanResponse)
async def scan_label(
    data: ScanRequest,
    now: datetime = Depends(current_time),
    current_user: StaffUser = Depends(get_current_user),
    service: SterilizationService = Depends(get_sterilization_service),
):
    """Decode a scanned label and report whether the package is still sterile"""
    return ScanResponse(**service.scan_label(data.content, current_user, now.date()))


@router.post("/packages/{package_id}/use", response_model=PackageResponse)
async def use_package(
    package_id: int,
    data: PackageUse,
    now: datetime = Depends(current_time),
    current_user: StaffUser = Depends(get_current_user),
    service: SterilizationService = Depends(get_sterilization_service),
):
    """Mark a package as used, optionally against an appointment"""
    return _package_response(service.use_package(package_id, data, current_user, now))


@router.get("/packages/expiring", response_model=list[PackageResponse])
async def list_expiring_packages(
    within_days: int = Query(7, ge=0, le=365, alias="withinDays"),
    now: datetime = Depends(current_time),
    current_user: StaffUser = Depends(get_current_user),
    service: SterilizationService = Depends(get_sterilization_service),
):
    """Available packages that expire within the next N days"""
    packages = service.list_expiring(current_user, within_days, now.date())
    return [_package_response(p) for p in packages]
