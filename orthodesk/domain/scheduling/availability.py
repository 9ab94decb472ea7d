"""
Availability Checker

Determines whether a proposed appointment window is free for its provider,
and for its chair and room when those are given.

One lookup runs per populated resource. Each lookup reports at most one
representative conflicting appointment (the earliest by start time), and the
conflicts are returned in provider, chair, room order.

This is a read-only pre-check. Two concurrent bookings can both pass it
before either is written; callers must not treat a clean result as a
reservation.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment
from .repository import AppointmentRepository

logger = logging.getLogger(__name__)


class ResourceType(str, Enum):
    PROVIDER = "provider"
    CHAIR = "chair"
    ROOM = "room"


@dataclass(frozen=True)
class AppointmentWindow:
    """A proposed booking: who and what it needs, and when"""

    provider_id: int
    start_time: datetime
    end_time: datetime
    chair_id: Optional[int] = None
    room_id: Optional[int] = None
    exclude_appointment_id: Optional[int] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValueError("Start time must be before end time")


@dataclass(frozen=True)
class ConflictRecord:
    resource_type: ResourceType
    appointment_id: int
    start_time: datetime
    end_time: datetime
    description: str


@dataclass(frozen=True)
class AvailabilityResult:
    conflicts: list[ConflictRecord] = field(default_factory=list)

    @property
    def is_available(self) -> bool:
        return not self.conflicts


def _describe(resource_type: ResourceType, appointment: Appointment) -> str:
    window = f"{appointment.start_time:%H:%M}-{appointment.end_time:%H:%M}"
    if resource_type == ResourceType.PROVIDER:
        return f"Provider already has an appointment from {window}"
    if resource_type == ResourceType.CHAIR:
        return f"Chair already booked from {window}"
    return f"Room already booked from {window}"


def check_availability(db: Session, clinic_id: int, window: AppointmentWindow) -> AvailabilityResult:
    """
    Check a proposed window against existing appointments.

    Cancelled, no-show and soft-deleted appointments never conflict, and
    window.exclude_appointment_id is ignored in every lookup so an existing
    booking can be checked against everything except itself.
    """
    lookups = [(ResourceType.PROVIDER, Appointment.provider_id, window.provider_id)]
    if window.chair_id is not None:
        lookups.append((ResourceType.CHAIR, Appointment.chair_id, window.chair_id))
    if window.room_id is not None:
        lookups.append((ResourceType.ROOM, Appointment.room_id, window.room_id))

    conflicts = []
    for resource_type, column, resource_id in lookups:
        existing = AppointmentRepository.find_overlapping(
            db,
            clinic_id,
            column,
            resource_id,
            window.start_time,
            window.end_time,
            window.exclude_appointment_id,
        )
        if existing is None:
            continue

        conflicts.append(
            ConflictRecord(
                resource_type=resource_type,
                appointment_id=existing.id,
                start_time=existing.start_time,
                end_time=existing.end_time,
                description=_describe(resource_type, existing),
            )
        )

    if conflicts:
        logger.info(
            f"📅 Availability check found {len(conflicts)} conflict(s) for provider "
            f"{window.provider_id} at {window.start_time:%Y-%m-%d %H:%M}"
        )

    return AvailabilityResult(conflicts=conflicts)
