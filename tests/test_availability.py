from datetime import datetime

import pytest

from orthodesk.domain.scheduling.availability import (
    AppointmentWindow,
    ResourceType,
    check_availability,
)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 1, 6, hour, minute)


@pytest.fixture
def existing(make_appointment, chair, room):
    """Provider, chair and room all booked 10:00-10:30"""
    return make_appointment(at(10), at(10, 30), chair_id=chair.id, room_id=room.id)


def test_overlapping_window_reports_provider_conflict(db_session, clinic, provider, existing):
    window = AppointmentWindow(provider_id=provider.id, start_time=at(10, 15), end_time=at(10, 45))

    result = check_availability(db_session, clinic.id, window)

    assert result.is_available is False
    assert len(result.conflicts) == 1
    conflict = result.conflicts[0]
    assert conflict.resource_type == ResourceType.PROVIDER
    assert conflict.appointment_id == existing.id
    assert conflict.start_time == at(10)
    assert conflict.end_time == at(10, 30)


def test_back_to_back_windows_do_not_conflict(db_session, clinic, provider, existing):
    after = AppointmentWindow(provider_id=provider.id, start_time=at(10, 30), end_time=at(11))
    before = AppointmentWindow(provider_id=provider.id, start_time=at(9, 30), end_time=at(10))

    assert check_availability(db_session, clinic.id, after).is_available
    assert check_availability(db_session, clinic.id, before).is_available


@pytest.mark.parametrize(
    "start, end",
    [
        (at(9, 45), at(10, 15)),  # overlaps the start
        (at(10, 15), at(10, 45)),  # overlaps the end
        (at(10, 5), at(10, 20)),  # inside the existing booking
        (at(9), at(11)),  # contains the existing booking
        (at(10), at(10, 30)),  # identical
    ],
)
def test_every_kind_of_overlap_conflicts(db_session, clinic, provider, existing, start, end):
    window = AppointmentWindow(provider_id=provider.id, start_time=start, end_time=end)

    assert not check_availability(db_session, clinic.id, window).is_available


def test_excluding_the_only_overlap_makes_window_available(db_session, clinic, provider, existing):
    window = AppointmentWindow(
        provider_id=provider.id,
        start_time=at(10, 15),
        end_time=at(10, 45),
        exclude_appointment_id=existing.id,
    )

    assert check_availability(db_session, clinic.id, window).is_available


@pytest.mark.parametrize("status", ["CANCELLED", "NO_SHOW"])
def test_cancelled_and_no_show_appointments_do_not_block(
    db_session, clinic, provider, make_appointment, status
):
    make_appointment(at(10), at(10, 30), status=status)
    window = AppointmentWindow(provider_id=provider.id, start_time=at(10), end_time=at(10, 30))

    assert check_availability(db_session, clinic.id, window).is_available


def test_soft_deleted_appointments_do_not_block(db_session, clinic, provider, make_appointment):
    make_appointment(at(10), at(10, 30), deleted_at=at(8))
    window = AppointmentWindow(provider_id=provider.id, start_time=at(10), end_time=at(10, 30))

    assert check_availability(db_session, clinic.id, window).is_available


def test_other_statuses_still_block(db_session, clinic, provider, make_appointment):
    make_appointment(at(10), at(10, 30), status="CONFIRMED")
    window = AppointmentWindow(provider_id=provider.id, start_time=at(10), end_time=at(10, 30))

    assert not check_availability(db_session, clinic.id, window).is_available


def test_chair_and_room_only_checked_when_given(
    db_session, clinic, second_provider, chair, room, existing
):
    free_provider_only = AppointmentWindow(
        provider_id=second_provider.id, start_time=at(10), end_time=at(10, 30)
    )
    with_chair = AppointmentWindow(
        provider_id=second_provider.id, start_time=at(10), end_time=at(10, 30), chair_id=chair.id
    )
    with_room = AppointmentWindow(
        provider_id=second_provider.id, start_time=at(10), end_time=at(10, 30), room_id=room.id
    )

    assert check_availability(db_session, clinic.id, free_provider_only).is_available

    chair_result = check_availability(db_session, clinic.id, with_chair)
    assert [c.resource_type for c in chair_result.conflicts] == [ResourceType.CHAIR]

    room_result = check_availability(db_session, clinic.id, with_room)
    assert [c.resource_type for c in room_result.conflicts] == [ResourceType.ROOM]


def test_conflicts_are_reported_in_provider_chair_room_order(
    db_session, clinic, provider, chair, room, existing
):
    window = AppointmentWindow(
        provider_id=provider.id,
        start_time=at(10),
        end_time=at(10, 30),
        chair_id=chair.id,
        room_id=room.id,
    )

    result = check_availability(db_session, clinic.id, window)

    assert [c.resource_type for c in result.conflicts] == [
        ResourceType.PROVIDER,
        ResourceType.CHAIR,
        ResourceType.ROOM,
    ]
    assert {c.appointment_id for c in result.conflicts} == {existing.id}


def test_one_representative_per_resource_is_the_earliest(
    db_session, clinic, provider, make_appointment
):
    later = make_appointment(at(11), at(11, 30))
    earlier = make_appointment(at(10), at(10, 30))
    window = AppointmentWindow(provider_id=provider.id, start_time=at(9), end_time=at(12))

    result = check_availability(db_session, clinic.id, window)

    assert len(result.conflicts) == 1
    assert result.conflicts[0].appointment_id == earlier.id
    assert result.conflicts[0].appointment_id != later.id


def test_other_clinics_are_invisible(db_session, other_clinic, provider, existing):
    window = AppointmentWindow(provider_id=provider.id, start_time=at(10), end_time=at(10, 30))

    assert check_availability(db_session, other_clinic.id, window).is_available


def test_window_must_have_positive_length():
    with pytest.raises(ValueError):
        AppointmentWindow(provider_id=1, start_time=at(10), end_time=at(10))
    with pytest.raises(ValueError):
        AppointmentWindow(provider_id=1, start_time=at(11), end_time=at(10))
