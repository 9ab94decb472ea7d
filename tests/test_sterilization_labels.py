import json
from datetime import date, datetime

import pytest

from orthodesk.domain.sterilization.labels import (
    JSON_VERSION,
    LEGACY_VERSION,
    SCANNER_VERSION,
    LabelData,
    calculate_expiration_date,
    days_until_expiration,
    decode_label,
    encode_json_label,
    encode_scanner_label,
    is_still_sterile,
)


@pytest.fixture
def label_data():
    return LabelData(
        cycle_id="5f0c8e2a9b7d4c1e8a3b6d2f1e0c9a8b",
        cycle_number="2312",
        completed_at=datetime(2025, 12, 20, 13, 15),
        cycle_type="STEAM_PREVACUUM",
        temperature=134.4,
        pressure=30.2,
        exposure_time=4,
        status="COMPLETED",
        equipment_name="Stclave-2",
        package_type="Pouch",
    )


# ============================================================================
# SCANNER FORMAT
# ============================================================================


def test_scanner_label_text(label_data):
    assert encode_scanner_label(label_data) == "Date STE 20-Dec-2025 Stclave-2 2312 13_15 Pouch"


def test_scanner_label_defaults():
    data = LabelData(cycle_id="x", cycle_number="77", completed_at=datetime(2025, 3, 5, 8, 5))

    assert encode_scanner_label(data) == "Date STE 05-Mar-2025 Unknown 77 08_05 Cassette"


def test_scanner_label_decodes_with_default_shelf_life(label_data):
    decoded = decode_label(encode_scanner_label(label_data))

    assert decoded.version == SCANNER_VERSION
    assert decoded.cycle_number == "2312"
    assert decoded.sterilization_date == date(2025, 12, 20)
    assert decoded.expiration_date == date(2026, 1, 19)
    assert decoded.equipment_name == "Stclave-2"
    assert decoded.package_type == "Pouch"
    assert decoded.time == "13:15"


def test_equipment_names_with_spaces_still_decode():
    data = LabelData(
        cycle_id="x",
        cycle_number="CYC 9",
        completed_at=datetime(2025, 1, 2, 9, 0),
        equipment_name="Autoclave  1",
        package_type="Large Cassette",
    )

    content = encode_scanner_label(data)
    decoded = decode_label(content)

    assert content == "Date STE 02-Jan-2025 Autoclave-1 CYC-9 09_00 Large Cassette"
    assert decoded.equipment_name == "Autoclave-1"
    assert decoded.cycle_number == "CYC-9"
    assert decoded.package_type == "Large Cassette"


# ============================================================================
# JSON FORMAT
# ============================================================================


def test_json_label_is_compact(label_data):
    content = encode_json_label(label_data)

    assert " " not in content
    assert json.loads(content) == {
        "v": 1,
        "id": "1e0c9a8b",
        "cn": "2312",
        "sd": "2025-12-20",
        "ed": "2026-01-19",
        "ct": "STEAM_PREVACUUM",
        "t": 134,
        "p": 30,
        "et": 4,
        "s": "COMPLETED",
        "eq": "Stclave-2",
    }


def test_json_label_omits_empty_fields():
    data = LabelData(cycle_id="abc", cycle_number="1", completed_at=datetime(2025, 1, 1, 12, 0))

    assert json.loads(encode_json_label(data, expiration_days=14)) == {
        "v": 1,
        "id": "abc",
        "cn": "1",
        "sd": "2025-01-01",
        "ed": "2025-01-15",
    }


def test_json_label_keeps_explicit_expiration():
    decoded = decode_label(
        '{"v":1,"id":"1e0c9a8b","cn":"2312","sd":"2025-12-20","ed":"2026-03-20","eq":"Stclave-2"}'
    )

    assert decoded.version == JSON_VERSION
    assert decoded.cycle_id_suffix == "1e0c9a8b"
    assert decoded.expiration_date == date(2026, 3, 20)
    assert decoded.equipment_name == "Stclave-2"
    assert decoded.package_type is None


# ============================================================================
# LEGACY FORMAT
# ============================================================================


def test_legacy_label_decodes():
    decoded = decode_label("ORCA-STERIL-CYC-2024-001-1a2b3c4d-20241130")

    assert decoded.version == LEGACY_VERSION
    assert decoded.cycle_number == "CYC-2024-001"
    assert decoded.cycle_id_suffix == "1a2b3c4d"
    assert decoded.sterilization_date == date(2024, 11, 30)
    assert decoded.expiration_date == date(2024, 12, 30)


# ============================================================================
# UNREADABLE CONTENT
# ============================================================================


@pytest.mark.parametrize(
    "content",
    [
        "",
        "hello world",
        "Date STE 31-Feb-2025 Stclave-2 2312 13_15 Pouch",
        "Date STE 20-Foo-2025 Stclave-2 2312 13_15 Pouch",
        '{"v":1,"cn":"2312","sd":"2025-12-20"}',
        '{"v":1,"cn":"2312","sd":"not-a-date","ed":"2026-01-19"}',
        "[1, 2, 3]",
        "ORCA-STERIL-2312-XYZ-20241130",
        "ORCA-STERIL-2312-1a2b3c4d-20241340",
    ],
)
def test_unrecognized_content_returns_none(content):
    assert decode_label(content) is None


# ============================================================================
# EXPIRATION
# ============================================================================


def test_expiration_helpers_use_the_given_reference_date():
    sterilized_on = date(2025, 1, 1)

    assert calculate_expiration_date(sterilized_on) == date(2025, 1, 31)
    assert is_still_sterile(sterilized_on, 30, as_of=date(2025, 1, 30))
    assert not is_still_sterile(sterilized_on, 30, as_of=date(2025, 1, 31))
    assert days_until_expiration(sterilized_on, 30, as_of=date(2025, 1, 1)) == 30
    assert days_until_expiration(sterilized_on, 30, as_of=date(2025, 1, 31)) == 0
    assert days_until_expiration(sterilized_on, 30, as_of=date(2025, 2, 2)) == -2
