"""
Sterilization label content

Builds and reads the text encoded into package QR labels. Rendering the QR
image itself is left to the printing client.

Three formats are understood, tried in this order when reading:

    Scanner (version 2)
        Date STE 20-Dec-2025 Stclave-2 2312 13_15 Pouch
        date, equipment, cycle number, time, package type

    Compact JSON (version 1)
        {"v":1,"id":"1a2b3c4d","cn":"2312","sd":"2025-12-20","ed":"2026-01-19",...}

    Legacy (version 0)
        ORCA-STERIL-2312-1a2b3c4d-20251220

Scanner and legacy labels carry no expiration, so it is derived as the
sterilization date plus the default shelf life.
"""

import json
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from ...config import STERILIZATION_EXPIRATION_DAYS

SCANNER_VERSION = 2
JSON_VERSION = 1
LEGACY_VERSION = 0

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

SCANNER_PATTERN = re.compile(
    r"^Date STE (\d{2})-([A-Za-z]{3})-(\d{4}) (\S+) (\S+) (\d{2})_(\d{2}) (.+)$"
)
LEGACY_PATTERN = re.compile(r"^ORCA-STERIL-(.+)-([a-f0-9]{8})-(\d{8})$")


@dataclass(frozen=True)
class LabelData:
    """What goes onto a package label"""

    cycle_id: str
    cycle_number: str
    completed_at: datetime
    expiration_date: Optional[date] = None
    cycle_type: Optional[str] = None
    temperature: Optional[float] = None
    pressure: Optional[float] = None
    exposure_time: Optional[int] = None
    status: Optional[str] = None
    equipment_name: Optional[str] = None
    package_type: Optional[str] = None


@dataclass(frozen=True)
class DecodedLabel:
    """What could be read back from a label"""

    version: int
    cycle_number: str
    sterilization_date: date
    expiration_date: date
    cycle_id_suffix: str = ""
    cycle_type: Optional[str] = None
    temperature: Optional[float] = None
    pressure: Optional[float] = None
    exposure_time: Optional[int] = None
    status: Optional[str] = None
    equipment_name: Optional[str] = None
    package_type: Optional[str] = None
    time: Optional[str] = None


# ============================================================================
# EXPIRATION
# ============================================================================


def calculate_expiration_date(
    sterilized_on: date, expiration_days: int = STERILIZATION_EXPIRATION_DAYS
) -> date:
    return sterilized_on + timedelta(days=expiration_days)


def is_still_sterile(sterilized_on: date, expiration_days: int, as_of: date) -> bool:
    """A package is sterile up to, but not on, its expiration date"""
    return as_of < calculate_expiration_date(sterilized_on, expiration_days)


def days_until_expiration(sterilized_on: date, expiration_days: int, as_of: date) -> int:
    """Whole days left; zero on the expiration date, negative after it"""
    return (calculate_expiration_date(sterilized_on, expiration_days) - as_of).days


# ============================================================================
# ENCODING
# ============================================================================


def _scanner_token(value: Optional[str], default: str) -> str:
    # Scanner fields are space separated, so a token must not contain whitespace
    value = (value or "").strip()
    if not value:
        return default
    return re.sub(r"\s+", "-", value)


def encode_scanner_label(data: LabelData) -> str:
    """
    Scanner-readable label text.

    Example: "Date STE 20-Dec-2025 Stclave-2 2312 13_15 Pouch"
    """
    completed = data.completed_at
    sterilized = f"{completed.day:02d}-{MONTH_ABBREVIATIONS[completed.month - 1]}-{completed.year}"
    equipment = _scanner_token(data.equipment_name, "Unknown")
    cycle_number = _scanner_token(data.cycle_number, "Unknown")
    package_type = (data.package_type or "").strip() or "Cassette"

    return (
        f"Date STE {sterilized} {equipment} {cycle_number} "
        f"{completed.hour:02d}_{completed.minute:02d} {package_type}"
    )


def encode_json_label(
    data: LabelData, expiration_days: int = STERILIZATION_EXPIRATION_DAYS
) -> str:
    """Compact JSON label; optional fields are only written when set"""
    sterilized_on = data.completed_at.date()
    expires_on = data.expiration_date or calculate_expiration_date(sterilized_on, expiration_days)

    payload = {
        "v": JSON_VERSION,
        "id": data.cycle_id[-8:],
        "cn": data.cycle_number,
        "sd": sterilized_on.isoformat(),
        "ed": expires_on.isoformat(),
    }
    if data.cycle_type:
        payload["ct"] = data.cycle_type
    if data.temperature:
        payload["t"] = round(data.temperature)
    if data.pressure:
        payload["p"] = round(data.pressure)
    if data.exposure_time:
        payload["et"] = data.exposure_time
    if data.status:
        payload["s"] = data.status
    if data.equipment_name:
        payload["eq"] = data.equipment_name

    return json.dumps(payload, separators=(",", ":"))


# ============================================================================
# DECODING
# ============================================================================


def _decode_scanner(content: str) -> Optional[DecodedLabel]:
    match = SCANNER_PATTERN.match(content)
    if not match:
        return None

    day, month_name, year, equipment, cycle_number, hour, minute, package_type = match.groups()
    if month_name not in MONTH_ABBREVIATIONS:
        return None
    try:
        sterilized_on = date(int(year), MONTH_ABBREVIATIONS.index(month_name) + 1, int(day))
    except ValueError:
        return None

    return DecodedLabel(
        version=SCANNER_VERSION,
        cycle_number=cycle_number,
        sterilization_date=sterilized_on,
        expiration_date=calculate_expiration_date(sterilized_on),
        equipment_name=equipment,
        package_type=package_type,
        time=f"{hour}:{minute}",
    )


def _decode_json(content: str) -> Optional[DecodedLabel]:
    try:
        payload = json.loads(content)
    except ValueError:
        return None

    if not isinstance(payload, dict):
        return None
    if not (payload.get("v") and payload.get("cn") and payload.get("sd") and payload.get("ed")):
        return None

    try:
        sterilized_on = date.fromisoformat(str(payload["sd"]))
        expires_on = date.fromisoformat(str(payload["ed"]))
    except ValueError:
        return None

    return DecodedLabel(
        version=payload["v"],
        cycle_number=str(payload["cn"]),
        sterilization_date=sterilized_on,
        expiration_date=expires_on,
        cycle_id_suffix=str(payload.get("id") or ""),
        cycle_type=payload.get("ct"),
        temperature=payload.get("t"),
        pressure=payload.get("p"),
        exposure_time=payload.get("et"),
        status=payload.get("s"),
        equipment_name=payload.get("eq"),
    )


def _decode_legacy(content: str) -> Optional[DecodedLabel]:
    match = LEGACY_PATTERN.match(content)
    if not match:
        return None

    cycle_number, suffix, stamp = match.groups()
    try:
        sterilized_on = datetime.strptime(stamp, "%Y%m%d").date()
    except ValueError:
        return None

    return DecodedLabel(
        version=LEGACY_VERSION,
        cycle_number=cycle_number,
        sterilization_date=sterilized_on,
        expiration_date=calculate_expiration_date(sterilized_on),
        cycle_id_suffix=suffix,
    )


def decode_label(content: str) -> Optional[DecodedLabel]:
    """Read label text in any known format, or return None if none match"""
    content = content.strip()
    for decoder in (_decode_scanner, _decode_json, _decode_legacy):
        decoded = decoder(content)
        if decoded is not None:
            return decoded
    return None
