"""Sterilization domain schemas - Pydantic models for validation"""

import re
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class CycleCreate(BaseModel):
    """Schema for recording a completed autoclave cycle"""

    cycleNumber: str = Field(..., min_length=1, max_length=50)
    cycleType: Optional[str] = Field(None, max_length=30)
    equipmentName: Optional[str] = Field(None, max_length=100)
    completedAt: datetime
    temperature: Optional[float] = None
    pressure: Optional[float] = None
    exposureTime: Optional[int] = Field(None, ge=0)
    status: Literal["COMPLETED", "FAILED", "QUARANTINED"] = "COMPLETED"
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("cycleNumber")
    @classmethod
    def normalize_cycle_number(cls, v):
        # Stored exactly as printed on scanner labels, where tokens are space separated
        v = re.sub(r"\s+", "-", v.strip())
        if not v:
            raise ValueError("Cycle number is required")
        return v

    @field_validator("completedAt")
    @classmethod
    def strip_offset(cls, v):
        # Clinic-local wall clock
        return v.replace(tzinfo=None) if v.tzinfo is not None else v


class CycleResponse(BaseModel):
    id: int
    publicId: str
    cycleNumber: str
    cycleType: Optional[str] = None
    equipmentName: Optional[str] = None
    completedAt: datetime
    temperature: Optional[float] = None
    pressure: Optional[float] = None
    exposureTime: Optional[int] = None
    status: str
    notes: Optional[str] = None


class PackageCreate(BaseModel):
    """Schema for wrapping packages from a cycle"""

    count: int = Field(1, ge=1, le=50)
    packageType: str = Field("Cassette", min_length=1, max_length=30)
    expirationDays: Optional[int] = Field(None, ge=1, le=365)
    labelFormat: Literal["scanner", "json"] = "scanner"

    @model_validator(mode="after")
    def check_shelf_life_is_printable(self):
        # Scanner labels carry no expiry; readers assume the default shelf life
        if self.expirationDays is not None and self.labelFormat != "json":
            raise ValueError("A custom expirationDays requires labelFormat 'json'")
        return self


class PackageResponse(BaseModel):
    id: int
    cycleId: int
    cycleNumber: Optional[str] = None
    packageType: str
    labelContent: str
    sterilizedOn: date
    expiresOn: date
    status: str
    usedAt: Optional[datetime] = None
    usedForAppointmentId: Optional[int] = None


class PackageUse(BaseModel):
    appointmentId: Optional[int] = None


class ScanRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class ScanResponse(BaseModel):
    """What a scanned label says, checked against the recorded cycle"""

    cycleId: int
    cycleNumber: str
    cycleStatus: str
    labelVersion: int
    sterilizationDate: date
    expirationDate: date
    isSterile: bool
    daysUntilExpiration: int
    equipmentName: Optional[str] = None
    packageType: Optional[str] = None
