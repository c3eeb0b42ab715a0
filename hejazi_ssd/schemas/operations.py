import uuid
from datetime import date, time
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, field_validator


class ViolationCreate(BaseModel):
    company_id: uuid.UUID
    violation_type_id: Optional[int] = None
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    violation_date: date
    violation_time: Optional[time] = None
    location: Optional[str] = None
    severity: Literal["low", "medium", "high"] = "medium"
    lang: Literal["ar", "en"] = "ar"

    @field_validator('description', 'location', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class ViolationSendCreate(BaseModel):
    lang: Literal["ar", "en"] = "ar"
    sent_to: Optional[str] = None
    sent_email: Optional[str] = None


class InspectionCreate(BaseModel):
    inspection_type: Literal["scheduled", "random"]
    sector_id: int
    building_id: int
    sub_building_id: Optional[int] = None
    guards_present_morning: Optional[int] = Field(default=None, ge=0)
    guards_present_night: Optional[int] = Field(default=None, ge=0)
    extinguishers_ok: Optional[int] = Field(default=None, ge=0)
    first_aid_boxes_ok: Optional[int] = Field(default=None, ge=0)
    findings: Optional[List[str]] = None
    notes: Optional[str] = None


class DistributionCreate(BaseModel):
    assigned_user_id: uuid.UUID
    sector_id: int
    building_id: int
    sub_building_id: Optional[int] = None
    assigned_date: Optional[date] = None


class RiskCreate(BaseModel):
    kind: Literal["risk", "maintenance"] = "risk"
    activity_id: int
    hazard_id: int
    control_measure_id: Optional[int] = None
    likelihood: int = Field(ge=1, le=5)
    consequence: int = Field(ge=1, le=5)
    building_id: Optional[int] = None
    notes: Optional[str] = None
