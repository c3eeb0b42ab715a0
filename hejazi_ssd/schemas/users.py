import uuid
from typing import Optional, List
from pydantic import BaseModel, EmailStr, Field, field_validator


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name_ar: Optional[str] = None
    name_en: Optional[str] = None
    phone: Optional[str] = None
    job_id: Optional[int] = None
    company_id: Optional[uuid.UUID] = None
    is_super_admin: bool = False

    @field_validator('name_ar', 'name_en', 'phone', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class UserUpdate(BaseModel):
    name_ar: Optional[str] = None
    name_en: Optional[str] = None
    phone: Optional[str] = None
    job_id: Optional[int] = None
    company_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None

    @field_validator('name_ar', 'name_en', 'phone', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class FavoritesUpdate(BaseModel):
    userId: uuid.UUID
    favorites: List[str] = Field(default_factory=list)


class JobCreate(BaseModel):
    name_ar: str = Field(min_length=1)
    name_en: Optional[str] = None


class CompanyCreate(BaseModel):
    name_ar: str = Field(min_length=1)
    name_en: Optional[str] = None
    contract_no: Optional[str] = None
    guard_count: Optional[int] = Field(default=None, ge=0)
    violations_count: Optional[int] = Field(default=0, ge=0)
