import uuid
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, field_validator


def _clean_text(v):
    if v is None:
        return None
    v = " ".join(str(v).split())
    return v or None


class EvaluationDetailInput(BaseModel):
    question_id: int
    selected_rating: int
    note: Optional[str] = None

    @field_validator('note', mode='before')
    @classmethod
    def clean_note(cls, v):
        return _clean_text(v)


class EvaluationCreate(BaseModel):
    company_id: uuid.UUID
    evaluation_year: int = Field(ge=2000, le=2100)
    evaluation_month: int = Field(ge=1, le=12)
    historical_contract_no: Optional[str] = None
    historical_guard_count: Optional[int] = Field(default=None, ge=0)
    historical_violations_count: Optional[int] = Field(default=None, ge=0)
    summary: Optional[str] = None
    overall_score: Optional[float] = None
    details: List[EvaluationDetailInput] = Field(default_factory=list)

    @field_validator('summary', mode='before')
    @classmethod
    def clean_summary(cls, v):
        return _clean_text(v)


class EvaluationUpdate(BaseModel):
    summary: Optional[str] = None
    details: Optional[List[EvaluationDetailInput]] = None

    @field_validator('summary', mode='before')
    @classmethod
    def clean_summary(cls, v):
        return _clean_text(v)


class ApprovalRequest(BaseModel):
    action: Literal["approve", "reject", "return"]
    note: Optional[str] = None
