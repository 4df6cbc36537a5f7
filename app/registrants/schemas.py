"""Pydantic schemas for registrants."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.common.schemas import Timestamped
from app.registrants import rules


class RegistrantCreate(BaseModel):
    """Single registration submitted through the form."""

    model_config = ConfigDict(extra="forbid")

    full_name: str
    age: int
    gender: str
    church_location: str

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, value: str) -> str:
        value = value.strip()
        if not rules.is_non_empty_name(value) or len(value) < 2:
            raise ValueError("Full name must be at least 2 characters.")
        return value

    @field_validator("age")
    @classmethod
    def check_age(cls, value: int) -> int:
        if not rules.is_valid_age(value):
            raise ValueError(f"Must be {rules.MINIMUM_AGE} or older to register.")
        return value

    @field_validator("gender")
    @classmethod
    def check_gender(cls, value: str) -> str:
        gender = rules.normalize_gender(value)
        if gender is None:
            raise ValueError("Please select a gender.")
        return gender

    @field_validator("church_location")
    @classmethod
    def check_church_location(cls, value: str) -> str:
        if not rules.is_valid_location(value):
            raise ValueError("Please select a church location.")
        return value


class RegistrantRead(Timestamped):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    age: int
    gender: Optional[str] = None
    church_location: Optional[str] = None
    assigned_group: Optional[int] = None


class RegistrationResponse(BaseModel):
    message: str
    registrant: RegistrantRead


class ImportResult(BaseModel):
    """Outcome of one spreadsheet import; returned to the caller, never stored."""

    success: bool = False
    message: str = "Import process started."
    processed_rows: int = 0
    inserted_count: int = 0
    skipped_count: int = 0
    errors: List[str] = Field(default_factory=list)


class DashboardStats(BaseModel):
    total: int
    group1: int
    group2: int
    group3: int
    group4: int
    group5: int
    unassigned: int


class GroupAssignmentResult(BaseModel):
    message: str
    processed: int
