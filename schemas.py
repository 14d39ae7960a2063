"""
Schemas

Pydantic models for the placement tracker. Entity models (users, internships,
applications) are what the in-memory store keeps; request models validate
input at the API boundary before anything reaches the engine.

Users form a tagged union on ``role``:
- Student -> "Student"
- CompanyRep -> "CompanyRep"
- Staff -> "Staff"
"""

from datetime import date
from enum import Enum
from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
    model_validator,
)

from config import settings

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _CaseInsensitiveEnum(str, Enum):
    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            text = value.strip().lower()
            for member in cls:
                if member.value.lower() == text:
                    return member
        return None


class Role(_CaseInsensitiveEnum):
    STUDENT = "Student"
    COMPANY_REP = "CompanyRep"
    STAFF = "Staff"


class InternshipLevel(_CaseInsensitiveEnum):
    BASIC = "Basic"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class InternshipStatus(_CaseInsensitiveEnum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    FILLED = "Filled"


class ApplicationStatus(_CaseInsensitiveEnum):
    PENDING = "Pending"
    SUCCESSFUL = "Successful"
    UNSUCCESSFUL = "Unsuccessful"
    WITHDRAW_REQUESTED = "WithdrawRequested"
    WITHDRAW_APPROVED = "WithdrawApproved"
    WITHDRAW_REJECTED = "WithdrawRejected"


ACTIVE_APPLICATION_STATUSES = (ApplicationStatus.PENDING, ApplicationStatus.SUCCESSFUL)


def parse_close_filter(text: str) -> Optional[Tuple[str, date]]:
    """Split a close-date filter like ``<2025-05-01`` into ``("<", date)``.

    No prefix means exact match and yields ``"="``. Blank text yields None.
    Raises ValueError on a malformed date.
    """
    text = (text or "").strip()
    if not text:
        return None
    op = "="
    if text[0] in "<>":
        op, text = text[0], text[1:].strip()
    return op, date.fromisoformat(text)


# Saved filter settings, one per user
class FilterPreferences(BaseModel):
    status: str = Field("", description="Internship status, blank for any")
    major: str = Field("", description="Preferred major, blank for any")
    level: str = Field("", description="Basic/Intermediate/Advanced, blank for any")
    company: str = Field("", description="Company name, blank for any")
    visibility: str = Field("", description="'visible' or 'hidden', blank for any")
    close_date: str = Field("", description="YYYY-MM-DD, <YYYY-MM-DD or >YYYY-MM-DD")

    @field_validator("status", "major", "level", "company", "visibility", "close_date", mode="before")
    @classmethod
    def _strip(cls, v):
        return (v or "").strip()

    @field_validator("status")
    @classmethod
    def _known_status(cls, v: str) -> str:
        return InternshipStatus(v).value if v else v

    @field_validator("level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        return InternshipLevel(v).value if v else v

    @field_validator("visibility")
    @classmethod
    def _known_visibility(cls, v: str) -> str:
        if v and v.lower() not in ("visible", "hidden"):
            raise ValueError("visibility must be 'visible' or 'hidden'")
        return v.lower()

    @field_validator("close_date")
    @classmethod
    def _valid_close_date(cls, v: str) -> str:
        parse_close_filter(v)
        return v


# Role-based users
class UserBase(BaseModel):
    id: str = Field(..., min_length=1, description="Login id, unique and immutable")
    name: str = Field(..., description="Full name")
    password: str = Field(..., description="Plaintext password")
    filters: FilterPreferences = Field(default_factory=FilterPreferences)


class Student(UserBase):
    role: Literal[Role.STUDENT] = Role.STUDENT
    year: int = Field(1, ge=1, description="Academic year")
    major: str = Field(..., description="Major, matched case-insensitively")


class CompanyRep(UserBase):
    role: Literal[Role.COMPANY_REP] = Role.COMPANY_REP
    company_name: str
    department: str = ""
    position: str = ""
    approved: bool = Field(False, description="Set by staff before postings can be created")


class Staff(UserBase):
    role: Literal[Role.STAFF] = Role.STAFF
    department: str = ""


User = Annotated[Union[Student, CompanyRep, Staff], Field(discriminator="role")]


class Internship(BaseModel):
    """Internship posting. Slots and confirmed count are clamped on every write."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    title: str
    description: str = ""
    level: InternshipLevel = InternshipLevel.BASIC
    preferred_major: str
    open_date: Optional[date] = None
    close_date: Optional[date] = None
    company_name: str
    company_rep_id: str
    slots: int = 1
    status: InternshipStatus = InternshipStatus.PENDING
    visible: bool = False
    confirmed_count: int = 0

    @field_validator("slots")
    @classmethod
    def _clamp_slots(cls, v: int) -> int:
        return max(settings.MIN_SLOTS, min(settings.MAX_SLOTS, v))

    @field_validator("confirmed_count")
    @classmethod
    def _clamp_confirmed(cls, v: int, info: ValidationInfo) -> int:
        slots = info.data.get("slots", settings.MAX_SLOTS)
        return max(0, min(slots, v))

    @property
    def is_full(self) -> bool:
        return self.confirmed_count >= self.slots


class Application(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str
    internship_id: str
    student_id: str
    status: ApplicationStatus = ApplicationStatus.PENDING
    confirmed_by_student: bool = False
    # Whether the student still shows on the internship's applicant list
    listed: bool = True


# Request bodies
class LoginRequest(BaseModel):
    user_id: NonBlank
    password: str


class PasswordChange(BaseModel):
    new_password: NonBlank


class CompanyRepRegistration(BaseModel):
    id: NonBlank = Field(..., description="Company email, used as login id")
    name: NonBlank
    company_name: NonBlank
    department: str = ""
    position: str = ""


class InternshipCreate(BaseModel):
    title: NonBlank
    description: NonBlank
    level: InternshipLevel
    preferred_major: NonBlank
    open_date: Optional[date] = None
    close_date: Optional[date] = None
    slots: int = Field(..., ge=1, le=10)

    @model_validator(mode="after")
    def _dates_in_order(self):
        if self.open_date and self.close_date and self.close_date < self.open_date:
            raise ValueError("close_date cannot be earlier than open_date")
        return self


class InternshipUpdate(BaseModel):
    title: Optional[NonBlank] = None
    description: Optional[NonBlank] = None
    level: Optional[InternshipLevel] = None
    preferred_major: Optional[NonBlank] = None
    open_date: Optional[date] = None
    close_date: Optional[date] = None
    slots: Optional[int] = Field(None, ge=1, le=10)

    @model_validator(mode="after")
    def _dates_in_order(self):
        if self.open_date and self.close_date and self.close_date < self.open_date:
            raise ValueError("close_date cannot be earlier than open_date")
        return self


class Decision(BaseModel):
    approve: bool = Field(..., description="True to approve, False to reject")


class FilterUpdate(FilterPreferences):
    """Partial filter update; blank fields keep the saved value."""
