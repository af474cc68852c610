"""Pydantic request/response models.

Patch models carry an explicit allow-list of fields (``extra="forbid"``) so a
request body can never set fields such as plan limits or counters.
"""
from datetime import date, datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


Role = Literal["candidate", "company"]


class Outcome(str, Enum):
    created = "created"
    duplicate = "duplicate"
    updated = "updated"
    forbidden = "forbidden"


class ActionResult(BaseModel):
    outcome: Outcome
    message: Optional[str] = None
    id: Optional[int] = None


# --- Users ---
class UserCreate(BaseModel):
    email: str
    role: Role = "candidate"
    name: Optional[str] = None
    photo_url: Optional[str] = None


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    photo_url: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    role: str
    name: Optional[str] = None
    photo_url: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


class AuthRequest(BaseModel):
    email: str


# --- Companies ---
class CompanyCreate(BaseModel):
    company_name: str = Field(..., min_length=1)
    logo: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None


class CompanyUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    logo: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None


class CompanyPublic(BaseModel):
    """Company fields safe to show to anyone: no plan, limits or email."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    company_name: str
    logo: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    featured: bool = False


class CompanyPrivate(CompanyPublic):
    email: str
    plan: str
    job_limit: int
    resume_access_limit: int
    resume_visibility_limit: int


class CompanyListItem(CompanyPublic):
    open_jobs: int = 0


class CompanyPage(BaseModel):
    companies: list[CompanyListItem]
    total: int
    page: int
    size: int


# --- Jobs ---
class JobCreate(BaseModel):
    job_title: str = Field(..., min_length=1)
    job_tags: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    job_type: Optional[str] = None
    location: Optional[str] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    expiration_date: Optional[date] = None
    featured: bool = False

    @model_validator(mode="after")
    def check_salary_range(self):
        if self.salary_min is not None and self.salary_max is not None and self.salary_min > self.salary_max:
            raise ValueError("salary_min must not exceed salary_max")
        return self


class JobUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    job_title: Optional[str] = Field(None, min_length=1)
    job_tags: Optional[list[str]] = None
    category: Optional[str] = None
    job_type: Optional[str] = None
    location: Optional[str] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    expiration_date: Optional[date] = None
    status: Optional[bool] = None

    @field_validator("job_title", "job_tags", "status")
    @classmethod
    def reject_null(cls, value, info):
        # May be omitted, but the columns behind them cannot be cleared
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class JobPublic(BaseModel):
    """Job fields shown in listings and detail views (no tag list, no poster email)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    company_name: str
    job_title: str
    category: Optional[str] = None
    job_type: Optional[str] = None
    location: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    description: Optional[str] = None
    expiration_date: Optional[date] = None
    status: bool
    featured: bool
    applications: int
    posted_at: Optional[datetime] = None


class JobListItem(JobPublic):
    job_tags: list[str] = Field(default_factory=list)


class JobWithLogo(JobListItem):
    logo: Optional[str] = None


class JobPage(BaseModel):
    jobs: list[JobListItem]
    total: int
    page: int
    limit: int


class JobWithLogoPage(BaseModel):
    jobs: list[JobWithLogo]
    total: int
    page: int
    limit: int


class JobDetail(BaseModel):
    job: JobPublic
    company: Optional[CompanyPublic] = None
    related_jobs: list[JobPublic] = Field(default_factory=list)


# --- Applications & bookmarks ---
class ApplicationCreate(BaseModel):
    job_id: int = Field(..., alias="jobId")
    candidate_name: Optional[str] = None
    resume_url: Optional[str] = None
    cover_letter: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class StatusChange(BaseModel):
    status: str = Field(..., min_length=1)
    # Applicant address as seen by the client; must match the stored record
    email: Optional[str] = None


class InterviewSchedule(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: str
    time: str
    location: Optional[str] = None
    link: Optional[str] = None
    message: Optional[str] = None
    status: str = "interview"


class Application(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    candidate_email: str
    candidate_name: Optional[str] = None
    resume_url: Optional[str] = None
    cover_letter: Optional[str] = None
    status: str
    interview_date: Optional[str] = None
    interview_time: Optional[str] = None
    interview_location: Optional[str] = None
    interview_link: Optional[str] = None
    interview_message: Optional[str] = None
    applied_at: Optional[datetime] = None


class ApplicationWithJob(Application):
    job: Optional[JobPublic] = None


class BookmarkCreate(BaseModel):
    job_id: int = Field(..., alias="jobId")

    model_config = ConfigDict(populate_by_name=True)


class Bookmark(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    candidate_email: str
    created_at: Optional[datetime] = None


# --- Candidates ---
class CandidateUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    headline: Optional[str] = None
    resume_url: Optional[str] = None
    skills: Optional[list[str]] = None
    experience: Optional[str] = None
    education: Optional[str] = None
    location: Optional[str] = None
    about: Optional[str] = None


class CandidateProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    candidate_email: str
    name: Optional[str] = None
    headline: Optional[str] = None
    resume_url: Optional[str] = None
    skills: Optional[list[str]] = None
    experience: Optional[str] = None
    education: Optional[str] = None
    location: Optional[str] = None
    about: Optional[str] = None


# --- Orders & payments ---
class OrderCreate(BaseModel):
    plan: str


class PaymentConfirmation(BaseModel):
    payment_intent_id: str


class Order(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tran_id: str
    user_email: str
    plan: str
    amount: float
    currency: str
    gateway: str
    status: bool
    active: bool
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class CheckoutResponse(BaseModel):
    url: str
    tran_id: str


class PaymentIntentResponse(BaseModel):
    client_secret: str
    tran_id: str
