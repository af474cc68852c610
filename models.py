from sqlalchemy.orm import relationship
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Boolean,
    Date,
    ForeignKey,
    Text,
    DateTime,
    UniqueConstraint,
    func,
    JSON,
)
from database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(String, nullable=False, default="candidate")  # candidate | company
    name = Column(String)
    photo_url = Column(String)
    phone = Column(String)
    location = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    company_name = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    logo = Column(String)
    website = Column(String)
    location = Column(String)
    description = Column(Text)
    featured = Column(Boolean, default=False, nullable=False)

    # Entitlements, reset whenever a plan purchase completes
    plan = Column(String, default="none", nullable=False)
    job_limit = Column(Integer, default=0, nullable=False)
    resume_access_limit = Column(Integer, default=0, nullable=False)
    resume_visibility_limit = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    # Denormalised reference to companies.company_name
    company_name = Column(String, index=True, nullable=False)
    email = Column(String, index=True, nullable=False)  # poster, never exposed publicly
    job_title = Column(String, index=True, nullable=False)
    category = Column(String, index=True)
    job_type = Column(String)
    location = Column(String)
    salary_min = Column(Integer)
    salary_max = Column(Integer)
    description = Column(Text)
    expiration_date = Column(Date, index=True)
    status = Column(Boolean, default=True, nullable=False)  # False once expired
    featured = Column(Boolean, default=False, nullable=False)
    applications = Column(Integer, default=0, nullable=False)
    posted_at = Column(DateTime(timezone=True), server_default=func.now())

    tags = relationship(
        "JobTag",
        back_populates="job",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JobTag.id",
    )

    @property
    def job_tags(self) -> list[str]:
        return [t.tag for t in self.tags]

    @job_tags.setter
    def job_tags(self, values) -> None:
        # Keep first-seen order, drop duplicates and blanks
        seen = []
        for value in values or []:
            value = value.strip()
            if value and value not in seen:
                seen.append(value)
        # Reuse rows for surviving tags, new rows would collide with uq_job_tags_job_tag
        existing = {t.tag: t for t in self.tags}
        self.tags = [existing.get(value) or JobTag(tag=value) for value in seen]


class JobTag(Base):
    __tablename__ = "job_tags"
    __table_args__ = (UniqueConstraint("job_id", "tag", name="uq_job_tags_job_tag"),)

    id = Column(Integer, primary_key=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), index=True, nullable=False)
    tag = Column(String, index=True, nullable=False)

    job = relationship("Job", back_populates="tags")


class AppliedJob(Base):
    __tablename__ = "applied_jobs"
    __table_args__ = (
        UniqueConstraint("job_id", "candidate_email", name="uq_applied_jobs_job_candidate"),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, index=True, nullable=False)
    candidate_email = Column(String, index=True, nullable=False)
    candidate_name = Column(String)
    resume_url = Column(String)
    cover_letter = Column(Text)
    status = Column(String, default="applied", nullable=False)  # open-ended label

    interview_date = Column(String)
    interview_time = Column(String)
    interview_location = Column(String)
    interview_link = Column(String)
    interview_message = Column(Text)

    applied_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class BookmarkJob(Base):
    __tablename__ = "bookmark_jobs"
    __table_args__ = (
        UniqueConstraint("job_id", "candidate_email", name="uq_bookmark_jobs_job_candidate"),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, index=True, nullable=False)
    candidate_email = Column(String, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    tran_id = Column(String, unique=True, index=True, nullable=False)
    user_email = Column(String, index=True, nullable=False)
    plan = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String, nullable=False)
    gateway = Column(String, nullable=False)  # sslcommerz | stripe
    status = Column(Boolean, default=False, nullable=False)  # payment completed
    active = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    paid_at = Column(DateTime(timezone=True), nullable=True)


class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(Integer, primary_key=True, index=True)
    candidate_email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    headline = Column(String)
    resume_url = Column(String)
    skills = Column(JSON, nullable=True)
    experience = Column(Text)
    education = Column(Text)
    location = Column(String)
    about = Column(Text)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
