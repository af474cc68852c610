from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

import models
import schemas


# --- User CRUD ---
def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, user: schemas.UserCreate):
    db_user = models.User(
        email=user.email,
        role=user.role,
        name=user.name,
        photo_url=user.photo_url,
    )
    db.add(db_user)
    db.flush()  # Assign ID without committing
    db.refresh(db_user)
    return db_user


def update_user(db: Session, email: str, changes: schemas.UserUpdate):
    db_user = get_user_by_email(db, email)
    if not db_user:
        return None
    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(db_user, field, value)
    db.commit()
    db.refresh(db_user)
    return db_user


def delete_user(db: Session, email: str) -> bool:
    db_user = get_user_by_email(db, email)
    if not db_user:
        return False
    db.delete(db_user)
    db.commit()
    return True


# --- Company CRUD ---
def get_company(db: Session, company_id: int):
    return db.get(models.Company, company_id)


def get_company_by_email(db: Session, email: str):
    return db.query(models.Company).filter(models.Company.email == email).first()


def get_company_by_name(db: Session, company_name: str):
    return (
        db.query(models.Company)
        .filter(models.Company.company_name == company_name)
        .first()
    )


def create_company(db: Session, email: str, company: schemas.CompanyCreate):
    db_company = models.Company(email=email, **company.model_dump())
    db.add(db_company)
    db.flush()
    return db_company


def update_company(db: Session, db_company: models.Company, changes: schemas.CompanyUpdate):
    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(db_company, field, value)
    db.commit()
    db.refresh(db_company)
    return db_company


def decrement_job_limit(db: Session, company_id: int) -> bool:
    """Use one posting credit. False when none were left.

    Relative, guarded update so concurrent postings can neither overwrite each
    other nor push the limit below zero.
    """
    result = db.execute(
        update(models.Company)
        .where(models.Company.id == company_id, models.Company.job_limit > 0)
        .values(job_limit=models.Company.job_limit - 1)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def count_companies(db: Session) -> int:
    return db.query(models.Company).count()


# --- Job CRUD ---
def get_job(db: Session, job_id: int):
    return db.get(models.Job, job_id)


def create_job(db: Session, job: schemas.JobCreate, company: models.Company):
    db_job = models.Job(
        company_name=company.company_name,
        email=company.email,
        status=True,
        applications=0,
        **job.model_dump(),
    )
    db.add(db_job)
    db.flush()
    return db_job


def update_job(db: Session, db_job: models.Job, changes: schemas.JobUpdate):
    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(db_job, field, value)
    db.commit()
    db.refresh(db_job)
    return db_job


def increment_applications(db: Session, job_id: int) -> None:
    db.execute(
        update(models.Job)
        .where(models.Job.id == job_id)
        .values(applications=models.Job.applications + 1)
    )


def count_jobs(db: Session) -> int:
    """Size of the whole jobs collection, regardless of filters."""
    return db.query(models.Job).count()


def get_jobs_by_ids(db: Session, job_ids: list[int]) -> dict[int, models.Job]:
    if not job_ids:
        return {}
    rows = db.scalars(select(models.Job).where(models.Job.id.in_(job_ids))).all()
    return {job.id: job for job in rows}


# --- Application CRUD ---
def get_application(db: Session, application_id: int):
    return db.get(models.AppliedJob, application_id)


def add_application(db: Session, candidate_email: str, application: schemas.ApplicationCreate):
    db_application = models.AppliedJob(
        job_id=application.job_id,
        candidate_email=candidate_email,
        candidate_name=application.candidate_name,
        resume_url=application.resume_url,
        cover_letter=application.cover_letter,
        status="applied",
    )
    db.add(db_application)
    db.flush()  # Raises IntegrityError on a duplicate (job_id, candidate_email)
    return db_application


def get_applications_for_candidate(db: Session, candidate_email: Optional[str] = None):
    query = db.query(models.AppliedJob)
    if candidate_email:
        query = query.filter(models.AppliedJob.candidate_email == candidate_email)
    return query.order_by(models.AppliedJob.id.desc()).all()


def get_applications_for_job(db: Session, job_id: int):
    return (
        db.query(models.AppliedJob)
        .filter(models.AppliedJob.job_id == job_id)
        .order_by(models.AppliedJob.id)
        .all()
    )


# --- Bookmark CRUD ---
def add_bookmark(db: Session, candidate_email: str, job_id: int):
    db_bookmark = models.BookmarkJob(job_id=job_id, candidate_email=candidate_email)
    db.add(db_bookmark)
    db.flush()  # Raises IntegrityError on a duplicate (job_id, candidate_email)
    return db_bookmark


def get_bookmarks(db: Session, candidate_email: str):
    return (
        db.query(models.BookmarkJob)
        .filter(models.BookmarkJob.candidate_email == candidate_email)
        .order_by(models.BookmarkJob.id.desc())
        .all()
    )


def delete_bookmark(db: Session, bookmark_id: int, candidate_email: str) -> bool:
    db_bookmark = (
        db.query(models.BookmarkJob)
        .filter(
            models.BookmarkJob.id == bookmark_id,
            models.BookmarkJob.candidate_email == candidate_email,
        )
        .first()
    )
    if not db_bookmark:
        return False
    db.delete(db_bookmark)
    db.commit()
    return True


# --- Candidate CRUD ---
def get_candidate(db: Session, candidate_email: str):
    return (
        db.query(models.Candidate)
        .filter(models.Candidate.candidate_email == candidate_email)
        .first()
    )


def upsert_candidate(db: Session, candidate_email: str, profile: schemas.CandidateUpdate):
    db_candidate = get_candidate(db, candidate_email)
    if not db_candidate:
        db_candidate = models.Candidate(candidate_email=candidate_email)
        db.add(db_candidate)
    for field, value in profile.model_dump(exclude_unset=True).items():
        setattr(db_candidate, field, value)
    db.commit()
    db.refresh(db_candidate)
    return db_candidate


def list_candidates(db: Session, limit: int):
    return db.query(models.Candidate).order_by(models.Candidate.id).limit(limit).all()


# --- Order CRUD ---
def get_order_by_tran_id(db: Session, tran_id: str):
    return db.query(models.Order).filter(models.Order.tran_id == tran_id).first()


def create_order(
    db: Session,
    tran_id: str,
    user_email: str,
    plan: str,
    amount: float,
    currency: str,
    gateway: str,
):
    db_order = models.Order(
        tran_id=tran_id,
        user_email=user_email,
        plan=plan,
        amount=amount,
        currency=currency,
        gateway=gateway,
        status=False,
        active=False,
    )
    db.add(db_order)
    db.commit()
    db.refresh(db_order)
    return db_order


def get_orders_for(db: Session, user_email: str):
    return (
        db.query(models.Order)
        .filter(models.Order.user_email == user_email)
        .order_by(models.Order.id.desc())
        .all()
    )
