"""Application workflow: posting jobs, applying, bookmarking and moving
applications through their statuses.

Every transition first goes through ``authorize``. A wrong role is a soft
``forbidden`` outcome, a repeated apply/bookmark is a soft ``duplicate``
outcome; only missing records and invalid input raise.
"""
from typing import Optional

import structlog
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import crud
import models
import schemas
from auth import Identity
from notifications import NotificationDispatcher

logger = structlog.get_logger(__name__)

Outcome = schemas.Outcome
ActionResult = schemas.ActionResult


def authorize(identity: Identity, required_role: str, action: str) -> Optional[ActionResult]:
    """Return a forbidden outcome when ``identity`` may not perform ``action``."""
    if identity.role == required_role:
        return None
    logger.info("Policy violation", email=identity.email, role=identity.role, required_role=required_role, action=action)
    return ActionResult(outcome=Outcome.forbidden, message=f"Only {required_role} accounts can {action}.")


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


def _owned_job(db: Session, identity: Identity, job_id: int) -> tuple[Optional[models.Job], Optional[ActionResult]]:
    job = crud.get_job(db, job_id)
    if not job:
        raise _not_found("Job")
    if job.email != identity.email:
        logger.info("Policy violation: not the job owner", email=identity.email, job_id=job_id)
        return None, ActionResult(outcome=Outcome.forbidden, message="You can only manage your own jobs.")
    return job, None


# --- Companies & jobs ---
def register_company(db: Session, identity: Identity, company: schemas.CompanyCreate) -> ActionResult:
    denied = authorize(identity, "company", "create a company profile")
    if denied:
        return denied
    try:
        db_company = crud.create_company(db, identity.email, company)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Company already registered", email=identity.email, company_name=company.company_name)
        return ActionResult(outcome=Outcome.duplicate, message="Company profile or name already exists.")
    logger.info("Company registered", company_id=db_company.id, email=identity.email)
    return ActionResult(outcome=Outcome.created, id=db_company.id)


def create_job(db: Session, identity: Identity, job: schemas.JobCreate) -> ActionResult:
    denied = authorize(identity, "company", "post jobs")
    if denied:
        return denied
    company = crud.get_company_by_email(db, identity.email)
    if not company:
        raise _not_found("Company profile")

    if not crud.decrement_job_limit(db, company.id):
        db.rollback()
        logger.info("Job limit reached", company_id=company.id)
        return ActionResult(outcome=Outcome.forbidden, message="Job posting limit reached. Purchase a plan to post more jobs.")

    db_job = crud.create_job(db, job, company)
    db.commit()
    logger.info("Job created", job_id=db_job.id, company_id=company.id)
    return ActionResult(outcome=Outcome.created, id=db_job.id)


def update_job(db: Session, identity: Identity, job_id: int, changes: schemas.JobUpdate) -> ActionResult:
    denied = authorize(identity, "company", "edit jobs")
    if denied:
        return denied
    job, denied = _owned_job(db, identity, job_id)
    if denied:
        return denied
    salary_min = changes.salary_min if "salary_min" in changes.model_fields_set else job.salary_min
    salary_max = changes.salary_max if "salary_max" in changes.model_fields_set else job.salary_max
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="salary_min must not exceed salary_max",
        )
    crud.update_job(db, job, changes)
    logger.info("Job updated", job_id=job_id, fields=sorted(changes.model_dump(exclude_unset=True)))
    return ActionResult(outcome=Outcome.updated, id=job_id)


# --- Applications ---
def apply_to_job(
    db: Session,
    identity: Identity,
    application: schemas.ApplicationCreate,
    dispatcher: NotificationDispatcher,
) -> ActionResult:
    """Apply once per (job, candidate).

    The unique constraint on applied_jobs decides duplicates, so two racing
    submissions still produce one record. Insert and counter increment commit
    together; the confirmation email goes out only after that.
    """
    denied = authorize(identity, "candidate", "apply to jobs")
    if denied:
        return denied
    job = crud.get_job(db, application.job_id)
    if not job:
        raise _not_found("Job")

    try:
        db_application = crud.add_application(db, identity.email, application)
        crud.increment_applications(db, job.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Duplicate application", job_id=application.job_id, email=identity.email)
        return ActionResult(outcome=Outcome.duplicate, message="You have already applied to this job.")

    logger.info("Application created", application_id=db_application.id, job_id=job.id, email=identity.email)
    dispatcher.notify(
        identity.email,
        f"Application received: {job.job_title}",
        "applied.html",
        candidate_email=identity.email,
        candidate_name=db_application.candidate_name,
        job_title=job.job_title,
        company_name=job.company_name,
    )
    return ActionResult(outcome=Outcome.created, id=db_application.id)


def _managed_application(
    db: Session, identity: Identity, application_id: int, action: str
) -> tuple[Optional[models.AppliedJob], Optional[models.Job], Optional[ActionResult]]:
    denied = authorize(identity, "company", action)
    if denied:
        return None, None, denied
    application = crud.get_application(db, application_id)
    if not application:
        raise _not_found("Application")
    job, denied = _owned_job(db, identity, application.job_id)
    return application, job, denied


def change_status(
    db: Session,
    identity: Identity,
    application_id: int,
    change: schemas.StatusChange,
    dispatcher: NotificationDispatcher,
) -> ActionResult:
    application, job, denied = _managed_application(db, identity, application_id, "change application status")
    if denied:
        return denied

    # The notification goes to the applicant on record, never to a client-chosen address
    if change.email and change.email != application.candidate_email:
        logger.warning("Status change email mismatch", application_id=application_id, supplied=change.email)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email does not match the application",
        )

    application.status = change.status
    db.commit()
    logger.info("Application status changed", application_id=application_id, status=change.status)

    dispatcher.notify(
        application.candidate_email,
        f"Application update: {job.job_title}",
        "status_changed.html",
        candidate_email=application.candidate_email,
        candidate_name=application.candidate_name,
        job_title=job.job_title,
        company_name=job.company_name,
        status=change.status,
    )
    return ActionResult(outcome=Outcome.updated, id=application_id)


def schedule_interview(
    db: Session,
    identity: Identity,
    application_id: int,
    schedule: schemas.InterviewSchedule,
    dispatcher: NotificationDispatcher,
) -> ActionResult:
    application, job, denied = _managed_application(db, identity, application_id, "schedule interviews")
    if denied:
        return denied

    application.interview_date = schedule.date
    application.interview_time = schedule.time
    application.interview_location = schedule.location
    application.interview_link = schedule.link
    application.interview_message = schedule.message
    application.status = schedule.status
    db.commit()
    logger.info("Interview scheduled", application_id=application_id, date=schedule.date, time=schedule.time)

    dispatcher.notify(
        application.candidate_email,
        f"Interview invitation: {job.job_title}",
        "interview.html",
        candidate_email=application.candidate_email,
        candidate_name=application.candidate_name,
        job_title=job.job_title,
        company_name=job.company_name,
        date=schedule.date,
        time=schedule.time,
        location=schedule.location,
        link=schedule.link,
        message=schedule.message,
    )
    return ActionResult(outcome=Outcome.updated, id=application_id)


def job_applicants(db: Session, identity: Identity, job_id: int) -> list[models.AppliedJob]:
    if identity.role != "company":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden Access!")
    _, denied = _owned_job(db, identity, job_id)
    if denied:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=denied.message)
    return crud.get_applications_for_job(db, job_id)


# --- Bookmarks ---
def bookmark_job(db: Session, identity: Identity, job_id: int) -> ActionResult:
    denied = authorize(identity, "candidate", "bookmark jobs")
    if denied:
        return denied
    if not crud.get_job(db, job_id):
        raise _not_found("Job")
    try:
        db_bookmark = crud.add_bookmark(db, identity.email, job_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Duplicate bookmark", job_id=job_id, email=identity.email)
        return ActionResult(outcome=Outcome.duplicate, message="Job already bookmarked.")
    return ActionResult(outcome=Outcome.created, id=db_bookmark.id)


# --- Candidate profiles ---
def save_candidate_profile(db: Session, identity: Identity, profile: schemas.CandidateUpdate):
    if identity.role != "candidate":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only candidates have a resume profile")
    return crud.upsert_candidate(db, identity.email, profile)


def view_candidate(db: Session, identity: Identity, candidate_email: str) -> models.Candidate:
    """Candidates see their own profile; companies need resume access left on their plan."""
    if identity.email != candidate_email:
        company = crud.get_company_by_email(db, identity.email) if identity.role == "company" else None
        if not company or company.resume_access_limit <= 0:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Resume access requires an active plan")
    candidate = crud.get_candidate(db, candidate_email)
    if not candidate:
        raise _not_found("Candidate")
    return candidate


def browse_candidates(db: Session, identity: Identity) -> list[models.Candidate]:
    """As many profiles as the company's plan makes visible."""
    company = crud.get_company_by_email(db, identity.email) if identity.role == "company" else None
    if not company:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only companies can browse candidates")
    if company.resume_visibility_limit <= 0:
        return []
    return crud.list_candidates(db, company.resume_visibility_limit)
