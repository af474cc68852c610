"""Join job records with their company and related records for presentation."""
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

import crud
import models
import schemas
from listing import JobQuery, Window, company_statement, paginate

logger = structlog.get_logger(__name__)


def related_jobs(db: Session, job: models.Job) -> list[models.Job]:
    """Jobs sharing at least one tag with ``job``, excluding ``job`` itself."""
    tags = job.job_tags
    if not tags:
        return []
    stmt = (
        select(models.Job)
        .where(
            models.Job.id != job.id,
            models.Job.tags.any(models.JobTag.tag.in_(tags)),
        )
        .order_by(models.Job.id.desc())
    )
    return list(db.scalars(stmt).all())


def job_detail(db: Session, job_id: int) -> Optional[schemas.JobDetail]:
    """Job, owning company and related jobs. ``None`` when the job does not exist.

    The company is matched on company_name; a job whose company record is
    missing still resolves, with ``company`` left empty.
    """
    job = crud.get_job(db, job_id)
    if not job:
        return None

    company = crud.get_company_by_name(db, job.company_name)
    if company is None:
        logger.warning("Job has no matching company", job_id=job.id, company_name=job.company_name)

    return schemas.JobDetail(
        job=schemas.JobPublic.model_validate(job),
        company=schemas.CompanyPublic.model_validate(company) if company else None,
        related_jobs=[schemas.JobPublic.model_validate(j) for j in related_jobs(db, job)],
    )


def list_jobs_with_logo(db: Session, query: JobQuery, window: Window) -> schemas.JobWithLogoPage:
    """Paginated jobs carrying their company's logo.

    Inner join: a job without a matching company is left out of the page and
    of the total.
    """
    stmt = (
        select(models.Job, models.Company.logo)
        .join(models.Company, models.Company.company_name == models.Job.company_name)
        .where(*query.conditions())
    )
    rows, total = paginate(db, stmt, window, order_by=[models.Job.id.desc()])
    jobs = []
    for job, logo in rows:
        item = schemas.JobWithLogo.model_validate(job)
        item.logo = logo
        jobs.append(item)
    return schemas.JobWithLogoPage(jobs=jobs, total=total, page=window.page, limit=window.limit)


def list_companies(db: Session, name: Optional[str], window: Window) -> schemas.CompanyPage:
    """Companies (optionally filtered by name) each with its count of open jobs."""
    open_jobs = (
        select(models.Job.company_name, func.count(models.Job.id).label("open_jobs"))
        .where(models.Job.status.is_(True))
        .group_by(models.Job.company_name)
        .subquery()
    )
    stmt = (
        company_statement(name)
        .add_columns(func.coalesce(open_jobs.c.open_jobs, 0))
        .outerjoin(open_jobs, open_jobs.c.company_name == models.Company.company_name)
    )
    rows, total = paginate(db, stmt, window, order_by=[models.Company.id])
    companies = []
    for company, count in rows:
        item = schemas.CompanyListItem.model_validate(company)
        item.open_jobs = count
        companies.append(item)
    return schemas.CompanyPage(companies=companies, total=total, page=window.page, size=window.limit)


def applied_jobs_with_details(db: Session, candidate_email: str) -> list[schemas.ApplicationWithJob]:
    applications = crud.get_applications_for_candidate(db, candidate_email)
    jobs = crud.get_jobs_by_ids(db, [a.job_id for a in applications])
    result = []
    for application in applications:
        item = schemas.ApplicationWithJob.model_validate(application)
        job = jobs.get(application.job_id)
        item.job = schemas.JobPublic.model_validate(job) if job else None
        result.append(item)
    return result


def bookmarked_jobs(db: Session, candidate_email: str) -> list[dict]:
    bookmarks = crud.get_bookmarks(db, candidate_email)
    jobs = crud.get_jobs_by_ids(db, [b.job_id for b in bookmarks])
    result = []
    for bookmark in bookmarks:
        job = jobs.get(bookmark.job_id)
        result.append(
            {
                **schemas.Bookmark.model_validate(bookmark).model_dump(),
                "job": schemas.JobPublic.model_validate(job).model_dump() if job else None,
            }
        )
    return result
