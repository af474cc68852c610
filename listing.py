"""Translate listing/search parameters into SQL filters and a pagination window."""
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import HTTPException, status
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

import models

logger = structlog.get_logger(__name__)

MIN_TERM_LENGTH = 3
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass(frozen=True)
class Window:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def page_window(page: Optional[int], limit: Optional[int]) -> Window:
    """Clamp page to >= 1 and limit to 1..MAX_LIMIT (non-positive means default)."""
    page = page if page and page > 0 else DEFAULT_PAGE
    limit = limit if limit and limit > 0 else DEFAULT_LIMIT
    return Window(page=page, limit=min(limit, MAX_LIMIT))


def _clean(term: Optional[str]) -> Optional[str]:
    if term is None:
        return None
    term = term.strip()
    return term or None


def _contains(column, term: str):
    """Case-insensitive substring match with LIKE wildcards escaped."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


@dataclass(frozen=True)
class JobQuery:
    title: Optional[str] = None
    location: Optional[str] = None
    job_type: Optional[str] = None
    category: Optional[str] = None
    tag: Optional[str] = None
    featured: Optional[bool] = None
    company: Optional[str] = None
    active: Optional[bool] = None

    @classmethod
    def parse(
        cls,
        title: Optional[str] = None,
        location: Optional[str] = None,
        job_type: Optional[str] = None,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        featured: Optional[bool] = None,
        company: Optional[str] = None,
        active: Optional[bool] = None,
    ) -> "JobQuery":
        """Normalise raw parameters and reject search terms that are too short.

        Raises HTTPException(400) before anything touches the database.
        """
        terms = {"title": _clean(title), "location": _clean(location), "type": _clean(job_type)}
        too_short = [name for name, term in terms.items() if term and len(term) < MIN_TERM_LENGTH]
        if too_short:
            logger.info("Rejected short search terms", fields=too_short)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Title, location, and type must have at least {MIN_TERM_LENGTH} characters",
            )
        return cls(
            title=terms["title"],
            location=terms["location"],
            job_type=terms["type"],
            category=_clean(category),
            tag=_clean(tag),
            featured=featured,
            company=_clean(company),
            active=active,
        )

    def conditions(self) -> list:
        """SQL predicates for the supplied filters; absent filters add nothing."""
        clauses = []
        if self.title:
            clauses.append(_contains(models.Job.job_title, self.title))
        if self.location:
            clauses.append(_contains(models.Job.location, self.location))
        if self.job_type:
            clauses.append(_contains(models.Job.job_type, self.job_type))
        if self.category:
            clauses.append(models.Job.category == self.category)
        if self.tag:
            clauses.append(
                models.Job.tags.any(models.JobTag.tag == self.tag)
            )
        if self.featured is not None:
            clauses.append(models.Job.featured.is_(self.featured))
        if self.company:
            clauses.append(models.Job.company_name == self.company)
        if self.active is not None:
            clauses.append(models.Job.status.is_(self.active))
        return clauses

    def statement(self) -> Select:
        return select(models.Job).where(*self.conditions())


def paginate(db: Session, stmt: Select, window: Window, order_by) -> tuple[list, int]:
    """Run ``stmt`` for one page and count the whole filtered set."""
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    # Past the last page; also keeps huge offsets away from the driver
    if window.skip >= total:
        return [], total
    rows = db.execute(stmt.order_by(*order_by).offset(window.skip).limit(window.limit)).all()
    return rows, total


def search_jobs(db: Session, query: JobQuery, window: Window) -> tuple[list[models.Job], int]:
    rows, total = paginate(db, query.statement(), window, order_by=[models.Job.id.desc()])
    return [row[0] for row in rows], total


def company_statement(name: Optional[str] = None) -> Select:
    stmt = select(models.Company)
    name = _clean(name)
    if name:
        stmt = stmt.where(_contains(models.Company.company_name, name))
    return stmt
