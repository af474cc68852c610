"""Nightly expiry sweep.

Flips every active job whose expiration date has passed to inactive. Safe to
re-run: already-expired jobs are not selected again.

Install with cron, e.g. ``5 0 * * * cd /srv/jobify && python sweep.py``.
"""
import asyncio
from datetime import date
from typing import Optional

import structlog
from aws_embedded_metrics import metric_scope
from sqlalchemy import select
from sqlalchemy.orm import Session

import models
from database import session_scope

logger = structlog.get_logger(__name__)


def expire_jobs(db: Session, today: Optional[date] = None) -> int:
    """Deactivate overdue jobs one at a time; returns how many changed."""
    today = today or date.today()
    overdue = db.scalars(
        select(models.Job).where(
            models.Job.status.is_(True),
            models.Job.expiration_date.is_not(None),
            models.Job.expiration_date < today,
        )
    ).all()

    for job in overdue:
        job.status = False
        db.commit()
        logger.info("Job expired", job_id=job.id, expiration_date=str(job.expiration_date))

    logger.info("Expiry sweep finished", expired=len(overdue), today=str(today))
    return len(overdue)


@metric_scope
async def run_sweep(metrics=None) -> int:
    """Cron entry point: own session, EMF metric for the count."""
    metrics.set_namespace("Jobify")
    with session_scope() as db:
        expired = expire_jobs(db)
    metrics.put_metric("jobs_expired", expired, "Count")
    return expired


if __name__ == "__main__":
    from observability import init_observability

    init_observability(service="jobify-sweep")
    asyncio.run(run_sweep())
