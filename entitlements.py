"""Plan tiers and the single procedure that applies them after a payment."""
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.orm import Session

import crud
import models

logger = structlog.get_logger(__name__)

PLAN_ENTITLEMENTS: dict[str, dict[str, int]] = {
    "basic": {"job_limit": 5, "resume_access_limit": 10, "resume_visibility_limit": 10},
    "standard": {"job_limit": 10, "resume_access_limit": 20, "resume_visibility_limit": 20},
    "premium": {"job_limit": 20, "resume_access_limit": 50, "resume_visibility_limit": 50},
}


class UnknownPlanError(ValueError):
    def __init__(self, tier: str):
        super().__init__(f"Unknown plan tier: {tier!r}")
        self.tier = tier


def entitlements_for(tier: str) -> dict[str, int]:
    try:
        return dict(PLAN_ENTITLEMENTS[tier])
    except KeyError:
        raise UnknownPlanError(tier) from None


def apply_plan(db: Session, company_email: str, tier: str) -> Optional[models.Company]:
    """Overwrite a company's limits with the tier's values (absolute, not additive).

    Returns None when no company is registered under ``company_email``.
    The caller commits.
    """
    limits = entitlements_for(tier)
    company = crud.get_company_by_email(db, company_email)
    if not company:
        logger.error("Plan purchased by unknown company", email=company_email, plan=tier)
        return None
    company.plan = tier
    for field, value in limits.items():
        setattr(company, field, value)
    logger.info("Plan applied", company_id=company.id, plan=tier, **limits)
    return company


def complete_order(db: Session, tran_id: str) -> Optional[models.Order]:
    """Mark an order paid and grant its plan. Every payment path ends here.

    Idempotent: an order that is already paid is returned untouched, so a
    gateway retry or a webhook racing the client confirmation grants once.
    Returns None for an unknown transaction id.
    """
    order = crud.get_order_by_tran_id(db, tran_id)
    if not order:
        logger.warning("Completion for unknown order", tran_id=tran_id)
        return None
    if order.status:
        logger.info("Order already completed", tran_id=tran_id)
        return order

    order.status = True
    order.active = True
    order.paid_at = datetime.now(timezone.utc)
    apply_plan(db, order.user_email, order.plan)
    db.commit()
    db.refresh(order)
    logger.info("Order completed", tran_id=tran_id, plan=order.plan, user_email=order.user_email)
    return order


def cancel_order(db: Session, tran_id: str) -> Optional[models.Order]:
    """Deactivate a pending order after a failed or cancelled payment."""
    order = crud.get_order_by_tran_id(db, tran_id)
    if not order or order.status:
        return order
    order.active = False
    db.commit()
    db.refresh(order)
    logger.info("Order cancelled", tran_id=tran_id)
    return order
