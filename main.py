import asyncio
from typing import List, Optional

from fastapi import (
    FastAPI,
    Depends,
    HTTPException,
    Request,
    Header,
    Form,
    Query,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import stripe
import structlog

import crud
import enrichment
import listing
import logic
import schemas
import sweep
from auth import (
    Identity,
    clear_session_cookie,
    create_access_token,
    get_current_identity,
    require_self,
    set_session_cookie,
)
from database import create_db_and_tables, get_db
from entitlements import UnknownPlanError, cancel_order, complete_order, entitlements_for
from notifications import NotificationDispatcher, get_dispatcher
from observability import init_observability
from payments import (
    PaymentGatewayError,
    SSLCommerzClient,
    construct_webhook_event,
    create_payment_intent,
    new_tran_id,
    payment_intent_succeeded,
)
from request_id_middleware import RequestIdMiddleware
from settings import Settings, get_settings


logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Jobify",
    description="Backend API for the Jobify job board",
    version="0.1.0",
)

init_observability(app, service="jobify-api")
create_db_and_tables()

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)


# --- Error handling --- #
@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Storage error", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Server Error"})


@app.exception_handler(UnknownPlanError)
async def unknown_plan_handler(request: Request, exc: UnknownPlanError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(PaymentGatewayError)
async def payment_gateway_handler(request: Request, exc: PaymentGatewayError):
    logger.error("Payment gateway error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


@app.get("/", tags=["Health"])
async def read_root():
    return {"status": "Server Running..."}


# --- Auth Endpoints --- #
@app.post("/auth", tags=["Auth"])
def issue_token(body: schemas.AuthRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    # No credential check here: the client signs in with the identity provider
    # first and only sends the verified email.
    if not settings.email_sign_in_enabled:
        raise HTTPException(status_code=403, detail="Email sign-in is disabled")
    user = crud.get_user_by_email(db, body.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    token = create_access_token(user.email, user.role, settings)
    response = JSONResponse(content={"success": True})
    set_session_cookie(response, token, settings)
    logger.info("Session issued", email=user.email, role=user.role)
    return response


@app.get("/logout", tags=["Auth"])
def logout(settings: Settings = Depends(get_settings)):
    response = JSONResponse(content={"success": True})
    clear_session_cookie(response, settings)
    return response


# --- User Endpoints --- #
@app.post("/user", response_model=schemas.User, tags=["Users"])
def create_user_endpoint(user: schemas.UserCreate, db: Session = Depends(get_db)):
    db_user = crud.get_user_by_email(db, email=user.email)
    if db_user:
        raise HTTPException(status_code=400, detail="Email already registered")
    db_user = crud.create_user(db=db, user=user)
    db.commit()
    return db_user


@app.get("/user/{email}", response_model=schemas.User, tags=["Users"])
def get_user_endpoint(email: str, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    require_self(identity, email)
    user = crud.get_user_by_email(db, email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.get("/role/{email}", tags=["Users"])
def get_role_endpoint(email: str, db: Session = Depends(get_db)):
    user = crud.get_user_by_email(db, email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"email": user.email, "role": user.role}


@app.patch("/user/{email}", tags=["Users"])
def update_user_endpoint(
    email: str,
    changes: schemas.UserUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_self(identity, email)
    if not crud.update_user(db, email, changes):
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True}


@app.delete("/user/{email}", tags=["Users"])
def delete_user_endpoint(email: str, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    require_self(identity, email)
    if not crud.delete_user(db, email):
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("User deleted", email=email)
    return {"success": True}


# --- Job Endpoints --- #
@app.get("/jobs", response_model=schemas.JobPage, tags=["Jobs"])
@app.get("/search", response_model=schemas.JobPage, tags=["Jobs"])
def list_jobs_endpoint(
    title: Optional[str] = None,
    location: Optional[str] = None,
    job_type: Optional[str] = Query(None, alias="type"),
    category: Optional[str] = None,
    tag: Optional[str] = None,
    featured: Optional[bool] = None,
    company: Optional[str] = None,
    active: Optional[bool] = None,
    page: int = 1,
    limit: int = listing.DEFAULT_LIMIT,
    db: Session = Depends(get_db),
):
    query = listing.JobQuery.parse(title, location, job_type, category, tag, featured, company, active)
    window = listing.page_window(page, limit)
    jobs, total = listing.search_jobs(db, query, window)
    return schemas.JobPage(
        jobs=[schemas.JobListItem.model_validate(job) for job in jobs],
        total=total,
        page=window.page,
        limit=window.limit,
    )


@app.get("/jobs_count", tags=["Jobs"])
def jobs_count_endpoint(db: Session = Depends(get_db)):
    return {"jobsCount": crud.count_jobs(db)}


@app.get("/jobs/with-logo", response_model=schemas.JobWithLogoPage, tags=["Jobs"])
def list_jobs_with_logo_endpoint(
    title: Optional[str] = None,
    location: Optional[str] = None,
    job_type: Optional[str] = Query(None, alias="type"),
    category: Optional[str] = None,
    tag: Optional[str] = None,
    featured: Optional[bool] = None,
    active: Optional[bool] = None,
    page: int = 1,
    limit: int = listing.DEFAULT_LIMIT,
    db: Session = Depends(get_db),
):
    query = listing.JobQuery.parse(title, location, job_type, category, tag, featured, None, active)
    return enrichment.list_jobs_with_logo(db, query, listing.page_window(page, limit))


@app.post("/jobs/sweep", tags=["Jobs"])
def sweep_endpoint(
    x_cron_secret: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    if not settings.cron_secret or x_cron_secret != settings.cron_secret:
        raise HTTPException(status_code=403, detail="Forbidden Access!")
    return {"expired": sweep.expire_jobs(db)}


@app.get("/jobs/{job_id}", response_model=schemas.JobDetail, tags=["Jobs"])
def get_job_endpoint(job_id: int, db: Session = Depends(get_db)):
    detail = enrichment.job_detail(db, job_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return detail


@app.post("/jobs", response_model=schemas.ActionResult, tags=["Jobs"])
def create_job_endpoint(
    job: schemas.JobCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return logic.create_job(db, identity, job)


@app.patch("/jobs/{job_id}", response_model=schemas.ActionResult, tags=["Jobs"])
def update_job_endpoint(
    job_id: int,
    changes: schemas.JobUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return logic.update_job(db, identity, job_id, changes)


@app.get("/jobs/{job_id}/applications", response_model=List[schemas.Application], tags=["Applications"])
def job_applications_endpoint(
    job_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return logic.job_applicants(db, identity, job_id)


# --- Company Endpoints --- #
@app.get("/companies", response_model=schemas.CompanyPage, tags=["Companies"])
def list_companies_endpoint(
    name: Optional[str] = None,
    page: int = 1,
    size: int = listing.DEFAULT_LIMIT,
    db: Session = Depends(get_db),
):
    return enrichment.list_companies(db, name, listing.page_window(page, size))


@app.get("/companies/count", tags=["Companies"])
@app.get("/company_search", tags=["Companies"])
def companies_count_endpoint(db: Session = Depends(get_db)):
    return {"count": crud.count_companies(db)}


@app.get("/companies/me", response_model=schemas.CompanyPrivate, tags=["Companies"])
def my_company_endpoint(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    company = crud.get_company_by_email(db, identity.email)
    if not company:
        raise HTTPException(status_code=404, detail="Company profile not found")
    return company


@app.post("/companies", response_model=schemas.ActionResult, tags=["Companies"])
def create_company_endpoint(
    company: schemas.CompanyCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return logic.register_company(db, identity, company)


@app.patch("/companies/me", response_model=schemas.CompanyPrivate, tags=["Companies"])
def update_company_endpoint(
    changes: schemas.CompanyUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    company = crud.get_company_by_email(db, identity.email)
    if not company:
        raise HTTPException(status_code=404, detail="Company profile not found")
    return crud.update_company(db, company, changes)


@app.get("/company/{company_id}", response_model=schemas.CompanyPublic, tags=["Companies"])
def get_company_endpoint(company_id: int, db: Session = Depends(get_db)):
    company = crud.get_company(db, company_id)
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    return company


# --- Application Endpoints --- #
@app.post("/apply", response_model=schemas.ActionResult, tags=["Applications"])
def apply_endpoint(
    application: schemas.ApplicationCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return logic.apply_to_job(db, identity, application, dispatcher)


@app.get("/applied_jobs", response_model=List[schemas.ApplicationWithJob], tags=["Applications"])
def applied_jobs_endpoint(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return enrichment.applied_jobs_with_details(db, identity.email)


@app.patch("/applications/{application_id}/status", response_model=schemas.ActionResult, tags=["Applications"])
def change_status_endpoint(
    application_id: int,
    change: schemas.StatusChange,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return logic.change_status(db, identity, application_id, change, dispatcher)


@app.patch("/applications/{application_id}/interview", response_model=schemas.ActionResult, tags=["Applications"])
def schedule_interview_endpoint(
    application_id: int,
    schedule: schemas.InterviewSchedule,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return logic.schedule_interview(db, identity, application_id, schedule, dispatcher)


# --- Bookmark Endpoints --- #
@app.post("/bookmark_jobs", response_model=schemas.ActionResult, tags=["Bookmarks"])
def bookmark_endpoint(
    bookmark: schemas.BookmarkCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return logic.bookmark_job(db, identity, bookmark.job_id)


@app.get("/bookmark_jobs", tags=["Bookmarks"])
def list_bookmarks_endpoint(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return enrichment.bookmarked_jobs(db, identity.email)


@app.delete("/bookmark_jobs/{bookmark_id}", tags=["Bookmarks"])
def delete_bookmark_endpoint(
    bookmark_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    if not crud.delete_bookmark(db, bookmark_id, identity.email):
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return {"success": True}


# --- Candidate Endpoints --- #
@app.put("/candidates/me", response_model=schemas.CandidateProfile, tags=["Candidates"])
def save_candidate_endpoint(
    profile: schemas.CandidateUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return logic.save_candidate_profile(db, identity, profile)


@app.get("/candidates", response_model=List[schemas.CandidateProfile], tags=["Candidates"])
def browse_candidates_endpoint(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return logic.browse_candidates(db, identity)


@app.get("/candidates/{email}", response_model=schemas.CandidateProfile, tags=["Candidates"])
def get_candidate_endpoint(email: str, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return logic.view_candidate(db, identity, email)


# --- Orders & Billing --- #
def _plan_price(plan: str, settings: Settings) -> float:
    entitlements_for(plan)  # raises UnknownPlanError for a tier we cannot grant
    if plan not in settings.plan_prices:
        raise UnknownPlanError(plan)
    return settings.plan_prices[plan]


def _require_company(identity: Identity, action: str) -> None:
    denied = logic.authorize(identity, "company", action)
    if denied:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=denied.message)


def get_sslcommerz(settings: Settings = Depends(get_settings)):
    client = SSLCommerzClient(settings)
    try:
        yield client
    finally:
        client.close()


@app.get("/orders", response_model=List[schemas.Order], tags=["Billing"])
def list_orders_endpoint(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return crud.get_orders_for(db, identity.email)


@app.post("/orders/sslcommerz", response_model=schemas.CheckoutResponse, tags=["Billing"])
def sslcommerz_checkout(
    order: schemas.OrderCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway: SSLCommerzClient = Depends(get_sslcommerz),
):
    _require_company(identity, "purchase plans")
    amount = _plan_price(order.plan, settings)
    tran_id = new_tran_id()
    callback = f"{settings.app_base_url}/payment"
    session = gateway.initiate(
        amount=amount,
        currency=settings.payment_currency,
        tier=order.plan,
        tran_id=tran_id,
        customer_email=identity.email,
        success_url=f"{callback}/success/{tran_id}",
        fail_url=f"{callback}/fail/{tran_id}",
        cancel_url=f"{callback}/cancel/{tran_id}",
    )
    crud.create_order(db, tran_id, identity.email, order.plan, amount, settings.payment_currency, "sslcommerz")
    logger.info("Order created", tran_id=tran_id, plan=order.plan, gateway="sslcommerz")
    return schemas.CheckoutResponse(url=session.url, tran_id=tran_id)


@app.post("/payment/success/{tran_id}", tags=["Billing"])
def sslcommerz_success(
    tran_id: str,
    val_id: str = Form(...),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway: SSLCommerzClient = Depends(get_sslcommerz),
):
    if not crud.get_order_by_tran_id(db, tran_id):
        raise HTTPException(status_code=404, detail="Order not found")
    if not gateway.validate(val_id, tran_id):
        cancel_order(db, tran_id)
        return RedirectResponse(f"{settings.client_base_url}/payment/fail/{tran_id}", status_code=303)
    complete_order(db, tran_id)
    return RedirectResponse(f"{settings.client_base_url}/payment/success/{tran_id}", status_code=303)


@app.post("/payment/fail/{tran_id}", tags=["Billing"])
@app.post("/payment/cancel/{tran_id}", tags=["Billing"])
def sslcommerz_abort(tran_id: str, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    if not cancel_order(db, tran_id):
        raise HTTPException(status_code=404, detail="Order not found")
    return RedirectResponse(f"{settings.client_base_url}/payment/fail/{tran_id}", status_code=303)


@app.post("/billing/payment-intent", response_model=schemas.PaymentIntentResponse, tags=["Billing"])
async def create_payment_intent_endpoint(
    order: schemas.OrderCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    _require_company(identity, "purchase plans")
    amount = _plan_price(order.plan, settings)

    logger.info(f"Creating Stripe PaymentIntent for {identity.email}", plan=order.plan)
    loop = asyncio.get_running_loop()
    intent = await loop.run_in_executor(
        None,
        lambda: create_payment_intent(settings, amount, settings.payment_currency, order.plan, identity.email),
    )
    crud.create_order(db, intent.id, identity.email, order.plan, amount, settings.payment_currency, "stripe")
    logger.info(f"Stripe PaymentIntent created (ID: {intent.id})", plan=order.plan)
    return schemas.PaymentIntentResponse(client_secret=intent.client_secret, tran_id=intent.id)


@app.post("/payments/confirm", response_model=schemas.Order, tags=["Billing"])
async def confirm_payment_endpoint(
    confirmation: schemas.PaymentConfirmation,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Direct confirmation from the client after Stripe reported success to it."""
    order = crud.get_order_by_tran_id(db, confirmation.payment_intent_id)
    if not order or order.user_email != identity.email:
        raise HTTPException(status_code=404, detail="Order not found")

    loop = asyncio.get_running_loop()
    succeeded = await loop.run_in_executor(
        None, lambda: payment_intent_succeeded(settings, confirmation.payment_intent_id)
    )
    if not succeeded:
        raise HTTPException(status_code=400, detail="Payment not completed")
    return complete_order(db, confirmation.payment_intent_id)


# --- Stripe Webhook Endpoint --- #
@app.post("/billing/webhook", tags=["Billing"])
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    payload = await request.body()
    try:
        event = construct_webhook_event(settings, payload, stripe_signature)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        logger.warning("Stripe webhook rejected", error=str(exc))
        raise HTTPException(status_code=400, detail=f"Invalid signature: {exc}")

    event_id = event.get("id")
    event_type = event.get("type")
    logger.info(f"Stripe webhook event received: ID={event_id}, Type={event_type}")

    if event_type == "payment_intent.succeeded":
        intent = event["data"]["object"]
        order = complete_order(db, intent["id"])
        if order is None:
            logger.warning(f"No order for PaymentIntent {intent['id']}; acknowledging anyway.")
    else:
        # Unhandled event type (return 200 OK to Stripe)
        logger.info(f"Stripe Webhook: Received unhandled event type {event_type}")

    return JSONResponse(content={"status": "success"}, status_code=200)


# --- Main execution --- (for running with uvicorn)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
