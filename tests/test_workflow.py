import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import crud
import logic
import models
import schemas
from auth import Identity
from conftest import auth_headers, create_test_company, create_test_job
from notifications import NotificationDispatcher


CANDIDATE = "a@x.com"
COMPANY = "hr@acme.test"


def _applications(db: Session, job_id: int) -> list:
    db.expire_all()
    return db.query(models.AppliedJob).filter(models.AppliedJob.job_id == job_id).all()


# --- Applying --- #

def test_apply_creates_record_increments_counter_and_notifies(test_client: TestClient, db_session: Session, outbox):
    job = create_test_job(db_session, create_test_company(db_session), job_title="Backend Engineer")

    response = test_client.post(
        "/apply",
        json={"jobId": job.id, "candidate_name": "Ada"},
        headers=auth_headers(CANDIDATE, "candidate"),
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["outcome"] == "created"
    assert len(_applications(db_session, job.id)) == 1
    db_session.refresh(job)
    assert job.applications == 1
    assert [m["to"] for m in outbox.sent] == [CANDIDATE]
    assert "Backend Engineer" in outbox.sent[0]["subject"]


def test_apply_twice_is_duplicate(test_client: TestClient, db_session: Session, outbox):
    job = create_test_job(db_session, create_test_company(db_session))
    headers = auth_headers(CANDIDATE, "candidate")

    first = test_client.post("/apply", json={"jobId": job.id}, headers=headers)
    second = test_client.post("/apply", json={"jobId": job.id}, headers=headers)

    assert first.json()["outcome"] == "created"
    assert second.status_code == status.HTTP_200_OK
    assert second.json()["outcome"] == "duplicate"
    assert len(_applications(db_session, job.id)) == 1
    db_session.refresh(job)
    assert job.applications == 1
    assert len(outbox.sent) == 1


def test_apply_as_company_is_forbidden(test_client: TestClient, db_session: Session, outbox):
    job = create_test_job(db_session, create_test_company(db_session))

    response = test_client.post("/apply", json={"jobId": job.id}, headers=auth_headers(COMPANY, "company"))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["outcome"] == "forbidden"
    assert _applications(db_session, job.id) == []
    db_session.refresh(job)
    assert job.applications == 0
    assert outbox.sent == []


def test_apply_to_missing_job(test_client: TestClient, outbox):
    response = test_client.post("/apply", json={"jobId": 999999}, headers=auth_headers(CANDIDATE, "candidate"))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_apply_requires_session(test_client: TestClient):
    response = test_client.post("/apply", json={"jobId": 1})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_duplicate_insert_rolls_back_cleanly(db_session: Session):
    """The store's unique constraint decides, even without a prior lookup."""
    job = create_test_job(db_session, create_test_company(db_session))
    identity = Identity(email=CANDIDATE, role="candidate")
    dispatcher = NotificationDispatcher(notifier=_NullNotifier())
    application = schemas.ApplicationCreate(job_id=job.id)

    assert logic.apply_to_job(db_session, identity, application, dispatcher).outcome == schemas.Outcome.created
    assert logic.apply_to_job(db_session, identity, application, dispatcher).outcome == schemas.Outcome.duplicate
    # Session is still usable after the rollback
    assert db_session.query(models.AppliedJob).filter_by(job_id=job.id, candidate_email=CANDIDATE).count() == 1


class _NullNotifier:
    def send(self, recipient, subject, html):
        pass


# --- Jobs --- #

def test_create_job_decrements_limit(test_client: TestClient, db_session: Session):
    company = create_test_company(db_session, job_limit=2)

    response = test_client.post(
        "/jobs",
        json={"job_title": "ML Engineer", "job_tags": ["python", "python", " ml "], "expiration_date": "2030-01-01"},
        headers=auth_headers(COMPANY, "company"),
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["outcome"] == "created"
    db_session.refresh(company)
    assert company.job_limit == 1
    job = crud.get_job(db_session, response.json()["id"])
    assert job.company_name == "Acme"
    assert job.email == COMPANY
    assert job.status is True
    assert job.job_tags == ["python", "ml"]


def test_create_job_without_credits_is_forbidden(test_client: TestClient, db_session: Session):
    company = create_test_company(db_session, job_limit=0)

    response = test_client.post("/jobs", json={"job_title": "ML Engineer"}, headers=auth_headers(COMPANY, "company"))

    assert response.json()["outcome"] == "forbidden"
    assert "limit" in response.json()["message"]
    db_session.refresh(company)
    assert company.job_limit == 0
    assert crud.count_jobs(db_session) == 0


def test_create_job_as_candidate_is_forbidden(test_client: TestClient, db_session: Session):
    create_test_company(db_session)
    response = test_client.post("/jobs", json={"job_title": "ML Engineer"}, headers=auth_headers(CANDIDATE, "candidate"))
    assert response.json()["outcome"] == "forbidden"


def test_create_job_without_company_profile(test_client: TestClient):
    response = test_client.post("/jobs", json={"job_title": "ML Engineer"}, headers=auth_headers(COMPANY, "company"))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_create_job_rejects_inverted_salary(test_client: TestClient, db_session: Session):
    create_test_company(db_session)
    response = test_client.post(
        "/jobs",
        json={"job_title": "ML Engineer", "salary_min": 9000, "salary_max": 100},
        headers=auth_headers(COMPANY, "company"),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_update_job_by_owner(test_client: TestClient, db_session: Session):
    job = create_test_job(db_session, create_test_company(db_session), tags=("go",))

    response = test_client.patch(
        f"/jobs/{job.id}",
        json={"job_title": "Staff Engineer", "job_tags": ["go", "k8s"]},
        headers=auth_headers(COMPANY, "company"),
    )

    assert response.json()["outcome"] == "updated"
    db_session.expire_all()
    assert job.job_title == "Staff Engineer"
    assert job.job_tags == ["go", "k8s"]


def test_update_job_rejects_fields_outside_allow_list(test_client: TestClient, db_session: Session):
    job = create_test_job(db_session, create_test_company(db_session))

    response = test_client.patch(
        f"/jobs/{job.id}",
        json={"applications": 500, "email": "attacker@x.com"},
        headers=auth_headers(COMPANY, "company"),
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    db_session.refresh(job)
    assert job.applications == 0
    assert job.email == COMPANY


@pytest.mark.parametrize("field", ["job_title", "job_tags", "status"])
def test_update_job_rejects_null_for_required_fields(test_client: TestClient, db_session: Session, field):
    job = create_test_job(db_session, create_test_company(db_session), job_title="Platform Engineer")

    response = test_client.patch(f"/jobs/{job.id}", json={field: None}, headers=auth_headers(COMPANY, "company"))

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    db_session.refresh(job)
    assert (job.job_title, job.status) == ("Platform Engineer", True)


def test_update_job_can_clear_optional_fields(test_client: TestClient, db_session: Session):
    job = create_test_job(db_session, create_test_company(db_session), location="Berlin")

    response = test_client.patch(f"/jobs/{job.id}", json={"location": None}, headers=auth_headers(COMPANY, "company"))

    assert response.json()["outcome"] == "updated"
    db_session.refresh(job)
    assert job.location is None


def test_update_job_checks_salary_against_stored_range(test_client: TestClient, db_session: Session):
    job = create_test_job(db_session, create_test_company(db_session), salary_min=100, salary_max=200)
    headers = auth_headers(COMPANY, "company")

    inverted = test_client.patch(f"/jobs/{job.id}", json={"salary_min": 500}, headers=headers)
    widened = test_client.patch(f"/jobs/{job.id}", json={"salary_min": 500, "salary_max": 900}, headers=headers)

    assert inverted.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert inverted.json()["detail"] == "salary_min must not exceed salary_max"
    assert widened.json()["outcome"] == "updated"
    db_session.refresh(job)
    assert (job.salary_min, job.salary_max) == (500, 900)


def test_update_job_by_other_company_is_forbidden(test_client: TestClient, db_session: Session):
    job = create_test_job(db_session, create_test_company(db_session))
    create_test_company(db_session, email="hr@globex.test", company_name="Globex")

    response = test_client.patch(
        f"/jobs/{job.id}", json={"job_title": "Hijacked"}, headers=auth_headers("hr@globex.test", "company")
    )

    assert response.json()["outcome"] == "forbidden"
    db_session.refresh(job)
    assert job.job_title != "Hijacked"


def test_register_company_twice_is_duplicate(test_client: TestClient):
    headers = auth_headers(COMPANY, "company")
    first = test_client.post("/companies", json={"company_name": "Acme"}, headers=headers)
    second = test_client.post("/companies", json={"company_name": "Acme Again"}, headers=headers)

    assert first.json()["outcome"] == "created"
    assert second.json()["outcome"] == "duplicate"


# --- Status changes & interviews --- #

def _application(db: Session, job: models.Job, email: str = CANDIDATE) -> models.AppliedJob:
    application = models.AppliedJob(job_id=job.id, candidate_email=email, candidate_name="Ada", status="applied")
    db.add(application)
    db.commit()
    db.refresh(application)
    return application


def test_change_status_notifies_stored_candidate(test_client: TestClient, db_session: Session, outbox):
    job = create_test_job(db_session, create_test_company(db_session), job_title="Backend Engineer")
    application = _application(db_session, job)

    response = test_client.patch(
        f"/applications/{application.id}/status",
        json={"status": "shortlisted"},
        headers=auth_headers(COMPANY, "company"),
    )

    assert response.json()["outcome"] == "updated"
    db_session.refresh(application)
    assert application.status == "shortlisted"
    assert [m["to"] for m in outbox.sent] == [CANDIDATE]
    assert "shortlisted" in outbox.sent[0]["html"]


def test_change_status_rejects_mismatched_email(test_client: TestClient, db_session: Session, outbox):
    job = create_test_job(db_session, create_test_company(db_session))
    application = _application(db_session, job)

    response = test_client.patch(
        f"/applications/{application.id}/status",
        json={"status": "hired", "email": "someone-else@x.com"},
        headers=auth_headers(COMPANY, "company"),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    db_session.refresh(application)
    assert application.status == "applied"
    assert outbox.sent == []


def test_change_status_by_non_owner_is_forbidden(test_client: TestClient, db_session: Session, outbox):
    job = create_test_job(db_session, create_test_company(db_session))
    application = _application(db_session, job)

    as_other_company = test_client.patch(
        f"/applications/{application.id}/status",
        json={"status": "rejected"},
        headers=auth_headers("hr@globex.test", "company"),
    )
    as_candidate = test_client.patch(
        f"/applications/{application.id}/status",
        json={"status": "hired"},
        headers=auth_headers(CANDIDATE, "candidate"),
    )

    assert as_other_company.json()["outcome"] == "forbidden"
    assert as_candidate.json()["outcome"] == "forbidden"
    db_session.refresh(application)
    assert application.status == "applied"
    assert outbox.sent == []


def test_change_status_of_missing_application(test_client: TestClient, outbox):
    response = test_client.patch(
        "/applications/999999/status", json={"status": "hired"}, headers=auth_headers(COMPANY, "company")
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_schedule_interview(test_client: TestClient, db_session: Session, outbox):
    job = create_test_job(db_session, create_test_company(db_session), job_title="Backend Engineer")
    application = _application(db_session, job)

    response = test_client.patch(
        f"/applications/{application.id}/interview",
        json={"date": "2030-02-01", "time": "10:00", "link": "https://meet.test/abc", "message": "See you"},
        headers=auth_headers(COMPANY, "company"),
    )

    assert response.json()["outcome"] == "updated"
    db_session.refresh(application)
    assert application.status == "interview"
    assert application.interview_date == "2030-02-01"
    assert application.interview_link == "https://meet.test/abc"
    assert outbox.sent[0]["to"] == CANDIDATE
    assert "2030-02-01" in outbox.sent[0]["html"]


def test_schedule_interview_rejects_unknown_fields(test_client: TestClient, db_session: Session, outbox):
    job = create_test_job(db_session, create_test_company(db_session))
    application = _application(db_session, job)

    response = test_client.patch(
        f"/applications/{application.id}/interview",
        json={"date": "2030-02-01", "time": "10:00", "candidate_email": "x@y.com"},
        headers=auth_headers(COMPANY, "company"),
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_job_applicants_for_owner_only(test_client: TestClient, db_session: Session):
    job = create_test_job(db_session, create_test_company(db_session))
    _application(db_session, job, "a@x.com")
    _application(db_session, job, "b@x.com")

    owner = test_client.get(f"/jobs/{job.id}/applications", headers=auth_headers(COMPANY, "company"))
    other = test_client.get(f"/jobs/{job.id}/applications", headers=auth_headers("hr@globex.test", "company"))
    candidate = test_client.get(f"/jobs/{job.id}/applications", headers=auth_headers(CANDIDATE, "candidate"))

    assert owner.status_code == status.HTTP_200_OK
    assert sorted(a["candidate_email"] for a in owner.json()) == ["a@x.com", "b@x.com"]
    assert other.status_code == status.HTTP_403_FORBIDDEN
    assert candidate.status_code == status.HTTP_403_FORBIDDEN


# --- Bookmarks --- #

def test_bookmark_lifecycle(test_client: TestClient, db_session: Session):
    job = create_test_job(db_session, create_test_company(db_session), job_title="Copywriter")
    headers = auth_headers(CANDIDATE, "candidate")

    first = test_client.post("/bookmark_jobs", json={"jobId": job.id}, headers=headers)
    second = test_client.post("/bookmark_jobs", json={"jobId": job.id}, headers=headers)
    listed = test_client.get("/bookmark_jobs", headers=headers)

    assert first.json()["outcome"] == "created"
    assert second.json()["outcome"] == "duplicate"
    assert [b["job"]["job_title"] for b in listed.json()] == ["Copywriter"]

    bookmark_id = first.json()["id"]
    stranger = test_client.delete(f"/bookmark_jobs/{bookmark_id}", headers=auth_headers("b@x.com", "candidate"))
    owner = test_client.delete(f"/bookmark_jobs/{bookmark_id}", headers=headers)

    assert stranger.status_code == status.HTTP_404_NOT_FOUND
    assert owner.json() == {"success": True}
    assert test_client.get("/bookmark_jobs", headers=headers).json() == []


def test_bookmark_as_company_is_forbidden(test_client: TestClient, db_session: Session):
    job = create_test_job(db_session, create_test_company(db_session))
    response = test_client.post("/bookmark_jobs", json={"jobId": job.id}, headers=auth_headers(COMPANY, "company"))
    assert response.json()["outcome"] == "forbidden"


# --- Candidate profiles --- #

def test_candidate_profile_visibility(test_client: TestClient, db_session: Session):
    saved = test_client.put(
        "/candidates/me",
        json={"name": "Ada", "skills": ["python", "sql"]},
        headers=auth_headers(CANDIDATE, "candidate"),
    )
    assert saved.status_code == status.HTTP_200_OK
    assert saved.json()["skills"] == ["python", "sql"]

    company = create_test_company(db_session, resume_access_limit=0)
    denied = test_client.get(f"/candidates/{CANDIDATE}", headers=auth_headers(COMPANY, "company"))
    assert denied.status_code == status.HTTP_403_FORBIDDEN

    company.resume_access_limit = 10
    db_session.commit()
    allowed = test_client.get(f"/candidates/{CANDIDATE}", headers=auth_headers(COMPANY, "company"))
    assert allowed.json()["name"] == "Ada"

    own = test_client.get(f"/candidates/{CANDIDATE}", headers=auth_headers(CANDIDATE, "candidate"))
    assert own.status_code == status.HTTP_200_OK


def test_candidate_profile_only_for_candidates(test_client: TestClient):
    response = test_client.put("/candidates/me", json={"name": "Acme"}, headers=auth_headers(COMPANY, "company"))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_browse_candidates_limited_by_plan(test_client: TestClient, db_session: Session):
    for i in range(4):
        db_session.add(models.Candidate(candidate_email=f"c{i}@x.com", name=f"Candidate {i}"))
    db_session.commit()
    company = create_test_company(db_session, resume_visibility_limit=0)
    headers = auth_headers(COMPANY, "company")

    assert test_client.get("/candidates", headers=headers).json() == []

    company.resume_visibility_limit = 3
    db_session.commit()
    assert len(test_client.get("/candidates", headers=headers).json()) == 3

    as_candidate = test_client.get("/candidates", headers=auth_headers(CANDIDATE, "candidate"))
    assert as_candidate.status_code == status.HTTP_403_FORBIDDEN
