import os
from datetime import date, timedelta
from typing import Optional

import pytest

TEST_DATABASE_URL = "sqlite:///./jobify-test.db"
_DB_PATH = TEST_DATABASE_URL.split("///")[-1]


def _remove_db_files() -> None:
    for suffix in ("", "-wal", "-shm"):
        path = _DB_PATH + suffix
        if os.path.exists(path):
            try:
                os.unlink(path)
            except OSError as e:
                print(f"Error removing test database file {path}: {e}")


# Point the app at the test database before it is imported
_remove_db_files()
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("AWS_EMF_ENVIRONMENT", "Local")
os.environ.setdefault("LOG_FORMAT", "console")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

# --- Alembic Imports ---
from alembic.config import Config  # noqa: E402
from alembic import command  # noqa: E402
# --- End Alembic Imports ---

# Import app and DB dependency function first
from main import app, get_db  # noqa: E402

# Import database components needed for setup
from database import Base, SessionLocal as TestSessionLocal, engine as test_engine  # noqa: E402
from auth import create_access_token  # noqa: E402
from notifications import get_notifier  # noqa: E402
from settings import get_settings  # noqa: E402
import models  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create the test database from models and stamp with Alembic head."""
    print(f"Creating test database tables from models at {_DB_PATH}")
    Base.metadata.create_all(bind=test_engine)

    print("Stamping database with Alembic head revision")
    alembic_cfg = Config("alembic.ini")  # Load base config
    alembic_cfg.set_main_option("sqlalchemy.url", TEST_DATABASE_URL)  # Point to test DB
    command.stamp(alembic_cfg, "head")  # Mark DB as up-to-date

    yield  # Tests run here

    test_engine.dispose()
    _remove_db_files()


@pytest.fixture(autouse=True)
def clean_tables(setup_test_database):
    """Every test starts from empty tables."""
    yield
    with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="function")  # Function scope for session
def db_session(setup_test_database):  # Depends on DB setup
    """Yields a SQLAlchemy session directly from the test factory."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


# Override the get_db dependency for tests
@pytest.fixture(scope="function")
def override_get_db():
    """Override the get_db dependency to use our test database.

    This creates a new session for each API call, allowing proper
    transaction handling within FastAPI endpoints.
    """

    def _override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    original = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = _override_get_db

    yield

    if original:
        app.dependency_overrides[get_db] = original
    else:
        del app.dependency_overrides[get_db]


class RecordingNotifier:
    """Stands in for EmailNotifier; keeps every message instead of sending it."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    @property
    def configured(self) -> bool:
        return True

    def send(self, recipient: str, subject: str, html: str) -> None:
        if self.fail:
            raise OSError("SMTP unreachable")
        self.sent.append({"to": recipient, "subject": subject, "html": html})


@pytest.fixture(scope="function")
def outbox():
    notifier = RecordingNotifier()
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield notifier
    del app.dependency_overrides[get_notifier]


@pytest.fixture(scope="function")
def test_client(override_get_db, outbox):
    """Provides a test client configured with our test database session."""
    return TestClient(app)


# --- Data helpers --- #

def auth_headers(email: str, role: str) -> dict:
    token = create_access_token(email, role, get_settings())
    return {"Authorization": f"Bearer {token}"}


def create_test_user(db: Session, email: str, role: str = "candidate", name: Optional[str] = None) -> models.User:
    user = models.User(email=email, role=role, name=name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_test_company(
    db: Session,
    email: str = "hr@acme.test",
    company_name: str = "Acme",
    job_limit: int = 5,
    **fields,
) -> models.Company:
    company = models.Company(email=email, company_name=company_name, job_limit=job_limit, **fields)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def create_test_job(
    db: Session,
    company: Optional[models.Company] = None,
    job_title: str = "Backend Engineer",
    tags: tuple = (),
    expiration_date: Optional[date] = None,
    company_name: Optional[str] = None,
    email: Optional[str] = None,
    **fields,
) -> models.Job:
    job = models.Job(
        company_name=company_name or (company.company_name if company else "Acme"),
        email=email or (company.email if company else "hr@acme.test"),
        job_title=job_title,
        expiration_date=expiration_date or (date.today() + timedelta(days=30)),
        status=fields.pop("status", True),
        featured=fields.pop("featured", False),
        applications=fields.pop("applications", 0),
        **fields,
    )
    job.job_tags = list(tags)
    db.add(job)
    db.commit()
    db.refresh(job)
    return job
