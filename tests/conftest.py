"""
Shared fixtures: every test gets a fresh SQLite schema.

DATABASE_URL is pinned before the application modules are imported so
db.session builds its engine against the throwaway database.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="prtimes-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ.setdefault("INGEST_CHUNK_SIZE", "50")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from db.base import Base  # noqa: E402
from db.session import SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_row():
    """Factory for a valid producer row (scraper camelCase keys)."""

    def _make(n: int = 0, **overrides):
        row = {
            "deliveryDate": "2024-07-01 10:00",
            "pressReleaseUrl": f"https://prtimes.jp/main/html/rd/p/{n:09d}.html",
            "pressReleaseTitle": f"New service announcement {n}",
            "pressReleaseCategory1": "IT",
            "pressReleaseCategory2": "Service",
            "companyName": f"Example Co {n}",
            "industry": "Information and communications",
            "listingStatus": "Unlisted",
            "capitalAmountText": "1億5,000万円",
            "establishedDateText": "2010年4月",
        }
        row.update(overrides)
        return row

    return _make
