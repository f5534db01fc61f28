from __future__ import annotations

import os
import tempfile

# must be set before portfolio_engine.config is imported
_DB_DIR = tempfile.mkdtemp(prefix="portfolio_engine_tests_")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "test.db")
os.environ.setdefault("APP_ENV", "local")

import pytest

from portfolio_engine import models  # noqa: F401
from portfolio_engine.db import Base, SessionLocal, engine


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()
