"""
Pytest configuration and shared fixtures.

DATABASE_URL must point at SQLite before any cronrelay module builds its
engine, so it is set at import time here.
"""

import os
import tempfile
from pathlib import Path

_DB_DIR = tempfile.mkdtemp(prefix="cronrelay-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'cronrelay.db'}"
os.environ.setdefault("JOBS_CONFIG_PATH", "")

import pytest
from unittest.mock import MagicMock

from cronrelay.schemas.schemas import CronJob


@pytest.fixture
def db():
    """Fresh trigger tables for each test."""
    from cronrelay.common.db import engine, init_db
    from cronrelay.models.models import Base

    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def trigger_engine():
    """Mock trigger engine with no existing triggers."""
    engine = MagicMock()
    engine.exists.return_value = False
    return engine


@pytest.fixture
def sample_job():
    return CronJob(
        name="my-test-job",
        schedule="*/5 * * * *",
        flag=False,
        targets=["https://mock.api/job"],
    )
