"""Tests for settings helpers and the job file loader."""

import json

import pytest
from pydantic import ValidationError

from cronrelay.common.config import load_job_configuration, parse_segments


def test_parse_segments_ranges_and_singles():
    assert parse_segments("0-3,7") == [0, 1, 2, 3, 7]


def test_load_job_configuration_without_path_returns_none():
    assert load_job_configuration("") is None


def test_load_job_configuration(tmp_path):
    path = tmp_path / "jobs.json"
    path.write_text(json.dumps({"jobs": [
        {"name": "a", "schedule": "*/5 * * * *", "targets": ["https://a"]},
    ]}))

    config = load_job_configuration(str(path))

    assert len(config.jobs) == 1
    assert config.jobs[0].flag is False


def test_load_job_configuration_missing_jobs_key(tmp_path):
    path = tmp_path / "jobs.json"
    path.write_text("{}")
    assert load_job_configuration(str(path)).jobs is None


def test_load_job_configuration_rejects_bad_entries(tmp_path):
    path = tmp_path / "jobs.json"
    path.write_text(json.dumps({"jobs": [{"name": "a"}]}))
    with pytest.raises(ValidationError):
        load_job_configuration(str(path))


def test_success_notifications_on_by_default():
    from cronrelay.common.config import Settings, _env_bool

    assert _env_bool("CRONRELAY_TEST_UNSET_FLAG", "true") is True
    assert Settings.__dataclass_fields__["notify_on_success"].default is True
