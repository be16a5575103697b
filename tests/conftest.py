"""Shared fixtures for bridge-recall tests."""

from datetime import datetime, timedelta, timezone

import pytest

from bridge_recall.models import ExperienceRecord

BASE_TIME = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_record():
    """Factory for ExperienceRecords; each call is one minute later than the last."""
    counter = {"n": 0}

    def _make(id=None, text="An ordinary moment", **kwargs):
        counter["n"] += 1
        kwargs.setdefault("created_at", BASE_TIME + timedelta(minutes=counter["n"]))
        return ExperienceRecord(id=id or f"rec-{counter['n']}", text=text, **kwargs)

    return _make
