"""Shared test configuration, fixtures and pytest markers."""

import os

# Keep tests off Redis and SMTP; must run before jobmatch.config is imported
os.environ["METRICS_ENABLED"] = "false"
os.environ["PUSH_ENABLED"] = "false"
os.environ.pop("SMTP_HOST", None)

import pytest

from jobmatch.config import Settings
from tests.factories import FakeRepository, RecordingEmailTransport, RecordingPushTransport


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "scenario: end-to-end behaviour from the product requirements"
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        METRICS_ENABLED=False,
        PUSH_ENABLED=False,
        FANOUT_CONCURRENCY=4,
        FANOUT_SEND_TIMEOUT_SECONDS=0.5,
    )


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def push() -> RecordingPushTransport:
    return RecordingPushTransport()


@pytest.fixture
def email() -> RecordingEmailTransport:
    return RecordingEmailTransport()
