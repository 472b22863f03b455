"""Shared fixtures for the unit tests."""

import pytest

from core.retry import RetryPolicy
from tests.unit.fakes import RecordingProducer


@pytest.fixture
def producer():
    return RecordingProducer()


@pytest.fixture
def no_wait():
    """Retry policy factory with no delay between attempts."""

    def build(attempts):
        return RetryPolicy(attempts=attempts, delay=0)

    return build
