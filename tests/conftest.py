"""Shared fixtures for autofill_core tests."""

import pytest

from autofill_core.config import Credentials


@pytest.fixture
def credentials():
    return Credentials(api_key="sk-test-0123456789", document_store_id="vs_test", model="gpt-4.1-mini")


@pytest.fixture
def recorded_sleep():
    """Awaitable sleep that records requested delays instead of waiting."""
    delays = []

    async def _sleep(delay):
        delays.append(delay)

    _sleep.delays = delays
    return _sleep
