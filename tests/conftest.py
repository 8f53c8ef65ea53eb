import asyncio
from pathlib import Path

import pytest
from shared.config import get_settings


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def reset_gateways():
    """Every test starts with no registered gateways and fresh settings."""
    from ordering.gateway import reset_gateway as reset_cart_gateway
    from payments.gateway import reset_gateway as reset_payment_gateway

    reset_cart_gateway()
    reset_payment_gateway()
    get_settings.cache_clear()
    yield
    reset_cart_gateway()
    reset_payment_gateway()
    get_settings.cache_clear()


class SleepRecorder:
    """Stand-in for asyncio.sleep that records intervals and returns at once."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)

    @property
    def total_seconds(self) -> float:
        return sum(self.calls)


@pytest.fixture
def instant_sleep():
    return SleepRecorder()


class EventLog(list):
    """Listener that keeps every event it receives."""

    def __call__(self, event) -> None:
        self.append(event)

    def of_type(self, event_type) -> list:
        return [e for e in self if isinstance(e, event_type)]


@pytest.fixture
def events():
    return EventLog()
