"""Shared test helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest


class FakeClock:
    """Controllable clock for simulated ageing."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, hours: float = 0.0, days: float = 0.0) -> datetime:
        self.now = self.now + timedelta(hours=hours, days=days)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
