# tests/conftest.py
"""Pytest configuration and fixtures"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parentline.core.dispatch import (  # noqa: E402
    DAILY_REPORT,
    WEEKLY_MENU,
    DatasetSpec,
    EventSinkClosed,
    Failed,
    FailureKind,
    ProgressEvent,
    RecipientRecord,
    Sent,
    build_default_registry,
)
from parentline.infra.metrics import get_metrics_collector  # noqa: E402


# ============================================================================
# FAKE COLLABORATORS
# ============================================================================

class FakeRecipientSource:
    """In-memory recipient source keyed by dataset name."""

    def __init__(self, rows: dict[str, list[list[str]]] | None = None, error: Exception | None = None):
        self.rows = rows or {}
        self.error = error
        self.fetched: list[str] = []

    async def fetch(self, dataset: DatasetSpec) -> Sequence[RecipientRecord]:
        self.fetched.append(dataset.name)
        if self.error is not None:
            raise self.error
        return [RecipientRecord.from_row(row) for row in self.rows.get(dataset.name, [])]


class FakeChannel:
    """Records every send; destinations listed in ``fail`` come back as Failed."""

    name = "fake"

    def __init__(self, fail: dict[str, str] | None = None, raise_for: set[str] | None = None):
        self.fail = fail or {}
        self.raise_for = raise_for or set()
        self.sent: list[tuple[str, str]] = []

    async def send(self, destination: str, body: str):
        self.sent.append((destination, body))
        if destination in self.raise_for:
            raise ConnectionError("socket closed")
        if destination in self.fail:
            return Failed(destination, self.fail[destination], FailureKind.INVALID_DESTINATION)
        return Sent(destination, message_id=f"SM{len(self.sent):04d}")


class RecordingSink:
    """
    List-backed event sink.

    ``reject_after`` makes the N+1-th append raise, imitating a client
    that disconnected mid-job.
    """

    def __init__(self, reject_after: int | None = None):
        self.events: list[ProgressEvent] = []
        self.reject_after = reject_after
        self.closed = False
        self.rejected = 0

    async def append(self, event: ProgressEvent) -> None:
        if self.closed:
            raise EventSinkClosed()
        if self.reject_after is not None and len(self.events) >= self.reject_after:
            self.rejected += 1
            raise EventSinkClosed("Event stream consumer disconnected")
        self.events.append(event)

    async def close(self) -> None:
        self.closed = True

    @property
    def texts(self) -> list[str]:
        return [event.text for event in self.events]


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def registry():
    """Default dataset registry (daily report + weekly menu)"""
    return build_default_registry()


@pytest.fixture
def daily_report(registry):
    return registry.get(DAILY_REPORT)


@pytest.fixture
def weekly_menu(registry):
    return registry.get(WEEKLY_MENU)


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture(autouse=True)
def reset_metrics():
    """Metrics are process-global; start every test from zero"""
    get_metrics_collector().reset()
    yield
    get_metrics_collector().reset()
