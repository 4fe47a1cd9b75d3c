# parentline/core/dispatch/ports.py
from __future__ import annotations
from typing import Protocol, Sequence
from parentline.core.dispatch.domain import (
    DatasetSpec,
    DispatchOutcome,
    ProgressEvent,
    RecipientRecord,
)


class RecipientSource(Protocol):
    async def fetch(self, dataset: DatasetSpec) -> Sequence[RecipientRecord]:
        """
        Return the dataset rows in source order.

        Raises on transport/auth failure; the runner reports it as a
        job-level error.
        """
        ...


class MessageChannel(Protocol):
    @property
    def name(self) -> str: ...

    async def send(self, destination: str, body: str) -> DispatchOutcome:
        """
        Attempt one delivery.

        Returns ``Sent`` or ``Failed``; never retries.
        """
        ...


class EventSink(Protocol):
    async def append(self, event: ProgressEvent) -> None:
        """Append one event. Raises ``EventSinkClosed`` once the observer is gone."""
        ...

    async def close(self) -> None:
        """Release the sink. Idempotent."""
        ...
