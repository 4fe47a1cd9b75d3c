# parentline/core/dispatch/errors.py
"""
Typed errors for the dispatch layer.

None of these escape ``DispatchJobRunner.run``: job-level errors become a
single progress line and sink errors end the job quietly. They exist so
collaborators can signal *which* kind of failure happened.
"""
from __future__ import annotations


class DispatchError(Exception):
    """Base class for all dispatch errors."""

    def __init__(self, detail: str = "Dispatch error"):
        self.detail = detail
        super().__init__(detail)


class UnknownDatasetError(DispatchError):
    """No dataset is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown dataset: {name}")


class RecipientSourceError(DispatchError):
    """The recipient dataset could not be retrieved (auth/transport)."""


class EventSinkClosed(DispatchError):
    """The event sink no longer accepts events (observer disconnected)."""

    def __init__(self, detail: str = "Event sink is closed"):
        super().__init__(detail)
