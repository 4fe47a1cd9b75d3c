# parentline/core/dispatch/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Union


# Reserved end-of-job marker; no other event text may equal it.
DONE_SENTINEL = "[DONE]"

# Substituted for absent template fields instead of leaving them blank.
FALLBACK_TOKEN = "N/A"


# ============================================================================
# JOB KINDS
# ============================================================================

class JobKind(str, Enum):
    """How a dataset turns into messages. Dispatched once per job."""
    PER_RECIPIENT = "per_recipient"  # one message per row, own destination
    BROADCAST = "broadcast"  # one shared body, deduplicated destinations


# ============================================================================
# RECIPIENT RECORDS
# ============================================================================

@dataclass(frozen=True)
class RecipientRecord:
    """
    One dataset row, read positionally.

    Field positions are fixed per dataset (see ``DatasetSpec``); cells are
    kept exactly as the source returned them and normalised only on read.
    """
    cells: tuple[str, ...] = ()

    @classmethod
    def from_row(cls, row: Sequence[object]) -> "RecipientRecord":
        return cls(tuple("" if cell is None else str(cell) for cell in row))

    def cell(self, index: Optional[int]) -> Optional[str]:
        """Stripped cell at ``index`` or None when the cell is absent or blank."""
        if index is None or index < 0 or index >= len(self.cells):
            return None
        value = self.cells[index].strip()
        return value or None

    def __len__(self) -> int:
        return len(self.cells)


# ============================================================================
# DATASETS
# ============================================================================

@dataclass(frozen=True)
class DatasetSpec:
    """
    Logical dataset definition.

    ``columns`` maps field names to zero-based positions. Per-recipient
    datasets need ``destination`` and usually ``name``; broadcast datasets
    need ``destination`` plus content columns; a record whose
    ``content_fields`` are all blank carries no content.
    """
    name: str
    kind: JobKind
    sheet_range: str
    title: str
    columns: dict[str, int] = field(default_factory=dict)
    content_fields: tuple[str, ...] = ()

    def column(self, field_name: str) -> Optional[int]:
        return self.columns.get(field_name)


# ============================================================================
# COMPOSED MESSAGES
# ============================================================================

@dataclass(frozen=True)
class ComposedMessage:
    """A (destination, body) pair ready for the channel."""
    destination: str
    body: str

    def __post_init__(self) -> None:
        if not self.destination or not self.destination.strip():
            raise ValueError("ComposedMessage.destination must be non-empty")
        if not self.body or not self.body.strip():
            raise ValueError("ComposedMessage.body must be non-empty")


@dataclass(frozen=True)
class Invalid:
    """Composer verdict for a record that cannot be sent (no destination)."""
    label: str
    reason: str = "no phone"


ComposeResult = Union[ComposedMessage, Invalid]


@dataclass(frozen=True)
class BroadcastPlan:
    """Aggregated broadcast: one shared body, deduplicated destinations."""
    body: str
    destinations: tuple[str, ...]
    lines: tuple[str, ...]

    @property
    def has_content(self) -> bool:
        return bool(self.lines)


# ============================================================================
# DISPATCH OUTCOMES
# ============================================================================

class FailureKind(str, Enum):
    """Coarse classification of a channel failure (informational only)."""
    INVALID_DESTINATION = "invalid_destination"
    RATE_LIMITED = "rate_limited"
    AUTH = "auth"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Sent:
    destination: str
    message_id: Optional[str] = None


@dataclass(frozen=True)
class Failed:
    destination: str
    reason: str
    kind: FailureKind = FailureKind.UNKNOWN


DispatchOutcome = Union[Sent, Failed]


# ============================================================================
# PROGRESS EVENTS
# ============================================================================

class EventKind(str, Enum):
    START = "start"
    COUNT = "count"
    NO_DATA = "no_data"
    ERROR = "error"
    SKIP = "skip"
    ATTEMPT = "attempt"
    SUCCESS = "success"
    FAILURE = "failure"
    SUMMARY = "summary"
    DONE = "done"


@dataclass(frozen=True)
class ProgressEvent:
    """One human-readable status line of a job's event stream."""
    kind: EventKind
    text: str

    def __post_init__(self) -> None:
        if self.kind is not EventKind.DONE and self.text == DONE_SENTINEL:
            raise ValueError("Only the DONE event may carry the sentinel text")

    @property
    def is_done(self) -> bool:
        return self.kind is EventKind.DONE


# ============================================================================
# JOB REPORT
# ============================================================================

@dataclass
class JobReport:
    """
    Bookkeeping for one job run.

    Created fresh by each ``DispatchJobRunner.run`` call and never shared.
    """
    dataset: str
    total: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    error: Optional[str] = None
    sink_lost: bool = False

    @property
    def attempted(self) -> int:
        return self.sent + self.failed

    @property
    def completed(self) -> bool:
        return self.error is None and not self.sink_lost
