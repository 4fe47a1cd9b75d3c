# parentline/core/dispatch/events.py
"""
Progress event texts.

Every line an operator sees in the dashboard log is built here so the
wording stays consistent between job kinds.
"""
from __future__ import annotations

from parentline.core.dispatch.domain import (
    DONE_SENTINEL,
    DatasetSpec,
    EventKind,
    JobKind,
    JobReport,
    ProgressEvent,
)


def start(dataset: DatasetSpec) -> ProgressEvent:
    icon = "🍱" if dataset.kind is JobKind.BROADCAST else "📊"
    return ProgressEvent(EventKind.START, f"{icon} Fetching {dataset.title}...")


def start_unresolved(dataset_name: str) -> ProgressEvent:
    """Start notice for a job whose dataset name did not resolve."""
    return ProgressEvent(EventKind.START, f"📊 Fetching {dataset_name}...")


def count(rows: int, destinations: int | None = None) -> ProgressEvent:
    text = f"✅ Found {rows} rows."
    if destinations is not None:
        text = f"✅ Found {rows} rows, {destinations} recipients."
    return ProgressEvent(EventKind.COUNT, text)


def no_data(dataset: DatasetSpec) -> ProgressEvent:
    return ProgressEvent(EventKind.NO_DATA, f"⚠️ No data found for {dataset.title}.")


def error(message: str) -> ProgressEvent:
    return ProgressEvent(EventKind.ERROR, f"❌ Error: {message}")


def skip(label: str, reason: str) -> ProgressEvent:
    return ProgressEvent(EventKind.SKIP, f"⚠️ Skipping {label} ({reason})")


def attempt(destination: str, what: str = "message") -> ProgressEvent:
    return ProgressEvent(EventKind.ATTEMPT, f"➡️ Sending {what} to {destination}...")


def success(destination: str) -> ProgressEvent:
    return ProgressEvent(EventKind.SUCCESS, f"✅ Sent to {destination}")


def failure(destination: str, reason: str) -> ProgressEvent:
    return ProgressEvent(EventKind.FAILURE, f"❌ Failed ({destination}): {reason}")


def summary(report: JobReport) -> ProgressEvent:
    if report.failed == 0:
        head = "🎉 All messages sent!"
    else:
        head = "🏁 Finished with failures."
    return ProgressEvent(
        EventKind.SUMMARY,
        f"{head} (sent={report.sent}, failed={report.failed}, skipped={report.skipped})",
    )


def done() -> ProgressEvent:
    return ProgressEvent(EventKind.DONE, DONE_SENTINEL)
