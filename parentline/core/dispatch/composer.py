# parentline/core/dispatch/composer.py
"""
Message composer: pure functions, no I/O.

- ``compose`` turns one per-recipient record into a ``ComposedMessage``
  (or ``Invalid`` when it has no destination).
- ``aggregate`` turns a whole broadcast dataset into one shared body plus
  a deduplicated destination list.
"""
from __future__ import annotations

from typing import Iterable, Optional

from parentline.core.dispatch.domain import (
    FALLBACK_TOKEN,
    BroadcastPlan,
    ComposedMessage,
    ComposeResult,
    DatasetSpec,
    Invalid,
    RecipientRecord,
)

DAILY_REPORT_TEMPLATE = (
    "🌞 Good evening parent!\n"
    "\n"
    "Daily report for {name}:\n"
    "\n"
    "🍽 Appetite: {appetite}\n"
    "😴 Sleeping: {sleeping}\n"
    "😊 Behaviour: {behaviour}\n"
    "🎭 Mood: {mood}\n"
    "📝 Note: {note}\n"
    "\n"
    "Regards,\n"
    "Kindergarten Team"
)

TEMPLATE_FIELDS = ("name", "appetite", "sleeping", "behaviour", "mood", "note")

MENU_HEADER = "*🍽 Weekly Menu 🍽*\n\n"
MENU_LINE = "• {day}: {food}"

UNNAMED = "unnamed"


def normalize_destination(raw: Optional[str]) -> Optional[str]:
    """Strip whitespace and any ``whatsapp:`` prefix; the channel adds its own."""
    if raw is None:
        return None
    clean = raw.strip()
    if clean.lower().startswith("whatsapp:"):
        clean = clean[len("whatsapp:"):].strip()
    return clean or None


def _value(record: RecipientRecord, dataset: DatasetSpec, field_name: str) -> str:
    return record.cell(dataset.column(field_name)) or FALLBACK_TOKEN


def record_label(record: RecipientRecord, dataset: DatasetSpec) -> str:
    """Name used in progress lines for a record (``"unnamed"`` when blank)."""
    return record.cell(dataset.column("name")) or UNNAMED


def destination_of(record: RecipientRecord, dataset: DatasetSpec) -> Optional[str]:
    return normalize_destination(record.cell(dataset.column("destination")))


def compose(record: RecipientRecord, dataset: DatasetSpec) -> ComposeResult:
    """
    Build the message for one per-recipient record.

    A pre-built body in the ``message`` column wins verbatim; otherwise the
    daily report template is filled, with absent fields shown as ``N/A``.
    """
    destination = destination_of(record, dataset)
    if destination is None:
        return Invalid(label=record_label(record, dataset))

    prebuilt = record.cell(dataset.column("message"))
    if prebuilt is not None:
        return ComposedMessage(destination=destination, body=prebuilt)

    values = {name: _value(record, dataset, name) for name in TEMPLATE_FIELDS}
    return ComposedMessage(destination=destination, body=DAILY_REPORT_TEMPLATE.format(**values))


def menu_line(record: RecipientRecord, dataset: DatasetSpec) -> Optional[str]:
    """One formatted menu line, or None when the record has no content at all."""
    content = dataset.content_fields or ("day", "food")
    if all(record.cell(dataset.column(name)) is None for name in content):
        return None
    day = record.cell(dataset.column("day"))
    food = record.cell(dataset.column("food"))
    return MENU_LINE.format(day=day or FALLBACK_TOKEN, food=food or FALLBACK_TOKEN)


def dedupe_destinations(raw: Iterable[Optional[str]]) -> tuple[str, ...]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for value in raw:
        destination = normalize_destination(value)
        if destination is not None and destination not in seen:
            seen[destination] = None
    return tuple(seen)


def aggregate(records: Iterable[RecipientRecord], dataset: DatasetSpec) -> BroadcastPlan:
    """Fold a broadcast dataset into one shared body and its destination set."""
    records = list(records)

    lines = tuple(
        line for line in (menu_line(record, dataset) for record in records)
        if line is not None
    )
    destinations = dedupe_destinations(
        record.cell(dataset.column("destination")) for record in records
    )

    body = MENU_HEADER + "".join(f"{line}\n" for line in lines)
    return BroadcastPlan(body=body, destinations=destinations, lines=lines)
