# tests/test_domain.py
"""Tests for domain models, dataset registry and progress event texts"""
import pytest

from parentline.core.dispatch import (
    DAILY_REPORT,
    DONE_SENTINEL,
    WEEKLY_MENU,
    ComposedMessage,
    DatasetRegistry,
    EventKind,
    JobKind,
    JobReport,
    ProgressEvent,
    RecipientRecord,
    UnknownDatasetError,
)
from parentline.core.dispatch import events


class TestRecipientRecord:
    def test_from_row_stringifies_cells(self):
        record = RecipientRecord.from_row(["Noa", 3, None])
        assert record.cells == ("Noa", "3", "")
        assert len(record) == 3

    def test_cell_strips_and_blanks_are_none(self):
        record = RecipientRecord.from_row(["  Noa ", "   ", ""])
        assert record.cell(0) == "Noa"
        assert record.cell(1) is None
        assert record.cell(2) is None

    def test_out_of_range_cell_is_none(self):
        record = RecipientRecord.from_row(["Noa"])
        assert record.cell(5) is None
        assert record.cell(None) is None


class TestComposedMessage:
    def test_requires_destination_and_body(self):
        with pytest.raises(ValueError):
            ComposedMessage(destination="", body="hello")
        with pytest.raises(ValueError):
            ComposedMessage(destination="+1", body="  ")


class TestProgressEvent:
    def test_only_done_carries_sentinel(self):
        with pytest.raises(ValueError):
            ProgressEvent(EventKind.SUMMARY, DONE_SENTINEL)

    def test_done_event(self):
        done = events.done()
        assert done.is_done
        assert done.text == "[DONE]"


class TestJobReport:
    def test_attempted_and_completed(self):
        report = JobReport(dataset=DAILY_REPORT, total=3, sent=1, failed=1, skipped=1)
        assert report.attempted == 2
        assert report.completed

        report.sink_lost = True
        assert not report.completed


class TestDatasetRegistry:
    def test_default_datasets(self, registry):
        assert registry.names() == [DAILY_REPORT, WEEKLY_MENU]
        assert registry.get(DAILY_REPORT).kind is JobKind.PER_RECIPIENT
        assert registry.get(WEEKLY_MENU).kind is JobKind.BROADCAST
        assert registry.get(DAILY_REPORT).column("destination") == 6
        assert registry.get(WEEKLY_MENU).column("destination") == 2

    def test_custom_ranges(self):
        from parentline.core.dispatch import build_default_registry
        registry = build_default_registry(weekly_menu_range="Menu!A2:C")
        assert registry.get(WEEKLY_MENU).sheet_range == "Menu!A2:C"

    def test_unknown_dataset(self, registry):
        with pytest.raises(UnknownDatasetError, match="Unknown dataset: invoices"):
            registry.get("invoices")
        assert "invoices" not in registry

    def test_register_replaces(self, daily_report):
        registry = DatasetRegistry([daily_report])
        registry.register(daily_report)
        assert registry.names() == [DAILY_REPORT]


class TestEventTexts:
    def test_start(self, daily_report, weekly_menu):
        assert events.start(daily_report).text == "📊 Fetching daily reports..."
        assert events.start(weekly_menu).text == "🍱 Fetching weekly menu..."
        assert events.start_unresolved("invoices").text == "📊 Fetching invoices..."

    def test_count(self):
        assert events.count(3).text == "✅ Found 3 rows."
        assert events.count(3, 2).text == "✅ Found 3 rows, 2 recipients."

    def test_item_lines(self):
        assert events.skip("Noa", "no phone").text == "⚠️ Skipping Noa (no phone)"
        assert events.attempt("+1").text == "➡️ Sending message to +1..."
        assert events.success("+1").text == "✅ Sent to +1"
        assert events.failure("+1", "blocked").text == "❌ Failed (+1): blocked"
        assert events.error("quota").text == "❌ Error: quota"

    def test_summary(self):
        clean = JobReport(dataset=DAILY_REPORT, sent=2, skipped=1)
        assert events.summary(clean).text == "🎉 All messages sent! (sent=2, failed=0, skipped=1)"

        partial = JobReport(dataset=DAILY_REPORT, sent=1, failed=1)
        assert events.summary(partial).text.startswith("🏁 Finished with failures.")
