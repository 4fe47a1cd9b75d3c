# parentline/core/dispatch/datasets.py
"""
Dataset registry: logical dataset names → ``DatasetSpec``.

A job names its dataset by a fixed logical identifier; which sheet range
backs it is configuration, resolved here once at startup.
"""
from __future__ import annotations

from typing import Iterable

from parentline.core.dispatch.domain import DatasetSpec, JobKind
from parentline.core.dispatch.errors import UnknownDatasetError

DAILY_REPORT = "daily_report"
WEEKLY_MENU = "weekly_menu"

# Daily Report!A:H → name, appetite, sleeping, behaviour, mood, note, phone, message
DAILY_REPORT_COLUMNS = {
    "name": 0,
    "appetite": 1,
    "sleeping": 2,
    "behaviour": 3,
    "mood": 4,
    "note": 5,
    "destination": 6,
    "message": 7,
}

# WeeklyMenu!A:C → day, food, phone
WEEKLY_MENU_COLUMNS = {
    "day": 0,
    "food": 1,
    "destination": 2,
}


class DatasetRegistry:
    """
    Maps dataset names to their specs.

    Specs are frozen, so one registry can serve concurrent jobs.
    """

    def __init__(self, datasets: Iterable[DatasetSpec] = ()):
        self._datasets: dict[str, DatasetSpec] = {}
        for spec in datasets:
            self.register(spec)

    def register(self, spec: DatasetSpec) -> None:
        """Register (or replace) a dataset spec"""
        self._datasets[spec.name] = spec

    def get(self, name: str) -> DatasetSpec:
        """Get dataset spec by name, raising ``UnknownDatasetError``"""
        spec = self._datasets.get(name)
        if spec is None:
            raise UnknownDatasetError(name)
        return spec

    def names(self) -> list[str]:
        """List all registered dataset names"""
        return list(self._datasets.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._datasets

    def __iter__(self):
        return iter(self._datasets.values())


def build_default_registry(
    *,
    daily_report_range: str = "Daily Report!A2:H",
    weekly_menu_range: str = "WeeklyMenu!A2:C",
) -> DatasetRegistry:
    """The two datasets the dashboard triggers: daily reports and the weekly menu."""
    return DatasetRegistry([
        DatasetSpec(
            name=DAILY_REPORT,
            kind=JobKind.PER_RECIPIENT,
            sheet_range=daily_report_range,
            title="daily reports",
            columns=dict(DAILY_REPORT_COLUMNS),
        ),
        DatasetSpec(
            name=WEEKLY_MENU,
            kind=JobKind.BROADCAST,
            sheet_range=weekly_menu_range,
            title="weekly menu",
            columns=dict(WEEKLY_MENU_COLUMNS),
            content_fields=("day", "food"),
        ),
    ])
