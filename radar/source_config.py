"""Where dynamic-pattern sources get their URL and extraction hints."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from radar.errors import SheetsError
from radar.models import SourceDescriptor
from radar.sheets import SheetsClient

logger = logging.getLogger(__name__)


class SourceConfigProvider(Protocol):
    async def get(self, name: str) -> SourceDescriptor | None:
        """Return the descriptor for *name*, or ``None`` if unknown."""


class StaticSourceConfigProvider:
    """In-memory descriptors, e.g. the registered sources or test fixtures."""

    def __init__(self, descriptors: Iterable[SourceDescriptor] = ()) -> None:
        self._descriptors = {d.name: d for d in descriptors}

    async def get(self, name: str) -> SourceDescriptor | None:
        return self._descriptors.get(name)


class SheetsSourceConfigProvider:
    """Read the ``Sources`` tab at call time so edits apply on the next run.

    Columns are located by header text, so the tab may be reordered freely.
    """

    RANGE = "Sources!A:L"

    COLUMNS = {
        "name": "Source",
        "url": "URL",
        "html_pattern": "HTML Pattern",
        "date_format": "Date Format",
        "extract_notes": "Extract Notes",
    }

    def __init__(self, sheets: SheetsClient) -> None:
        self.sheets = sheets

    async def get(self, name: str) -> SourceDescriptor | None:
        try:
            rows = await self.sheets.get_values(self.RANGE)
        except SheetsError:
            logger.exception("Could not read source config for %s", name)
            return None
        if not rows:
            return None

        header = rows[0]
        index = {field: header.index(col) for field, col in self.COLUMNS.items() if col in header}
        if "name" not in index:
            logger.error("Sources tab has no %r column", self.COLUMNS["name"])
            return None

        def cell(row: list[str], field: str) -> str:
            i = index.get(field)
            return row[i].strip() if i is not None and i < len(row) else ""

        for row in rows[1:]:
            if cell(row, "name") == name:
                return SourceDescriptor(
                    name=name,
                    url=cell(row, "url"),
                    fetch_type="dynamic",
                    html_pattern=cell(row, "html_pattern") or None,
                    date_format=cell(row, "date_format") or None,
                    extract_notes=cell(row, "extract_notes") or None,
                )
        return None
