"""CSV ingestion of title schedules and tasks."""
from __future__ import annotations

import io
import logging
import math
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import pandas as pd

from .schemas import TaskDraft, TaskStatus, TitleScheduleInput

logger = logging.getLogger(__name__)

_COLUMN_ALIASES = {
    "startdate": "start_date",
    "enddate": "end_date",
    "totaldays": "total_days",
    "duedate": "due_date",
    "timespentminutes": "time_spent_minutes",
    "titlestartdate": "title_start_date",
    "titleenddate": "title_end_date",
    "titletotaldays": "title_total_days",
}


def _normalize_column(name: str) -> str:
    key = str(name).strip().lower().replace(" ", "_")
    return _COLUMN_ALIASES.get(key.replace("_", ""), key)


def _cell(row: Dict[str, Any], column: str) -> Optional[str]:
    value = row.get(column)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number) or not math.isfinite(float(number)):
        logger.debug("Ignoring non-numeric cell %r", value)
        return None
    return float(number)


class CSVIngestor:
    """Load title schedules or tasks from a CSV file or CSV text."""

    def __init__(self, source: Union[Path, str, io.StringIO]) -> None:
        self.source = source

    @classmethod
    def from_text(cls, text: str) -> "CSVIngestor":
        return cls(io.StringIO(text))

    def _read_rows(self) -> Iterable[Dict[str, Any]]:
        source = self.source
        if isinstance(source, io.StringIO):
            source.seek(0)
        else:
            source = Path(source)
        df = pd.read_csv(source, dtype=str, keep_default_na=False)
        df.columns = [_normalize_column(column) for column in df.columns]
        logger.debug("Read %s CSV rows with columns %s", len(df), df.columns.tolist())
        return df.to_dict(orient="records")

    def read_title_schedules(self) -> Iterable[TitleScheduleInput]:
        for row in self._read_rows():
            title = _cell(row, "title")
            if not title:
                logger.debug("Skipping schedule row without title: %s", row)
                continue
            yield TitleScheduleInput(
                title=title,
                start_date=_cell(row, "start_date"),
                end_date=_cell(row, "end_date"),
                total_days=_number(_cell(row, "total_days")),
            )

    def read_tasks(self) -> Iterable[TaskDraft]:
        for row in self._read_rows():
            title = _cell(row, "title")
            if not title:
                logger.debug("Skipping task row without title: %s", row)
                continue

            raw_status = (_cell(row, "status") or "").lower().replace(" ", "_")
            try:
                status = TaskStatus(raw_status) if raw_status else TaskStatus.PENDING
            except ValueError:
                logger.debug("Unknown status %r for task %r; using pending", raw_status, title)
                status = TaskStatus.PENDING

            due = _cell(row, "due_date")
            due_date = pd.to_datetime(due, errors="coerce", utc=True) if due else None
            minutes = _number(_cell(row, "time_spent_minutes")) or 0

            yield TaskDraft(
                title=title,
                description=_cell(row, "description") or "",
                status=status,
                due_date=None if due_date is None or pd.isna(due_date) else due_date.to_pydatetime(),
                time_spent_minutes=max(0, int(minutes)),
                title_start_date=_cell(row, "title_start_date"),
                title_end_date=_cell(row, "title_end_date"),
                title_total_days=_number(_cell(row, "title_total_days")),
            )
