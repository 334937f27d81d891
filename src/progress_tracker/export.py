"""Export utilities for progress reports."""

from pathlib import Path
from typing import IO, Iterable, Union

import pandas as pd

from .schemas import ProjectReport

_COLUMNS = [
    "project_id",
    "name",
    "active",
    "total_tasks",
    "completed_tasks",
    "task_percent",
    "total_titles",
    "completed_titles",
    "title_percent",
    "total_days",
    "completed_days",
    "day_percent",
    "span_start",
    "span_end",
    "span_days",
]


def progress_frame(reports: Iterable[ProjectReport]) -> pd.DataFrame:
    rows = []
    for report in reports:
        rows.append(
            {
                "project_id": report.project_id,
                "name": report.name,
                "active": report.active,
                "total_tasks": report.completion.total_tasks,
                "completed_tasks": report.completion.completed_tasks,
                "task_percent": report.completion.percent,
                "total_titles": report.title_completion.total_titles,
                "completed_titles": report.title_completion.completed_titles,
                "title_percent": report.title_completion.percent,
                "total_days": report.task_day_progress.total_days,
                "completed_days": report.task_day_progress.completed_days,
                "day_percent": report.task_day_progress.percent,
                "span_start": report.span_summary.start_label,
                "span_end": report.span_summary.end_label,
                "span_days": report.span_summary.days,
            }
        )
    # Nullable integers keep "unavailable" cells empty instead of NaN floats.
    df = pd.DataFrame(rows, columns=_COLUMNS)
    for column in ("total_days", "day_percent", "span_days"):
        df[column] = df[column].astype("Int64")
    return df


def export_reports_to_csv(reports: Iterable[ProjectReport], path: Union[Path, str, IO[str]]) -> None:
    progress_frame(reports).to_csv(path, index=False)
