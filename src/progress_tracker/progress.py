"""Day-weighted progress and planned-window summaries for title schedules.

Two different day totals live here and must not be confused:

* ``task_day_progress`` sums the inclusive length of every scheduled title, so
  overlapping titles each contribute their full length (workload).
* ``span_summary`` measures the union window from the earliest start to the
  latest end (calendar footprint).
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Dict, List, Optional

from .aggregator import CompletionStats, percent, project_completion, title_completion, title_status_for_project
from .dates import inclusive_day_count, ordinal_to_label, to_utc_day_ordinal
from .registry import ScheduleLike, TitleScheduleRegistry
from .schemas import (
    Project,
    ProjectReport,
    SchedulePreview,
    SpanSummary,
    TaskDayProgress,
    TitleCompletionStatus,
    TitleScheduleEntry,
    normalize_title,
)

logger = logging.getLogger(__name__)


def _scheduled_entries(entries: Iterable[TitleScheduleEntry]) -> List[TitleScheduleEntry]:
    # Duplicate titles collapse to their first entry so a title is never counted twice.
    return [
        entry
        for entry in TitleScheduleRegistry(entries)
        if inclusive_day_count(entry.start_date, entry.end_date) is not None
    ]


def task_day_progress(
    entries: Iterable[TitleScheduleEntry],
    statuses: Optional[Iterable[TitleCompletionStatus]] = None,
) -> TaskDayProgress:
    """Weight title completion by the number of scheduled days per title.

    A title contributes its days to ``completed_days`` only when every task
    carrying that title is completed.
    """

    complete_by_title: Dict[str, bool] = {}
    for status in statuses or ():
        key = normalize_title(status.title_lower)
        if key:
            complete_by_title[key] = complete_by_title.get(key, False) or status.is_complete

    total_days = 0
    completed_days = 0
    for entry in _scheduled_entries(entries):
        days = inclusive_day_count(entry.start_date, entry.end_date)
        total_days += days
        if complete_by_title.get(normalize_title(entry.title)):
            completed_days += days

    if total_days <= 0:
        return TaskDayProgress()

    completed_days = max(0, min(completed_days, total_days))
    return TaskDayProgress(
        available=True,
        total_days=total_days,
        completed_days=completed_days,
        percent=percent(total_days, completed_days),
    )


def span_summary(entries: Iterable[TitleScheduleEntry]) -> SpanSummary:
    """Return the earliest start, latest end and inclusive union length."""

    scheduled = _scheduled_entries(entries)
    if not scheduled:
        return SpanSummary()

    span_start = min(to_utc_day_ordinal(entry.start_date) for entry in scheduled)
    span_end = max(to_utc_day_ordinal(entry.end_date) for entry in scheduled)
    return SpanSummary(
        available=True,
        start_label=ordinal_to_label(span_start),
        end_label=ordinal_to_label(span_end),
        days=span_end - span_start + 1,
    )


def preview_schedules(candidates: Iterable[ScheduleLike]) -> SchedulePreview:
    """Compute the totals a set of unsaved schedules would show once saved."""

    registry = TitleScheduleRegistry()
    registry.replace(candidates)
    entries = registry.entries()
    return SchedulePreview(
        title_schedules=entries,
        task_day_progress=task_day_progress(entries),
        span_summary=span_summary(entries),
    )


def build_project_report(project: Project, stats: CompletionStats) -> ProjectReport:
    statuses = title_status_for_project(project, stats)
    return ProjectReport(
        project_id=project.id,
        name=project.name,
        active=project.active,
        completion=project_completion(project.id, stats),
        title_completion=title_completion(statuses),
        title_status=statuses,
        task_day_progress=task_day_progress(project.title_schedules, statuses),
        span_summary=span_summary(project.title_schedules),
    )
