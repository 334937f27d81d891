"""Task completion roll-ups per project and per (project, title)."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .registry import TitleScheduleRegistry
from .schemas import (
    CompletionCounts,
    Project,
    ProjectCompletion,
    Task,
    TaskStatus,
    TitleCompletion,
    TitleCompletionStatus,
    normalize_title,
)

logger = logging.getLogger(__name__)


def percent(total: int, completed: int) -> int:
    """Return ``completed / total`` as a whole percentage, rounding halves up.

    A ``total`` of zero yields ``0``.
    """

    if total <= 0:
        return 0
    # Integer form of floor(100 * completed / total + 0.5).
    return (200 * completed + total) // (2 * total)


@dataclass
class CompletionStats:
    """Task counts grouped by project and by normalized title within a project."""

    by_project: Dict[str, CompletionCounts] = field(default_factory=dict)
    by_title: Dict[Tuple[str, str], CompletionCounts] = field(default_factory=dict)

    def for_project(self, project_id: str) -> CompletionCounts:
        return self.by_project.get(project_id) or CompletionCounts()

    def for_title(self, project_id: str, title: str) -> CompletionCounts:
        return self.by_title.get((project_id, normalize_title(title))) or CompletionCounts()


def _is_completed(task: Task) -> bool:
    return task.status == TaskStatus.COMPLETED


def aggregate_completion(tasks: Iterable[Task], project_ids: Optional[Iterable[str]] = None) -> CompletionStats:
    """Count total and completed tasks for each project in ``project_ids``.

    Tasks without a project, or whose project is outside ``project_ids``, are
    ignored. When ``project_ids`` is ``None`` every referenced project counts.
    """

    wanted = set(project_ids) if project_ids is not None else None
    stats = CompletionStats()

    for task in tasks:
        project_id = task.project
        if not project_id or (wanted is not None and project_id not in wanted):
            continue

        done = 1 if _is_completed(task) else 0

        totals = stats.by_project.setdefault(project_id, CompletionCounts())
        totals.total_tasks += 1
        totals.completed_tasks += done

        title_key = normalize_title(task.title)
        if not title_key:
            continue
        per_title = stats.by_title.setdefault((project_id, title_key), CompletionCounts())
        per_title.total_tasks += 1
        per_title.completed_tasks += done

    logger.debug(
        "Aggregated completion for %s projects and %s titles",
        len(stats.by_project),
        len(stats.by_title),
    )
    return stats


def project_completion(project_id: str, stats: CompletionStats) -> ProjectCompletion:
    counts = stats.for_project(project_id)
    return ProjectCompletion(
        total_tasks=counts.total_tasks,
        completed_tasks=counts.completed_tasks,
        percent=percent(counts.total_tasks, counts.completed_tasks),
    )


def title_status_for_project(project: Project, stats: CompletionStats) -> List[TitleCompletionStatus]:
    """Return one completion row per registered title of ``project``."""

    statuses: List[TitleCompletionStatus] = []
    for title_lower in TitleScheduleRegistry(project.title_schedules).titles():
        counts = stats.for_title(project.id, title_lower)
        statuses.append(
            TitleCompletionStatus(
                title_lower=title_lower,
                total_tasks=counts.total_tasks,
                completed_tasks=counts.completed_tasks,
                is_complete=counts.total_tasks > 0 and counts.completed_tasks == counts.total_tasks,
            )
        )
    return statuses


def title_completion(statuses: Iterable[TitleCompletionStatus]) -> TitleCompletion:
    rows = list(statuses)
    completed = sum(1 for row in rows if row.is_complete)
    return TitleCompletion(
        total_titles=len(rows),
        completed_titles=completed,
        percent=percent(len(rows), completed),
    )
