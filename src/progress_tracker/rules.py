"""Data-quality rules for stored projects.

Rules report problems; they never block reads.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Callable, List

from .dates import parse_calendar_date
from .schemas import Project, normalize_title

logger = logging.getLogger(__name__)

Rule = Callable[[Project], None]


class RuleViolation(Exception):
    """Raised when a project violates a data-quality rule."""


def ensure_unique_titles(project: Project) -> None:
    seen: set[str] = set()
    for entry in project.title_schedules:
        key = normalize_title(entry.title)
        if key in seen:
            raise RuleViolation(f"Duplicate title schedule detected: {key}")
        seen.add(key)


def ensure_ordered_ranges(project: Project) -> None:
    for entry in project.title_schedules:
        start = parse_calendar_date(entry.start_date)
        end = parse_calendar_date(entry.end_date)
        if start is not None and end is not None and end < start:
            raise RuleViolation(
                f"Schedule for {entry.title!r} ends ({end.isoformat()}) before it starts ({start.isoformat()})"
            )


def collect_violations(project: Project, rules: Iterable[Rule]) -> List[str]:
    """Run every rule and return the violation messages instead of raising."""

    messages: List[str] = []
    for rule in rules:
        try:
            rule(project)
        except RuleViolation as exc:
            logger.warning("Project %s failed %s: %s", project.id, rule.__name__, exc)
            messages.append(str(exc))
    return messages


def default_rules() -> list:
    return [ensure_unique_titles, ensure_ordered_ranges]
