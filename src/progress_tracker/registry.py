"""Per-project registry of task-title schedules.

Entries are keyed by normalized title (trimmed, lower-cased). The stored title
keeps the casing of the entry that created the key.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .dates import DateLike, end_from_duration, parse_calendar_date
from .schemas import Project, TitleScheduleEntry, TitleScheduleInput, normalize_title

logger = logging.getLogger(__name__)

ScheduleLike = Union[TitleScheduleEntry, TitleScheduleInput, Mapping[str, Any]]

__all__ = [
    "TitleScheduleRegistry",
    "bulk_replace",
    "coerce_schedule",
    "normalize_title",
    "schedule_for_title",
    "upsert_on_task_write",
]


def coerce_schedule(item: Optional[ScheduleLike]) -> Optional[TitleScheduleEntry]:
    """Turn loose schedule input into an entry, or ``None`` when it has no title.

    Unparseable dates become ``None``. When only a start and a duration are
    given, the end date is derived from them.
    """

    if item is None:
        return None
    if isinstance(item, TitleScheduleEntry):
        title = (item.title or "").strip()
        if not title:
            return None
        return TitleScheduleEntry(title=title, start_date=item.start_date, end_date=item.end_date)
    if not isinstance(item, TitleScheduleInput):
        item = TitleScheduleInput.model_validate(dict(item))

    title = (item.title or "").strip()
    if not title:
        return None

    start = parse_calendar_date(item.start_date)
    end = parse_calendar_date(item.end_date)
    if end is None and item.total_days is not None:
        end = end_from_duration(start, item.total_days)
    return TitleScheduleEntry(title=title, start_date=start, end_date=end)


class TitleScheduleRegistry:
    """Ordered mapping from normalized title to :class:`TitleScheduleEntry`."""

    def __init__(self, entries: Iterable[TitleScheduleEntry] = ()) -> None:
        self._entries: Dict[str, TitleScheduleEntry] = {}
        for entry in entries:
            key = normalize_title(entry.title)
            if not key:
                continue
            if key in self._entries:
                logger.debug("Ignoring duplicate schedule entry for title %r", key)
                continue
            self._entries[key] = entry

    def __contains__(self, title: object) -> bool:
        return isinstance(title, str) and normalize_title(title) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TitleScheduleEntry]:
        return iter(self._entries.values())

    def entries(self) -> List[TitleScheduleEntry]:
        return list(self._entries.values())

    def titles(self) -> List[str]:
        """Normalized titles in insertion order."""
        return list(self._entries.keys())

    def upsert(self, title: Optional[str], start_date: DateLike = None, end_date: DateLike = None) -> bool:
        """Add ``title`` if it is new. Existing entries are never modified.

        Returns ``True`` when an entry was added.
        """

        key = normalize_title(title)
        if not key or title in self:
            return False

        self._entries[key] = TitleScheduleEntry(
            title=title.strip(),
            start_date=parse_calendar_date(start_date),
            end_date=parse_calendar_date(end_date),
        )
        logger.debug("Registered schedule for title %r", key)
        return True

    def replace(self, items: Iterable[ScheduleLike]) -> None:
        """Replace every entry; for repeated titles the last one wins."""

        replaced: Dict[str, TitleScheduleEntry] = {}
        for item in items:
            entry = coerce_schedule(item)
            if entry is None:
                continue
            replaced[normalize_title(entry.title)] = entry
        self._entries = replaced


def schedule_for_title(title: Optional[str], schedule: Optional[ScheduleLike]) -> Optional[TitleScheduleEntry]:
    """Coerce the schedule sent with a task write, keyed to the task's own title."""

    if schedule is None:
        return None
    if not isinstance(schedule, (TitleScheduleEntry, TitleScheduleInput)):
        schedule = TitleScheduleInput.model_validate(dict(schedule))
    return coerce_schedule(schedule.model_copy(update={"title": title}))


def upsert_on_task_write(project: Project, title: Optional[str], schedule: Optional[ScheduleLike] = None) -> bool:
    """Register ``title`` on ``project`` after a task referencing it was written.

    An existing schedule for the same normalized title always wins. The
    optional ``schedule`` only applies when the title is new. The caller is
    responsible for serializing concurrent writes to the same project.
    """

    entry = schedule_for_title(title, schedule)
    start = end = None
    if entry is not None:
        start, end = entry.start_date, entry.end_date

    registry = TitleScheduleRegistry(project.title_schedules)
    added = registry.upsert(title, start, end)

    if added:
        project.title_schedules = registry.entries()
        project.updated_at = datetime.now(timezone.utc)
        logger.info("Added title %r to project %s", normalize_title(title), project.id)
    return added


def bulk_replace(project: Project, items: Iterable[ScheduleLike]) -> List[TitleScheduleEntry]:
    """Replace all of ``project``'s title schedules with ``items``."""

    registry = TitleScheduleRegistry()
    registry.replace(items)
    project.title_schedules = registry.entries()
    project.updated_at = datetime.now(timezone.utc)
    logger.info("Replaced title schedules for project %s (titles=%s)", project.id, len(registry))
    return project.title_schedules
