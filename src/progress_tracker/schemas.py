"""Pydantic schemas for projects, tasks and derived progress reports."""
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_title(title: Optional[str]) -> str:
    """Return the comparison key for a title: trimmed and lower-cased."""

    return (title or "").strip().lower()


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TitleScheduleEntry(CamelModel):
    """Planned date range for a task title within a project."""

    title: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class TitleScheduleInput(CamelModel):
    """Loosely typed schedule as submitted by a form, CSV row or task write."""

    title: Optional[str] = None
    start_date: Optional[Union[datetime, date, str]] = None
    end_date: Optional[Union[datetime, date, str]] = None
    total_days: Optional[float] = None


class Project(CamelModel):
    """A project and its per-title schedules."""

    id: str
    name: str
    description: str = ""
    assigned_to: List[str] = Field(default_factory=list)
    title_schedules: List[TitleScheduleEntry] = Field(default_factory=list)
    created_by: Optional[str] = None
    active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @computed_field(alias="taskTitles")
    @property
    def task_titles(self) -> List[str]:
        """Flat title list used for suggestions, derived from the schedules."""

        seen: set[str] = set()
        titles: List[str] = []
        for entry in self.title_schedules:
            key = normalize_title(entry.title)
            if key and key not in seen:
                seen.add(key)
                titles.append(entry.title)
        return titles


class Task(CamelModel):
    """A single user-assigned activity."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    due_date: Optional[datetime] = None
    time_spent_minutes: int = Field(default=0, ge=0)
    project: Optional[str] = None
    created_by: str
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class TaskDraft(CamelModel):
    """Fields accepted when creating a task, including an optional title schedule."""

    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    due_date: Optional[datetime] = None
    time_spent_minutes: int = Field(default=0, ge=0)
    project: Optional[str] = None
    created_by: Optional[str] = None
    title_start_date: Optional[Union[datetime, date, str]] = None
    title_end_date: Optional[Union[datetime, date, str]] = None
    title_total_days: Optional[float] = None

    def schedule(self) -> Optional[TitleScheduleInput]:
        if self.title_start_date is None and self.title_end_date is None:
            return None
        return TitleScheduleInput(
            title=self.title,
            start_date=self.title_start_date,
            end_date=self.title_end_date,
            total_days=self.title_total_days,
        )


class CompletionCounts(CamelModel):
    total_tasks: int = 0
    completed_tasks: int = 0


class ProjectCompletion(CompletionCounts):
    percent: int = 0


class TitleCompletionStatus(CamelModel):
    title_lower: str
    total_tasks: int = 0
    completed_tasks: int = 0
    is_complete: bool = False


class TitleCompletion(CamelModel):
    total_titles: int = 0
    completed_titles: int = 0
    percent: int = 0


class TaskDayProgress(CamelModel):
    """Day-weighted progress; ``available`` is false when nothing is scheduled."""

    available: bool = False
    total_days: Optional[int] = None
    completed_days: int = 0
    percent: Optional[int] = None


class SpanSummary(CamelModel):
    """Union window from the earliest scheduled start to the latest end."""

    available: bool = False
    start_label: Optional[str] = None
    end_label: Optional[str] = None
    days: Optional[int] = None


class ProjectReport(CamelModel):
    project_id: str
    name: str
    active: bool = True
    completion: ProjectCompletion = Field(default_factory=ProjectCompletion)
    title_completion: TitleCompletion = Field(default_factory=TitleCompletion)
    title_status: List[TitleCompletionStatus] = Field(default_factory=list)
    task_day_progress: TaskDayProgress = Field(default_factory=TaskDayProgress)
    span_summary: SpanSummary = Field(default_factory=SpanSummary)


class SchedulePreview(CamelModel):
    title_schedules: List[TitleScheduleEntry] = Field(default_factory=list)
    task_day_progress: TaskDayProgress = Field(default_factory=TaskDayProgress)
    span_summary: SpanSummary = Field(default_factory=SpanSummary)
