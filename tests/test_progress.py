"""Tests for task-day progress, span summaries and previews."""

import random
from datetime import date, timedelta

from src.progress_tracker.aggregator import aggregate_completion
from src.progress_tracker.progress import (
    build_project_report,
    preview_schedules,
    span_summary,
    task_day_progress,
)
from src.progress_tracker.schemas import (
    Project,
    Task,
    TaskStatus,
    TitleCompletionStatus,
    TitleScheduleEntry,
)


def _entry(title, start=None, end=None):
    return TitleScheduleEntry(
        title=title,
        start_date=date.fromisoformat(start) if start else None,
        end_date=date.fromisoformat(end) if end else None,
    )


def _status(title, complete):
    return TitleCompletionStatus(
        title_lower=title.lower(),
        total_tasks=1,
        completed_tasks=1 if complete else 0,
        is_complete=complete,
    )


SCENARIO = [
    _entry("A", "2024-01-01", "2024-01-05"),
    _entry("B", "2024-01-03", "2024-01-04"),
]


def test_all_titles_complete():
    progress = task_day_progress(SCENARIO, [_status("A", True), _status("B", True)])

    assert progress.available is True
    assert progress.total_days == 7
    assert progress.completed_days == 7
    assert progress.percent == 100


def test_only_first_title_complete():
    progress = task_day_progress(SCENARIO, [_status("A", True), _status("B", False)])

    assert progress.total_days == 7
    assert progress.completed_days == 5
    assert progress.percent == 71


def test_span_is_a_union_not_a_sum():
    summary = span_summary(SCENARIO)

    assert summary.available is True
    assert summary.start_label == "2024-01-01"
    assert summary.end_label == "2024-01-05"
    assert summary.days == 5


def test_overlapping_titles_each_contribute_full_length():
    entries = [_entry("A", "2024-01-01", "2024-01-05"), _entry("B", "2024-01-01", "2024-01-05")]

    assert task_day_progress(entries).total_days == 10
    assert span_summary(entries).days == 5


def test_no_valid_ranges_is_unavailable_not_zero():
    entries = [_entry("A"), _entry("B", "2024-01-05"), _entry("C", "2024-01-05", "2024-01-01")]

    progress = task_day_progress(entries, [_status("A", True)])
    assert progress.available is False
    assert progress.total_days is None
    assert progress.percent is None
    assert progress.completed_days == 0

    assert span_summary(entries).available is False
    assert span_summary([]).days is None


def test_inverted_range_is_skipped():
    entries = [_entry("A", "2024-01-01", "2024-01-05"), _entry("B", "2024-01-09", "2024-01-02")]

    progress = task_day_progress(entries, [_status("B", True)])
    assert progress.total_days == 5
    assert progress.completed_days == 0
    assert span_summary(entries).end_label == "2024-01-05"


def test_duplicate_title_entries_are_not_double_counted():
    entries = [_entry("Sync", "2024-01-01", "2024-01-05"), _entry(" sync ", "2024-01-01", "2024-01-05")]

    progress = task_day_progress(entries, [_status("sync", True)])
    assert progress.total_days == 5
    assert progress.completed_days == 5


def test_status_rows_without_schedule_are_ignored():
    progress = task_day_progress([_entry("A", "2024-01-01", "2024-01-02")], [_status("Other", True)])
    assert progress.completed_days == 0
    assert progress.percent == 0


def test_completed_days_never_exceed_total_days():
    rng = random.Random(2024)
    base = date(2024, 1, 1)
    titles = ["alpha", "Beta", "GAMMA", "delta", " alpha "]

    for _ in range(300):
        entries = []
        for _ in range(rng.randint(0, 6)):
            start = base + timedelta(days=rng.randint(-10, 40))
            end = start + timedelta(days=rng.randint(-5, 20))
            entries.append(
                TitleScheduleEntry(
                    title=rng.choice(titles),
                    start_date=start if rng.random() > 0.1 else None,
                    end_date=end if rng.random() > 0.1 else None,
                )
            )
        statuses = [_status(rng.choice(titles).strip(), rng.random() > 0.5) for _ in range(rng.randint(0, 6))]

        progress = task_day_progress(entries, statuses)
        if progress.available:
            assert 0 <= progress.completed_days <= progress.total_days
            assert 0 <= progress.percent <= 100
        else:
            assert progress.completed_days == 0


def test_preview_matches_saved_report():
    candidates = [
        {"title": "A", "startDate": "2024-01-01", "endDate": "2024-01-05"},
        {"title": "B", "startDate": "2024-01-03", "totalDays": 2},
        {"title": "a", "startDate": "2024-01-01", "endDate": "2024-01-05"},
    ]

    preview = preview_schedules(candidates)
    assert [entry.title for entry in preview.title_schedules] == ["a", "B"]
    assert preview.task_day_progress.total_days == 7
    assert preview.task_day_progress.completed_days == 0
    assert preview.span_summary.days == 5

    project = Project(id="p1", name="Demo", title_schedules=preview.title_schedules)
    report = build_project_report(project, aggregate_completion([], ["p1"]))
    assert report.task_day_progress.total_days == preview.task_day_progress.total_days
    assert report.span_summary == preview.span_summary


def test_build_project_report():
    project = Project(id="p1", name="Demo", title_schedules=list(SCENARIO))
    tasks = [
        Task(id="t1", title="a", status=TaskStatus.COMPLETED, project="p1", created_by="u1"),
        Task(id="t2", title="B", status=TaskStatus.PENDING, project="p1", created_by="u1"),
        Task(id="t3", title="Misc", status=TaskStatus.COMPLETED, project="p1", created_by="u1"),
    ]

    report = build_project_report(project, aggregate_completion(tasks, ["p1"]))

    assert report.completion.total_tasks == 3
    assert report.completion.completed_tasks == 2
    assert report.completion.percent == 67
    assert report.title_completion.completed_titles == 1
    assert report.title_completion.percent == 50
    assert report.task_day_progress.percent == 71
    assert report.span_summary.days == 5

    payload = report.model_dump(by_alias=True)
    assert payload["taskDayProgress"]["completedDays"] == 5
    assert payload["titleStatus"][0]["titleLower"] == "a"
