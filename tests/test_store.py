"""Tests for the in-memory project and task store."""

import threading
from datetime import date

import pytest
from pydantic import ValidationError

from src.progress_tracker.schemas import TaskStatus, TitleScheduleInput, normalize_title
from src.progress_tracker.store import (
    AccessDeniedError,
    Actor,
    NotFoundError,
    ProjectStore,
    StoreError,
)

ADMIN = Actor(user_id="admin-1", role="admin")
ALICE = Actor(user_id="alice")
BOB = Actor(user_id="bob")


def _store_with_project(**overrides):
    db = ProjectStore()
    fields = {"name": "Platform", "assigned_to": ["alice"]}
    fields.update(overrides)
    return db, db.create_project(ADMIN, **fields)


def test_only_admins_create_projects():
    db = ProjectStore()
    with pytest.raises(AccessDeniedError):
        db.create_project(ALICE, name="Nope")
    with pytest.raises(StoreError):
        db.create_project(ADMIN, name="   ")


def test_create_project_merges_flat_titles_into_schedules():
    db, project = _store_with_project(
        title_schedules=[{"title": "Build", "startDate": "2024-01-01", "endDate": "2024-01-03"}],
        task_titles=["build", "Review"],
    )

    assert [entry.title for entry in project.title_schedules] == ["Build", "Review"]
    assert project.title_schedules[0].end_date == date(2024, 1, 3)
    assert project.task_titles == ["Build", "Review"]


def test_task_creation_registers_new_title_with_schedule():
    db, project = _store_with_project()

    db.create_task(
        ALICE,
        title="Daily report",
        project=project.id,
        schedule=TitleScheduleInput(start_date="2024-02-01", total_days=5),
    )

    entry = db.get_project(project.id).title_schedules[0]
    assert entry.title == "Daily report"
    assert entry.start_date == date(2024, 2, 1)
    assert entry.end_date == date(2024, 2, 5)


def test_task_creation_keeps_admin_schedule():
    db, project = _store_with_project(
        title_schedules=[{"title": "Daily report", "startDate": "2024-01-01", "endDate": "2024-01-02"}]
    )

    db.create_task(
        ALICE,
        title="DAILY REPORT",
        project=project.id,
        schedule=TitleScheduleInput(start_date="2024-06-01", end_date="2024-06-30"),
    )

    schedules = db.get_project(project.id).title_schedules
    assert len(schedules) == 1
    assert schedules[0].end_date == date(2024, 1, 2)


def test_concurrent_task_creation_yields_one_entry():
    db, project = _store_with_project()
    barrier = threading.Barrier(16)
    errors = []

    def worker():
        try:
            barrier.wait()
            db.create_task(ALICE, title="daily sync", project=project.id)
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    schedules = db.get_project(project.id).title_schedules
    assert [normalize_title(entry.title) for entry in schedules] == ["daily sync"]
    assert len(db.tasks_for_projects([project.id])) == 16


def test_update_task_registers_renamed_title():
    db, project = _store_with_project()
    task = db.create_task(ALICE, title="Draft", project=project.id)

    updated = db.update_task(ALICE, task.id, title="Final review", status=TaskStatus.COMPLETED)

    assert updated.status == TaskStatus.COMPLETED
    titles = [entry.title for entry in db.get_project(project.id).title_schedules]
    assert titles == ["Draft", "Final review"]


def test_task_project_must_exist_and_be_assigned():
    db, project = _store_with_project()

    with pytest.raises(StoreError):
        db.create_task(ALICE, title="X", project="missing")
    with pytest.raises(StoreError):
        db.create_task(BOB, title="X", project=project.id)
    with pytest.raises(StoreError):
        db.create_task(ALICE, title="  ")


def test_admin_can_create_task_for_another_user():
    db, project = _store_with_project()

    task = db.create_task(ADMIN, title="Assigned", project=project.id, created_by="bob")

    assert task.created_by == "bob"
    assert [t.id for t in db.list_tasks(BOB)] == [task.id]


def test_non_admin_cannot_impersonate_owner():
    db, project = _store_with_project()
    task = db.create_task(ALICE, title="Mine", project=project.id, created_by="bob")
    assert task.created_by == "alice"


def test_list_projects_visibility():
    db = ProjectStore()
    visible = db.create_project(ADMIN, name="Visible", assigned_to=["alice"])
    hidden = db.create_project(ADMIN, name="Hidden", assigned_to=["alice"], active=False)
    db.create_project(ADMIN, name="Other", assigned_to=["bob"])

    assert [p.id for p in db.list_projects(ALICE)] == [visible.id]
    assert len(db.list_projects(ADMIN)) == 3

    # Inactive projects stay addressable by id.
    assert db.get_visible_project(ALICE, hidden.id).name == "Hidden"
    with pytest.raises(AccessDeniedError):
        db.get_visible_project(BOB, visible.id)
    with pytest.raises(NotFoundError):
        db.get_project("missing")


def test_update_project_bulk_replaces_and_merges():
    db, project = _store_with_project(task_titles=["Old"])

    updated = db.update_project(
        ADMIN,
        project.id,
        title_schedules=[{"title": "New", "startDate": "2024-01-01", "endDate": "2024-01-01"}],
        task_titles=["Extra", "new"],
        active=False,
    )

    assert [entry.title for entry in updated.title_schedules] == ["New", "Extra"]
    assert updated.active is False
    with pytest.raises(AccessDeniedError):
        db.update_project(ALICE, project.id, name="Mine now")


def test_delete_project_detaches_tasks():
    db, project = _store_with_project()
    task = db.create_task(ALICE, title="Keep me", project=project.id)

    db.delete_project(ADMIN, project.id)

    assert db.get_task(ALICE, task.id).project is None
    with pytest.raises(NotFoundError):
        db.get_project(project.id)
    with pytest.raises(NotFoundError):
        db.delete_project(ADMIN, project.id)


def test_task_access_rules():
    db, project = _store_with_project(assigned_to=["alice", "bob"])
    task = db.create_task(ALICE, title="Shared", project=project.id)
    carol = Actor(user_id="carol")

    assert db.get_task(BOB, task.id).id == task.id
    with pytest.raises(AccessDeniedError):
        db.get_task(carol, task.id)
    with pytest.raises(AccessDeniedError):
        db.update_task(BOB, task.id, status=TaskStatus.COMPLETED)
    with pytest.raises(AccessDeniedError):
        db.delete_task(BOB, task.id)

    db.delete_task(ADMIN, task.id)
    with pytest.raises(NotFoundError):
        db.get_task(ALICE, task.id)


def test_returned_projects_are_snapshots():
    db, project = _store_with_project()
    project.title_schedules.clear()
    project.name = "Mutated"

    stored = db.get_project(project.id)
    assert stored.name == "Platform"


def test_oversized_duration_registers_title_without_end():
    db, project = _store_with_project()

    task = db.create_task(
        ALICE,
        title="Backfill",
        project=project.id,
        schedule=TitleScheduleInput(start_date="2024-01-01", total_days=5_000_000),
    )

    assert db.get_task(ALICE, task.id).title == "Backfill"
    [entry] = db.get_project(project.id).title_schedules
    assert entry.start_date == date(2024, 1, 1)
    assert entry.end_date is None


def test_rejected_task_schedule_stores_nothing():
    db, project = _store_with_project()

    with pytest.raises(ValidationError):
        db.create_task(
            ALICE,
            title="Backfill",
            project=project.id,
            schedule={"startDate": "2024-01-01", "totalDays": "a few"},
        )

    assert db.list_tasks(ALICE) == []
    assert db.get_project(project.id).title_schedules == []


def test_failed_project_update_leaves_project_untouched():
    db, project = _store_with_project(task_titles=["Old"])

    with pytest.raises(ValidationError):
        db.update_project(
            ADMIN,
            project.id,
            name="Renamed",
            assigned_to=["bob"],
            title_schedules=[{"title": "New", "startDate": "2024-01-01", "totalDays": "a few"}],
        )

    stored = db.get_project(project.id)
    assert stored.name == "Platform"
    assert stored.assigned_to == ["alice"]
    assert stored.task_titles == ["Old"]
