"""Thread-safe in-memory storage for projects and tasks."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Iterable, List, Optional

from .config import get_admin_role
from .registry import ScheduleLike, bulk_replace, schedule_for_title, upsert_on_task_write
from .schemas import Project, Task, TaskStatus

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a store operation is rejected."""

    status_code = 400


class NotFoundError(StoreError):
    status_code = 404


class AccessDeniedError(StoreError):
    status_code = 403


@dataclass(frozen=True)
class Actor:
    """The user on whose behalf an operation runs."""

    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role.strip().lower() == get_admin_role()


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProjectStore:
    """Projects, tasks and the per-project locks that serialize title merges."""

    def __init__(self) -> None:
        self._projects: Dict[str, Project] = {}
        self._tasks: Dict[str, Task] = {}
        self._project_locks: Dict[str, Lock] = {}
        self._lock = Lock()

    def reset(self) -> None:
        with self._lock:
            projects, tasks = len(self._projects), len(self._tasks)
            self._projects.clear()
            self._tasks.clear()
            self._project_locks.clear()
        logger.info("Store reset. Removed %s projects and %s tasks", projects, tasks)

    def _project_lock(self, project_id: str) -> Lock:
        with self._lock:
            return self._project_locks.setdefault(project_id, Lock())

    def _require_admin(self, actor: Actor) -> None:
        if not actor.is_admin:
            raise AccessDeniedError("Admin access required")

    def _load_project(self, project_id: str) -> Project:
        with self._lock:
            project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    def _load_task(self, task_id: str) -> Task:
        with self._lock:
            task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    # Projects

    def create_project(
        self,
        actor: Actor,
        *,
        name: str,
        description: str = "",
        assigned_to: Optional[Iterable[str]] = None,
        title_schedules: Optional[Iterable[ScheduleLike]] = None,
        task_titles: Optional[Iterable[str]] = None,
        active: bool = True,
    ) -> Project:
        self._require_admin(actor)
        cleaned_name = (name or "").strip()
        if not cleaned_name:
            raise StoreError("Project name required")

        project = Project(
            id=_new_id(),
            name=cleaned_name,
            description=description or "",
            assigned_to=list(assigned_to or []),
            created_by=actor.user_id,
            active=active,
        )
        bulk_replace(project, title_schedules or [])
        for title in task_titles or []:
            upsert_on_task_write(project, title)

        with self._lock:
            self._projects[project.id] = project
        logger.info("Created project %s (%s) with %s titles", project.id, project.name, len(project.title_schedules))
        return project.model_copy(deep=True)

    def get_project(self, project_id: str) -> Project:
        return self._load_project(project_id).model_copy(deep=True)

    def ensure_project_visible(self, project: Project, actor: Actor) -> None:
        if actor.is_admin or actor.user_id in project.assigned_to:
            return
        raise AccessDeniedError("Access denied")

    def get_visible_project(self, actor: Actor, project_id: str) -> Project:
        project = self.get_project(project_id)
        self.ensure_project_visible(project, actor)
        return project

    def list_projects(self, actor: Actor) -> List[Project]:
        """Admins see every project; other users see active projects assigned to them."""

        with self._lock:
            snapshot = [project.model_copy(deep=True) for project in self._projects.values()]

        if not actor.is_admin:
            snapshot = [p for p in snapshot if p.active and actor.user_id in p.assigned_to]
        snapshot.sort(key=lambda p: p.created_at, reverse=True)
        return snapshot

    def update_project(
        self,
        actor: Actor,
        project_id: str,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        assigned_to: Optional[Iterable[str]] = None,
        title_schedules: Optional[Iterable[ScheduleLike]] = None,
        task_titles: Optional[Iterable[str]] = None,
        active: Optional[bool] = None,
    ) -> Project:
        self._require_admin(actor)
        if name is not None and not name.strip():
            raise StoreError("Project name required")
        with self._project_lock(project_id):
            # Changes land on a copy that replaces the stored project only once all succeed.
            project = self._load_project(project_id).model_copy(deep=True)
            if name is not None:
                project.name = name.strip()
            if description is not None:
                project.description = description
            if assigned_to is not None:
                project.assigned_to = list(assigned_to)
            if title_schedules is not None:
                bulk_replace(project, title_schedules)
            for title in task_titles or []:
                upsert_on_task_write(project, title)
            if active is not None:
                project.active = active
            project.updated_at = _now()
            with self._lock:
                self._projects[project_id] = project
            logger.info("Updated project %s", project_id)
            return project.model_copy(deep=True)


    def delete_project(self, actor: Actor, project_id: str) -> None:
        """Delete a project and detach, without deleting, the tasks that referenced it."""

        self._require_admin(actor)
        with self._project_lock(project_id):
            with self._lock:
                project = self._projects.pop(project_id, None)
                if project is None:
                    raise NotFoundError("Project not found")
                detached = 0
                for task in self._tasks.values():
                    if task.project == project_id:
                        task.project = None
                        task.updated_at = _now()
                        detached += 1
                self._project_locks.pop(project_id, None)
        logger.info("Deleted project %s and detached %s tasks", project_id, detached)

    def merge_title(self, project_id: str, title: Optional[str], schedule: Optional[ScheduleLike] = None) -> bool:
        """Atomically register ``title`` on the project unless it already exists."""

        with self._project_lock(project_id):
            with self._lock:
                project = self._projects.get(project_id)
            if project is None:
                logger.debug("Skipping title merge for missing project %s", project_id)
                return False
            return upsert_on_task_write(project, title, schedule)

    # Tasks

    def create_task(
        self,
        actor: Actor,
        *,
        title: str,
        description: str = "",
        status: Optional[TaskStatus] = None,
        due_date: Optional[datetime] = None,
        time_spent_minutes: Optional[int] = None,
        project: Optional[str] = None,
        created_by: Optional[str] = None,
        schedule: Optional[ScheduleLike] = None,
    ) -> Task:
        """Create a task and register its title on the referenced project.

        ``schedule`` only takes effect when the title is new to the project.
        """

        cleaned_title = (title or "").strip()
        if not cleaned_title:
            raise StoreError("Task title required")

        owner = created_by if actor.is_admin and created_by else actor.user_id
        if project:
            with self._lock:
                target = self._projects.get(project)
            if target is None or (not actor.is_admin and owner not in target.assigned_to):
                raise StoreError("Invalid or unauthorized project")
        entry = schedule_for_title(cleaned_title, schedule) if project else None

        task = Task(
            id=_new_id(),
            title=cleaned_title,
            description=description or "",
            status=status or TaskStatus.PENDING,
            due_date=due_date,
            time_spent_minutes=time_spent_minutes or 0,
            project=project or None,
            created_by=owner,
        )
        with self._lock:
            self._tasks[task.id] = task
        logger.info("Created task %s for user %s", task.id, owner)

        if task.project:
            self.merge_title(task.project, task.title, entry)
        return task.model_copy(deep=True)

    def get_task(self, actor: Actor, task_id: str) -> Task:
        task = self._load_task(task_id)
        if actor.is_admin or task.created_by == actor.user_id:
            return task.model_copy(deep=True)
        if task.project:
            with self._lock:
                project = self._projects.get(task.project)
            if project is not None and actor.user_id in project.assigned_to:
                return task.model_copy(deep=True)
        raise AccessDeniedError("Access denied")

    def _ensure_task_owner(self, actor: Actor, task: Task) -> None:
        if not actor.is_admin and task.created_by != actor.user_id:
            raise AccessDeniedError("Access denied")

    def update_task(
        self,
        actor: Actor,
        task_id: str,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[TaskStatus] = None,
        due_date: Optional[datetime] = None,
        time_spent_minutes: Optional[int] = None,
        project: Optional[str] = None,
    ) -> Task:
        task = self._load_task(task_id)
        self._ensure_task_owner(actor, task)

        if project is not None:
            with self._lock:
                exists = project in self._projects
            if not exists:
                raise StoreError("Invalid or unauthorized project")

        with self._lock:
            if title is not None:
                if not title.strip():
                    raise StoreError("Task title required")
                task.title = title.strip()
            if description is not None:
                task.description = description
            if status is not None:
                task.status = status
            if due_date is not None:
                task.due_date = due_date
            if time_spent_minutes is not None:
                task.time_spent_minutes = time_spent_minutes
            if project is not None:
                task.project = project
            task.updated_at = _now()
            snapshot = task.model_copy(deep=True)
        logger.info("Updated task %s", task_id)

        if snapshot.project:
            self.merge_title(snapshot.project, snapshot.title)
        return snapshot

    def delete_task(self, actor: Actor, task_id: str) -> None:
        task = self._load_task(task_id)
        self._ensure_task_owner(actor, task)
        with self._lock:
            self._tasks.pop(task_id, None)
        logger.info("Deleted task %s", task_id)

    def list_tasks(self, actor: Actor, user_id: Optional[str] = None) -> List[Task]:
        """Users see their own tasks; admins see all, optionally filtered by owner."""

        owner = user_id if actor.is_admin else actor.user_id
        with self._lock:
            tasks = [
                task.model_copy(deep=True)
                for task in self._tasks.values()
                if owner is None or task.created_by == owner
            ]
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks

    def tasks_for_projects(self, project_ids: Iterable[str]) -> List[Task]:
        wanted = set(project_ids)
        with self._lock:
            return [task.model_copy(deep=True) for task in self._tasks.values() if task.project in wanted]


store = ProjectStore()
