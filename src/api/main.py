"""FastAPI application entrypoint."""
from __future__ import annotations

import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from src.progress_tracker.aggregator import aggregate_completion
from src.progress_tracker.config import get_log_level, get_max_upload_bytes
from src.progress_tracker.export import export_reports_to_csv
from src.progress_tracker.ingest import CSVIngestor
from src.progress_tracker.progress import build_project_report, preview_schedules
from src.progress_tracker.rules import collect_violations, default_rules
from src.progress_tracker.schemas import (
    CamelModel,
    Project,
    ProjectReport,
    Task,
    TaskDraft,
    TaskStatus,
    TitleScheduleInput,
)
from src.progress_tracker.store import Actor, StoreError, store

logging.basicConfig(level=get_log_level())

app = FastAPI(title="Project Progress Tracker")

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"csv"}
USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"
_REPORT_FIELDS = {"project_id", "name", "active"}


def _json_error(status_code: int, message: str) -> JSONResponse:
    """Return a standardized JSON error response."""

    logger.warning("Returning error %s: %s", status_code, message)
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.warning("HTTPException at %s: %s", request.url.path, message)
    return JSONResponse(status_code=exc.status_code, content={"error": message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Validation error at %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"error": "Invalid request payload."})


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.warning("Store rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


class ProjectCreateRequest(CamelModel):
    name: str
    description: str = ""
    assigned_to: List[str] = []
    title_schedules: List[TitleScheduleInput] = []
    task_titles: List[str] = []
    active: bool = True


class ProjectUpdateRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[List[str]] = None
    title_schedules: Optional[List[TitleScheduleInput]] = None
    task_titles: Optional[List[str]] = None
    active: Optional[bool] = None


class SchedulePreviewRequest(CamelModel):
    title_schedules: List[TitleScheduleInput] = []


class TaskUpdateRequest(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = None
    time_spent_minutes: Optional[int] = Field(default=None, ge=0)
    project: Optional[str] = None


def _dump(model: BaseModel, **kwargs: Any) -> Any:
    return model.model_dump(mode="json", by_alias=True, **kwargs)


def _get_actor(request: Request) -> Actor:
    """Resolve the calling user from headers set by the authenticating proxy."""

    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User identity header is required.")
    role = (request.headers.get(USER_ROLE_HEADER) or "user").strip() or "user"
    return Actor(user_id=user_id, role=role)


def _reports_for(projects: Iterable[Project]) -> List[ProjectReport]:
    projects = list(projects)
    project_ids = [project.id for project in projects]
    stats = aggregate_completion(store.tasks_for_projects(project_ids), project_ids)
    return [build_project_report(project, stats) for project in projects]


def _project_payload(project: Project, report: ProjectReport) -> dict[str, Any]:
    payload = _dump(project)
    payload.update(_dump(report, exclude=_REPORT_FIELDS))
    return payload


def _get_extension(filename: str) -> str:
    return Path(filename).suffix.lower().lstrip(".")


async def _read_csv_upload(file: UploadFile) -> CSVIngestor:
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required.")
    if _get_extension(file.filename) not in ALLOWED_EXTENSIONS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported file type. Allowed: csv.")

    data = await file.read()
    logger.debug("Read %s bytes from uploaded file %s", len(data), file.filename)

    limit = get_max_upload_bytes()
    if len(data) > limit:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"File too large. Limit is {limit} bytes.")
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")

    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:  # pragma: no cover - depends on user input
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unable to decode CSV as UTF-8.") from exc
    return CSVIngestor.from_text(text)


def _create_task(actor: Actor, draft: TaskDraft) -> Task:
    return store.create_task(
        actor,
        title=draft.title,
        description=draft.description,
        status=draft.status,
        due_date=draft.due_date,
        time_spent_minutes=draft.time_spent_minutes,
        project=draft.project,
        created_by=draft.created_by,
        schedule=draft.schedule(),
    )


@app.get("/")
def read_root() -> dict[str, str]:
    """Basic health endpoint."""

    return {"status": "ok"}


@app.get("/projects")
def list_projects(request: Request) -> JSONResponse:
    """List visible projects with task, title and task-day progress."""

    actor = _get_actor(request)
    projects = store.list_projects(actor)
    reports = _reports_for(projects)
    content = [_project_payload(project, report) for project, report in zip(projects, reports)]
    logger.info("Listed %s projects for user %s", len(content), actor.user_id)
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


@app.get("/projects/export.csv")
def export_projects(request: Request) -> Response:
    """Download the progress of every visible project as CSV."""

    actor = _get_actor(request)
    buffer = io.StringIO()
    export_reports_to_csv(_reports_for(store.list_projects(actor)), buffer)
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="project-progress.csv"'},
    )


@app.post("/projects/preview")
def preview_project_schedules(payload: SchedulePreviewRequest, request: Request) -> JSONResponse:
    """Show projected task days and planned window for unsaved schedules."""

    _get_actor(request)
    preview = preview_schedules(payload.title_schedules)
    return JSONResponse(status_code=status.HTTP_200_OK, content=_dump(preview))


@app.get("/projects/{project_id}")
def get_project(project_id: str, request: Request) -> JSONResponse:
    """Return one project with its tasks, progress report and data-quality warnings."""

    actor = _get_actor(request)
    project = store.get_visible_project(actor, project_id)
    tasks = store.tasks_for_projects([project.id])
    stats = aggregate_completion(tasks, [project.id])
    report = build_project_report(project, stats)
    content = {
        "project": _dump(project),
        "tasks": [_dump(task) for task in tasks],
        "report": _dump(report),
        "warnings": collect_violations(project, default_rules()),
    }
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


@app.post("/projects")
def create_project(payload: ProjectCreateRequest, request: Request) -> JSONResponse:
    actor = _get_actor(request)
    project = store.create_project(
        actor,
        name=payload.name,
        description=payload.description,
        assigned_to=payload.assigned_to,
        title_schedules=payload.title_schedules,
        task_titles=payload.task_titles,
        active=payload.active,
    )
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=_dump(project))


@app.patch("/projects/{project_id}")
def update_project(project_id: str, payload: ProjectUpdateRequest, request: Request) -> JSONResponse:
    actor = _get_actor(request)
    project = store.update_project(
        actor,
        project_id,
        name=payload.name,
        description=payload.description,
        assigned_to=payload.assigned_to,
        title_schedules=payload.title_schedules,
        task_titles=payload.task_titles,
        active=payload.active,
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=_dump(project))


@app.delete("/projects/{project_id}")
def delete_project(project_id: str, request: Request) -> JSONResponse:
    actor = _get_actor(request)
    store.delete_project(actor, project_id)
    return JSONResponse(status_code=status.HTTP_200_OK, content={"message": "Project deleted"})


@app.post("/projects/{project_id}/title-schedules/upload")
async def upload_title_schedules(project_id: str, request: Request, file: UploadFile = File(...)) -> JSONResponse:
    """Replace a project's title schedules with the rows of an uploaded CSV."""

    actor = _get_actor(request)
    ingestor = await _read_csv_upload(file)
    try:
        schedules = list(ingestor.read_title_schedules())
    except Exception as exc:  # pragma: no cover - depends on pandas parsing
        logger.error("Failed to parse schedule CSV for project %s", project_id, exc_info=exc)
        return _json_error(status.HTTP_400_BAD_REQUEST, "Failed to parse CSV file.")

    project = store.update_project(actor, project_id, title_schedules=schedules)
    logger.info("Imported %s title schedules into project %s", len(project.title_schedules), project_id)
    return JSONResponse(status_code=status.HTTP_200_OK, content=_dump(project))


@app.post("/projects/{project_id}/tasks/upload")
async def upload_tasks(project_id: str, request: Request, file: UploadFile = File(...)) -> JSONResponse:
    """Create one task per CSV row in the given project."""

    actor = _get_actor(request)
    store.get_visible_project(actor, project_id)
    ingestor = await _read_csv_upload(file)
    try:
        drafts = list(ingestor.read_tasks())
    except Exception as exc:  # pragma: no cover - depends on pandas parsing
        logger.error("Failed to parse task CSV for project %s", project_id, exc_info=exc)
        return _json_error(status.HTTP_400_BAD_REQUEST, "Failed to parse CSV file.")

    created = [_create_task(actor, draft.model_copy(update={"project": project_id})) for draft in drafts]
    logger.info("Imported %s tasks into project %s", len(created), project_id)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=[_dump(task) for task in created])


@app.get("/tasks")
def list_tasks(request: Request, user_id: Optional[str] = Query(default=None, alias="userId")) -> JSONResponse:
    actor = _get_actor(request)
    tasks = store.list_tasks(actor, user_id=user_id)
    return JSONResponse(status_code=status.HTTP_200_OK, content=[_dump(task) for task in tasks])


@app.get("/tasks/{task_id}")
def get_task(task_id: str, request: Request) -> JSONResponse:
    actor = _get_actor(request)
    return JSONResponse(status_code=status.HTTP_200_OK, content=_dump(store.get_task(actor, task_id)))


@app.post("/tasks")
def create_task(payload: TaskDraft, request: Request) -> JSONResponse:
    """Create a task; a new title is registered on its project."""

    actor = _get_actor(request)
    task = _create_task(actor, payload)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=_dump(task))


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, payload: TaskUpdateRequest, request: Request) -> JSONResponse:
    actor = _get_actor(request)
    task = store.update_task(
        actor,
        task_id,
        title=payload.title,
        description=payload.description,
        status=payload.status,
        due_date=payload.due_date,
        time_spent_minutes=payload.time_spent_minutes,
        project=payload.project,
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=_dump(task))


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str, request: Request) -> JSONResponse:
    actor = _get_actor(request)
    store.delete_task(actor, task_id)
    return JSONResponse(status_code=status.HTTP_200_OK, content={"message": "Task deleted"})
