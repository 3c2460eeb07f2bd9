from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Any

import yaml

from .config import settings
from .errors import ProjectValidationError
from .project_models import CONSTRAINT_TYPES, TASK_STATUSES, Dependency, DependencyType, Project, Task
from .store import InMemoryProjectStore

TASK_KEYS = {
    "id",
    "name",
    "wbs",
    "parent",
    "status",
    "priority",
    "progress",
    "duration_days",
    "estimated_hours",
    "start_date",
    "end_date",
    "constraint",
    "baseline_start",
    "baseline_finish",
    "actual_start",
    "actual_finish",
    "early_start",
    "early_finish",
    "late_start",
    "late_finish",
    "total_float",
    "free_float",
    "critical",
}
TASK_DATE_KEYS = (
    "start_date",
    "end_date",
    "baseline_start",
    "baseline_finish",
    "actual_start",
    "actual_finish",
    "early_start",
    "early_finish",
    "late_start",
    "late_finish",
)
DEPENDENCY_KEYS = {"id", "predecessor", "successor", "type", "lag"}


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like tasks[0].constraint."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_project(path: str) -> InMemoryProjectStore:
    """Load a project YAML file into an in-memory store (no scheduling)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    project, tasks, dependencies = parse_project_data(raw)
    return InMemoryProjectStore(tasks=tasks, dependencies=dependencies, projects=[project])


def parse_project_data(data: Any) -> tuple[Project, list[Task], list[Dependency]]:
    path = _Path()
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"project", "tasks", "dependencies"}, path)

    project_raw = data.get("project")
    if not isinstance(project_raw, dict):
        raise ProjectValidationError(f"{path}: missing required mapping 'project'")
    project = _parse_project(project_raw, path.child("project"))

    tasks_raw = data.get("tasks")
    if tasks_raw is None:
        raise ProjectValidationError(f"{path}: missing required field 'tasks'")
    if not isinstance(tasks_raw, list):
        raise ProjectValidationError(f"{path}.tasks: expected list")

    tasks: list[Task] = []
    ids: set[int] = set()
    for idx, task_raw in enumerate(tasks_raw):
        task = _parse_task(task_raw, path.child(f"tasks[{idx}]"), project.id, ids)
        task.sort_order = idx + 1
        tasks.append(task)
    _validate_parents(tasks)

    deps_raw = data.get("dependencies") or []
    if not isinstance(deps_raw, list):
        raise ProjectValidationError(f"{path}.dependencies: expected list")
    dependencies: list[Dependency] = []
    dep_ids: set[int] = set()
    for idx, dep_raw in enumerate(deps_raw):
        dependencies.append(_parse_dependency(dep_raw, path.child(f"dependencies[{idx}]"), project.id, dep_ids))
    # Unnumbered links take ids above every explicit one, whatever the entry order.
    for dep in dependencies:
        if dep.id is None:
            dep.id = max(dep_ids, default=0) + 1
            dep_ids.add(dep.id)

    return project, tasks, dependencies


def _parse_project(data: dict[str, Any], path: _Path) -> Project:
    _assert_allowed_keys(data, {"id", "name", "start_date"}, path)
    project_id = _optional_int(data, "id", path)
    return Project(
        id=1 if project_id is None else project_id,
        name=_require_str(data, "name", path),
        start_date=_optional_date(data, "start_date", path),
    )


def _parse_task(data: Any, path: _Path, project_id: int, ids: set[int]) -> Task:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for task")
    _assert_allowed_keys(data, TASK_KEYS, path)

    task_id = _require_int(data, "id", path)
    if task_id in ids:
        raise ProjectValidationError(f"{path.child('id')}: duplicate task id {task_id}")
    ids.add(task_id)

    status = data.get("status", "not-started")
    if status not in TASK_STATUSES:
        raise ProjectValidationError(f"{path.child('status')}: expected one of {list(TASK_STATUSES)}")

    progress = _optional_int(data, "progress", path) or 0
    if not 0 <= progress <= 100:
        raise ProjectValidationError(f"{path.child('progress')}: expected 0-100")

    estimated_hours = data.get("estimated_hours")
    if estimated_hours is not None and (isinstance(estimated_hours, bool) or not isinstance(estimated_hours, (int, float))):
        raise ProjectValidationError(f"{path.child('estimated_hours')}: expected number")

    wbs = data.get("wbs", "")
    if not isinstance(wbs, str):
        raise ProjectValidationError(f"{path.child('wbs')}: expected string")

    task = Task(
        id=task_id,
        project_id=project_id,
        name=_require_str(data, "name", path),
        wbs_code=wbs,
        parent_id=_optional_int(data, "parent", path),
        status=status,
        priority=str(data.get("priority", "medium")),
        progress=progress,
        duration_days=_optional_int(data, "duration_days", path),
        estimated_hours=estimated_hours,
        total_float=_optional_int(data, "total_float", path),
        free_float=_optional_int(data, "free_float", path),
        is_critical=bool(data.get("critical", False)),
    )
    for key in TASK_DATE_KEYS:
        setattr(task, key, _optional_date(data, key, path))

    constraint = data.get("constraint")
    if constraint is not None:
        _parse_constraint(task, constraint, path.child("constraint"))
    return task


def _parse_constraint(task: Task, data: Any, path: _Path) -> None:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping with 'type' and 'date'")
    _assert_allowed_keys(data, {"type", "date"}, path)
    constraint_type = _require_value(data, "type", path)
    if constraint_type not in CONSTRAINT_TYPES:
        raise ProjectValidationError(f"{path.child('type')}: expected one of {list(CONSTRAINT_TYPES)}")
    task.constraint_type = constraint_type
    task.constraint_date = _optional_date(data, "date", path)
    if constraint_type != "asap" and task.constraint_date is None:
        raise ProjectValidationError(f"{path}: constraint '{constraint_type}' requires a date")


def _parse_dependency(data: Any, path: _Path, project_id: int, ids: set[int]) -> Dependency:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for dependency")
    _assert_allowed_keys(data, DEPENDENCY_KEYS, path)

    dep_id = _optional_int(data, "id", path)
    if dep_id is not None:
        if dep_id in ids:
            raise ProjectValidationError(f"{path.child('id')}: duplicate dependency id {dep_id}")
        ids.add(dep_id)

    raw_type = data.get("type", "FS")
    try:
        dep_type = DependencyType(str(raw_type).upper())
    except ValueError as exc:
        raise ProjectValidationError(f"{path.child('type')}: expected one of FS, SS, FF, SF") from exc

    return Dependency(
        id=dep_id,
        project_id=project_id,
        predecessor_id=_require_int(data, "predecessor", path),
        successor_id=_require_int(data, "successor", path),
        type=dep_type,
        lag=_optional_int(data, "lag", path) or 0,
    )


def _validate_parents(tasks: list[Task]) -> None:
    parents = {task.id: task.parent_id for task in tasks}
    for task in tasks:
        if task.parent_id is not None and task.parent_id not in parents:
            raise ProjectValidationError(f"Task {task.id} has unknown parent {task.parent_id}")
        seen = {task.id}
        current = task.parent_id
        while current is not None:
            if current in seen:
                raise ProjectValidationError(f"Task {task.id} is its own ancestor")
            seen.add(current)
            current = parents[current]
        if len(seen) > settings.WBS_MAX_DEPTH:
            raise ProjectValidationError(
                f"Task {task.id} sits at level {len(seen)}, deeper than the {settings.WBS_MAX_DEPTH} WBS levels allowed"
            )


def dump_project(store: InMemoryProjectStore, project_id: int, path: str) -> None:
    """Write the project, including computed schedule fields, back to YAML."""

    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(project_to_dict(store, project_id), fh, sort_keys=False)


def project_to_dict(store: InMemoryProjectStore, project_id: int) -> dict[str, Any]:
    project = store.projects.get(project_id) or Project(id=project_id, name=f"Project {project_id}")
    header: dict[str, Any] = {"id": project.id, "name": project.name}
    if project.start_date is not None:
        header["start_date"] = project.start_date

    tasks = sorted(store.get_tasks_by_project(project_id), key=lambda task: task.sort_order)
    return {
        "project": header,
        "tasks": [_task_to_dict(task) for task in tasks],
        "dependencies": [
            {
                "id": dep.id,
                "predecessor": dep.predecessor_id,
                "successor": dep.successor_id,
                "type": dep.type.value,
                "lag": dep.lag,
            }
            for dep in store.get_dependencies_by_project(project_id)
        ],
    }


def _task_to_dict(task: Task) -> dict[str, Any]:
    out: dict[str, Any] = {"id": task.id, "name": task.name, "wbs": task.wbs_code}
    if task.parent_id is not None:
        out["parent"] = task.parent_id
    out["status"] = task.status
    out["priority"] = task.priority
    out["progress"] = task.progress
    for key in ("duration_days", "estimated_hours", *TASK_DATE_KEYS, "total_float", "free_float"):
        value = getattr(task, key)
        if value is not None:
            out[key] = value
    if task.constraint_type != "asap":
        out["constraint"] = {"type": task.constraint_type, "date": task.constraint_date}
    out["critical"] = task.is_critical
    return out


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise ProjectValidationError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise ProjectValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_int(data: dict[str, Any], key: str, path: _Path) -> int:
    value = _require_value(data, key, path)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProjectValidationError(f"{path.child(key)}: expected integer")
    return value


def _optional_int(data: dict[str, Any], key: str, path: _Path) -> int | None:
    if data.get(key) is None:
        return None
    return _require_int(data, key, path)


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _optional_date(data: dict[str, Any], key: str, path: _Path) -> _dt.date | None:
    value = data.get(key)
    if value is None:
        return None
    return _parse_date(value, path.child(key))


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # yaml.safe_load already turns unquoted ISO dates into date objects.
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise ProjectValidationError(f"{path}: expected YYYY-MM-DD date")
    try:
        parsed = _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise ProjectValidationError(f"{path}: expected YYYY-MM-DD date") from exc
    return parsed
