from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Iterable, Protocol

from .errors import UnknownTaskError
from .project_models import Dependency, DependencyType, Project, Task

logger = logging.getLogger(__name__)


class TaskStore(Protocol):
    def get_tasks_by_project(self, project_id: int) -> list[Task]: ...

    def get_task(self, task_id: int) -> Task | None: ...

    def update_tasks(self, tasks: Iterable[Task]) -> None: ...

    def delete_task(self, task_id: int) -> None: ...


class DependencyStore(Protocol):
    def get_dependencies_by_project(self, project_id: int) -> list[Dependency]: ...

    def create_dependency(
        self,
        project_id: int,
        predecessor_id: int,
        successor_id: int,
        dep_type: DependencyType = DependencyType.FS,
        lag: int = 0,
    ) -> Dependency: ...

    def delete_dependency(self, dependency_id: int) -> bool: ...


class NotificationSink(Protocol):
    def notify_project_update(self, project_id: int, event_type: str, payload: dict[str, Any]) -> None: ...


class InMemoryProjectStore:
    """
    Task and dependency store held in process memory.

    Reads hand out copies so callers can compute on them freely; writes are
    validated in full before anything is replaced.
    """

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        dependencies: Iterable[Dependency] = (),
        projects: Iterable[Project] = (),
    ):
        self._lock = threading.RLock()
        self._tasks: dict[int, Task] = {}
        self._dependencies: dict[int, Dependency] = {}
        self.projects: dict[int, Project] = {project.id: project for project in projects}
        for task in tasks:
            self.add_task(task)
        for dep in dependencies:
            self._dependencies[dep.id] = copy.deepcopy(dep)

    def add_task(self, task: Task) -> Task:
        with self._lock:
            if task.id in self._tasks:
                raise ValueError(f"Task {task.id} already exists")
            stored = copy.deepcopy(task)
            if not stored.sort_order:
                stored.sort_order = len(self._tasks) + 1
            self._tasks[stored.id] = stored
            return copy.deepcopy(stored)

    def get_tasks_by_project(self, project_id: int) -> list[Task]:
        with self._lock:
            return [copy.deepcopy(task) for task in self._tasks.values() if task.project_id == project_id]

    def get_task(self, task_id: int) -> Task | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return copy.deepcopy(task) if task is not None else None

    def update_tasks(self, tasks: Iterable[Task]) -> None:
        """Replace the stored tasks as one batch; an unknown id rejects the whole batch."""
        batch = [copy.deepcopy(task) for task in tasks]
        with self._lock:
            for task in batch:
                if task.id not in self._tasks:
                    raise UnknownTaskError(task.id)
            for task in batch:
                self._tasks[task.id] = task
        logger.debug("Committed %d task updates", len(batch))

    def delete_task(self, task_id: int) -> None:
        """Delete a task and every dependency touching it; its children move up one level."""
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                raise UnknownTaskError(task_id)
            for child in self._tasks.values():
                if child.parent_id == task_id:
                    child.parent_id = task.parent_id
            doomed = [
                dep_id
                for dep_id, dep in self._dependencies.items()
                if task_id in (dep.predecessor_id, dep.successor_id)
            ]
            for dep_id in doomed:
                del self._dependencies[dep_id]
        logger.debug("Deleted task %s and %d dependencies", task_id, len(doomed))

    def get_dependencies_by_project(self, project_id: int) -> list[Dependency]:
        with self._lock:
            return [copy.deepcopy(dep) for dep in self._dependencies.values() if dep.project_id == project_id]

    def create_dependency(
        self,
        project_id: int,
        predecessor_id: int,
        successor_id: int,
        dep_type: DependencyType = DependencyType.FS,
        lag: int = 0,
    ) -> Dependency:
        with self._lock:
            for task_id in (predecessor_id, successor_id):
                if task_id not in self._tasks:
                    raise UnknownTaskError(task_id)
            dep = Dependency(
                id=max(self._dependencies, default=0) + 1,
                project_id=project_id,
                predecessor_id=predecessor_id,
                successor_id=successor_id,
                type=DependencyType(dep_type),
                lag=lag,
            )
            self._dependencies[dep.id] = dep
            return copy.deepcopy(dep)

    def delete_dependency(self, dependency_id: int) -> bool:
        with self._lock:
            return self._dependencies.pop(dependency_id, None) is not None


class LoggingNotificationSink:
    """Sink that only logs project updates."""

    def notify_project_update(self, project_id: int, event_type: str, payload: dict[str, Any]) -> None:
        logger.info("Project %s update: %s %s", project_id, event_type, payload)


class RecordingNotificationSink:
    """Sink that keeps every event in memory, in arrival order."""

    def __init__(self) -> None:
        self.events: list[tuple[int, str, dict[str, Any]]] = []

    def notify_project_update(self, project_id: int, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((project_id, event_type, payload))
