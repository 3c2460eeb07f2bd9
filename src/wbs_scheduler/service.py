from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Iterable, Iterator

from .baseline import set_baseline
from .bulk_dependencies import plan_bulk_dependencies
from .config import settings
from .errors import ProjectValidationError, ScheduleBusyError, UnknownTaskError
from .project_models import (
    BaselineResult,
    BulkAction,
    BulkDependencyResult,
    CriticalPathView,
    ScheduleResult,
    ScheduleRow,
    Task,
)
from .schedule_rows import to_schedule_rows
from .scheduling import schedule_project
from .store import DependencyStore, LoggingNotificationSink, NotificationSink, TaskStore
from .wbs import move_down_level, move_up_level, renumber, reparent

logger = logging.getLogger(__name__)

HierarchyEdit = Callable[[dict[int, Task]], list[Task]]


@dataclass
class _ProjectLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class ProjectLocks:
    """
    One mutex per project; callers queue behind the current holder.

    An entry lives only while someone holds or waits for it, so the registry
    stays as small as the set of projects in use.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, _ProjectLock] = {}

    @contextmanager
    def hold(self, project_id: int, timeout: float | None = None) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(project_id, _ProjectLock())
            entry.users += 1
        try:
            acquired = entry.lock.acquire() if timeout is None else entry.lock.acquire(timeout=timeout)
            if not acquired:
                raise ScheduleBusyError(project_id, timeout)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[project_id]

    def active_projects(self) -> list[int]:
        with self._guard:
            return sorted(self._locks)


class ScheduleService:
    """
    Entry point for schedule runs, bulk edits and hierarchy moves.

    Every mutating operation holds the project's lock, computes on copies of
    the stored tasks and commits with a single batch write. Notifications go
    out after the commit and never undo it.
    """

    def __init__(
        self,
        tasks: TaskStore,
        dependencies: DependencyStore | None = None,
        notifier: NotificationSink | None = None,
        *,
        lock_timeout: float | None = None,
        locks: ProjectLocks | None = None,
    ):
        self.tasks = tasks
        self.dependencies = dependencies if dependencies is not None else tasks
        self.notifier = notifier or LoggingNotificationSink()
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.SCHEDULE_LOCK_TIMEOUT
        self.locks = locks if locks is not None else ProjectLocks()

    def run_schedule(self, project_id: int, project_start_date: date | None = None) -> ScheduleResult:
        """Recompute the whole project's CPM fields and persist them."""
        with self.locks.hold(project_id, self.lock_timeout):
            tasks = self.tasks.get_tasks_by_project(project_id)
            dependencies = self.dependencies.get_dependencies_by_project(project_id)
            start = project_start_date or _default_start(tasks)
            result = schedule_project(project_id, tasks, dependencies, start)
            self.tasks.update_tasks(tasks)

        self._notify(
            project_id,
            "schedule-updated",
            {
                "tasks_updated": len(tasks),
                "critical_task_ids": result.critical_task_ids,
                "project_finish": result.project_finish.isoformat() if result.project_finish else None,
            },
        )
        return result

    def get_schedule_data(self, project_id: int) -> list[ScheduleRow]:
        return to_schedule_rows(self.tasks.get_tasks_by_project(project_id))

    def get_critical_path(self, project_id: int) -> CriticalPathView:
        tasks = self.tasks.get_tasks_by_project(project_id)
        rows = [row for row in to_schedule_rows(tasks) if row.is_critical_path]
        scheduled = [task for task in tasks if task.early_start is not None and task.early_finish is not None]
        total = 0
        if scheduled:
            total = (max(t.early_finish for t in scheduled) - min(t.early_start for t in scheduled)).days
        return CriticalPathView(tasks=rows, total_duration=total)

    def recalculate_wbs(self, project_id: int) -> list[Task]:
        """Renumber the whole project; returns the tasks whose code changed."""
        with self.locks.hold(project_id, self.lock_timeout):
            tasks = self.tasks.get_tasks_by_project(project_id)
            changed = renumber(tasks)
            self.tasks.update_tasks(changed)

        self._notify(project_id, "wbs-updated", {"task_ids": [task.id for task in changed]})
        return changed

    def bulk_set_dependencies(self, task_ids: list[int], action: BulkAction) -> BulkDependencyResult:
        project_id = self._project_of(task_ids)
        with self.locks.hold(project_id, self.lock_timeout):
            tasks = self.tasks.get_tasks_by_project(project_id)
            dependencies = self.dependencies.get_dependencies_by_project(project_id)
            plan = plan_bulk_dependencies(tasks, dependencies, task_ids, action)

            result = BulkDependencyResult(action=action)
            for dep_id in plan.to_delete:
                if self.dependencies.delete_dependency(dep_id):
                    result.deleted.append(dep_id)
            for predecessor_id, successor_id, dep_type in plan.to_create:
                result.created.append(
                    self.dependencies.create_dependency(project_id, predecessor_id, successor_id, dep_type, 0)
                )

        logger.info(
            "Bulk %s on project %s: %d created, %d deleted",
            action,
            project_id,
            len(result.created),
            len(result.deleted),
        )
        self._notify(
            project_id,
            "dependencies-updated",
            {"action": action, "created": [dep.id for dep in result.created], "deleted": result.deleted},
        )
        return result

    def bulk_set_baseline(self, task_ids: list[int]) -> BaselineResult:
        project_id = self._project_of(task_ids)
        with self.locks.hold(project_id, self.lock_timeout):
            tasks = {task.id: task for task in self.tasks.get_tasks_by_project(project_id)}
            result = set_baseline(tasks, task_ids)
            self.tasks.update_tasks(result.tasks)

        self._notify(project_id, "baseline-set", {"count": result.count, "skipped": result.skipped})
        return result

    def reparent(self, task_ids: int | Iterable[int], new_parent_id: int | None) -> list[Task]:
        """Make the tasks children of ``new_parent_id`` and renumber, as one commit."""
        ids = _as_id_list(task_ids)
        return self._restructure(ids, lambda tasks: reparent(tasks, ids, new_parent_id))

    def move_up_level(self, task_ids: int | Iterable[int]) -> list[Task]:
        ids = _as_id_list(task_ids)
        return self._restructure(ids, lambda tasks: move_up_level(tasks, ids))

    def move_down_level(self, task_ids: int | Iterable[int]) -> list[Task]:
        ids = _as_id_list(task_ids)
        return self._restructure(ids, lambda tasks: move_down_level(tasks, ids))

    def delete_task(self, task_id: int) -> None:
        """Delete a task with its dependencies, then renumber what is left."""
        task = self.tasks.get_task(task_id)
        if task is None:
            raise UnknownTaskError(task_id)
        with self.locks.hold(task.project_id, self.lock_timeout):
            remaining = [other for other in self.tasks.get_tasks_by_project(task.project_id) if other.id != task_id]
            promoted = [other for other in remaining if other.parent_id == task_id]
            for child in promoted:
                child.parent_id = task.parent_id
            touched = {other.id: other for other in promoted + renumber(remaining)}

            self.tasks.delete_task(task_id)
            self.tasks.update_tasks(touched.values())

        self._notify(task.project_id, "task-deleted", {"id": task_id})

    def _restructure(self, task_ids: list[int], edit: HierarchyEdit) -> list[Task]:
        # The whole batch is applied to copies and renumbered before anything is committed.
        project_id = self._project_of(task_ids)
        with self.locks.hold(project_id, self.lock_timeout):
            tasks = {task.id: task for task in self.tasks.get_tasks_by_project(project_id)}
            moved = edit(tasks)
            renumbered = renumber(tasks.values())
            touched = {task.id: task for task in moved + renumbered}
            self.tasks.update_tasks(touched.values())

        logger.info("Moved %d tasks in project %s, %d codes changed", len(moved), project_id, len(renumbered))
        self._notify(
            project_id,
            "hierarchy-updated",
            {"moved": [task.id for task in moved], "renumbered": [task.id for task in renumbered]},
        )
        return list(touched.values())

    def _project_of(self, task_ids: Iterable[int]) -> int:
        project_ids = set()
        for task_id in task_ids:
            task = self.tasks.get_task(task_id)
            if task is None:
                raise UnknownTaskError(task_id)
            project_ids.add(task.project_id)
        if not project_ids:
            raise ValueError("At least one task id is required")
        if len(project_ids) > 1:
            raise ProjectValidationError(f"Tasks span several projects: {sorted(project_ids)}")
        return project_ids.pop()

    def _notify(self, project_id: int, event_type: str, payload: dict[str, Any]) -> None:
        try:
            self.notifier.notify_project_update(project_id, event_type, payload)
        except Exception:
            # Delivery is best effort; the change is already committed.
            logger.exception("Failed to notify project %s about %s", project_id, event_type)


def _default_start(tasks: list[Task]) -> date:
    planned = [task.start_date for task in tasks if task.start_date is not None]
    return min(planned) if planned else date.today()


def _as_id_list(task_ids: int | Iterable[int]) -> list[int]:
    if isinstance(task_ids, int):
        return [task_ids]
    return list(task_ids)
