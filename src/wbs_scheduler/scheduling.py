from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from typing import Callable, Iterable

from .config import settings
from .errors import InvalidDurationError, NegativeFloatError
from .graph import DependencyGraph, build_graph
from .project_models import ConstraintConflict, Dependency, DependencyType, ScheduleResult, Task
from .schedule_rows import to_schedule_rows

logger = logging.getLogger(__name__)

BoundFn = Callable[[Task, timedelta, timedelta], date]
"""(other task, lag, own duration) -> date bound for the task being computed."""


def schedule_project(
    project_id: int,
    tasks: Iterable[Task],
    dependencies: Iterable[Dependency],
    project_start: date,
    *,
    strict_durations: bool | None = None,
    hours_per_day: float | None = None,
) -> ScheduleResult:
    """
    Run a full CPM pass over the given tasks in-place and return the result.

    - Builds and validates the dependency graph (orphans, cycles).
    - Resolves each task's duration in whole days.
    - Forward pass for early dates, backward pass for late dates.
    - Classifies total/free float and the critical set.

    Tasks are mutated; callers that need all-or-nothing semantics pass copies
    and persist them only when this returns.
    """

    strict = settings.STRICT_DURATIONS if strict_durations is None else strict_durations
    per_day = hours_per_day or settings.HOURS_PER_DAY

    graph = build_graph(tasks, dependencies)
    warnings: list[str] = []
    durations = {
        task_id: resolve_duration(task, hours_per_day=per_day, strict=strict, warnings=warnings)
        for task_id, task in graph.tasks.items()
    }

    if not graph.tasks:
        return ScheduleResult(success=True, project_id=project_id, project_start=project_start, project_finish=project_start)

    forward_pass(graph, durations, project_start)
    project_finish = max(task.early_finish for task in graph.tasks.values())
    backward_pass(graph, durations, project_finish)
    critical_ids = classify_floats(graph, project_finish)

    for conflict in find_constraint_conflicts(graph.tasks.values()):
        logger.warning("Constraint conflict: %s", conflict)
        warnings.append(str(conflict))

    for task_id, task in graph.tasks.items():
        task.duration_days = durations[task_id]
        task.start_date = task.early_start
        task.end_date = task.early_finish

    first_start = min(task.early_start for task in graph.tasks.values())
    result = ScheduleResult(
        success=True,
        project_id=project_id,
        project_start=project_start,
        project_finish=project_finish,
        critical_path_duration=(project_finish - first_start).days,
        tasks=to_schedule_rows(graph.tasks.values()),
        critical_task_ids=critical_ids,
        warnings=warnings,
    )
    logger.info(
        "Scheduled project %s: %d tasks, %d critical, finish %s",
        project_id,
        len(graph.tasks),
        len(critical_ids),
        project_finish,
    )
    return result


def resolve_duration(
    task: Task,
    *,
    hours_per_day: float,
    strict: bool,
    warnings: list[str] | None = None,
) -> int:
    """
    Duration in whole calendar days.

    Explicit ``duration_days`` wins, then planned end minus planned start, then
    estimated hours over ``hours_per_day``, then a single day.
    """

    if task.duration_days is not None:
        if isinstance(task.duration_days, bool) or not isinstance(task.duration_days, int):
            raise InvalidDurationError(task.id, task.duration_days)
        duration = task.duration_days
    elif task.start_date is not None and task.end_date is not None:
        duration = (task.end_date - task.start_date).days
    elif task.estimated_hours is not None and task.estimated_hours > 0:
        duration = math.ceil(task.estimated_hours / hours_per_day)
    else:
        duration = 1

    if duration < 0:
        if strict:
            raise InvalidDurationError(task.id, duration)
        message = f"Task {task.id} has negative duration {duration}; using 0"
        logger.warning(message)
        if warnings is not None:
            warnings.append(message)
        duration = 0
    return duration


def _fs_forward(pred: Task, lag: timedelta, duration: timedelta) -> date:
    return pred.early_finish + lag


def _ss_forward(pred: Task, lag: timedelta, duration: timedelta) -> date:
    return pred.early_start + lag


def _ff_forward(pred: Task, lag: timedelta, duration: timedelta) -> date:
    return pred.early_finish + lag - duration


def _sf_forward(pred: Task, lag: timedelta, duration: timedelta) -> date:
    return pred.early_start + lag - duration


def _fs_backward(succ: Task, lag: timedelta, duration: timedelta) -> date:
    return succ.late_start - lag


def _ss_backward(succ: Task, lag: timedelta, duration: timedelta) -> date:
    return succ.late_start - lag + duration


def _ff_backward(succ: Task, lag: timedelta, duration: timedelta) -> date:
    return succ.late_finish - lag


def _sf_backward(succ: Task, lag: timedelta, duration: timedelta) -> date:
    return succ.late_finish - lag + duration


# Early-start bound on a successor given its predecessor's early dates.
FORWARD_BOUNDS: dict[DependencyType, BoundFn] = {
    DependencyType.FS: _fs_forward,
    DependencyType.SS: _ss_forward,
    DependencyType.FF: _ff_forward,
    DependencyType.SF: _sf_forward,
}

# Late-finish bound on a predecessor given its successor's late dates.
BACKWARD_BOUNDS: dict[DependencyType, BoundFn] = {
    DependencyType.FS: _fs_backward,
    DependencyType.SS: _ss_backward,
    DependencyType.FF: _ff_backward,
    DependencyType.SF: _sf_backward,
}


def forward_pass(graph: DependencyGraph, durations: dict[int, int], project_start: date) -> None:
    """Assign early_start/early_finish in topological order."""

    for task_id in graph.order:
        task = graph.tasks[task_id]
        duration = timedelta(days=durations[task_id])

        early_start = project_start
        for dep in graph.predecessors[task_id]:
            pred = graph.tasks[dep.predecessor_id]
            bound = FORWARD_BOUNDS[dep.type](pred, timedelta(days=dep.lag), duration)
            early_start = max(early_start, bound)

        floor = task.early_start_floor
        if floor is not None:
            early_start = max(early_start, floor)

        task.early_start = early_start
        task.early_finish = early_start + duration


def backward_pass(graph: DependencyGraph, durations: dict[int, int], project_finish: date) -> None:
    """Assign late_finish/late_start in reverse topological order."""

    for task_id in graph.reverse_order():
        task = graph.tasks[task_id]
        duration = timedelta(days=durations[task_id])

        # Terminal tasks anchor on the later of their own finish and the project finish.
        late_finish = max(task.early_finish, project_finish)
        for dep in graph.successors[task_id]:
            succ = graph.tasks[dep.successor_id]
            bound = BACKWARD_BOUNDS[dep.type](succ, timedelta(days=dep.lag), duration)
            late_finish = min(late_finish, bound)

        task.late_finish = late_finish
        task.late_start = late_finish - duration


def classify_floats(graph: DependencyGraph, project_finish: date) -> list[int]:
    """Set total/free float and the critical flag; return critical ids in topological order."""

    critical: list[int] = []
    for task_id in graph.order:
        task = graph.tasks[task_id]
        total_float = (task.late_start - task.early_start).days
        if total_float < 0:
            raise NegativeFloatError(task_id, total_float)

        task.total_float = total_float
        task.free_float = min(total_float, _free_float(graph, task, project_finish))
        task.is_critical = total_float == 0
        if task.is_critical:
            critical.append(task_id)
    return critical


def _free_float(graph: DependencyGraph, task: Task, project_finish: date) -> int:
    outgoing = graph.successors[task.id]
    if not outgoing:
        return (project_finish - task.early_finish).days

    slacks = []
    for dep in outgoing:
        succ = graph.tasks[dep.successor_id]
        lag = timedelta(days=dep.lag)
        if dep.type == DependencyType.FS:
            slack = succ.early_start - (task.early_finish + lag)
        elif dep.type == DependencyType.SS:
            slack = succ.early_start - (task.early_start + lag)
        elif dep.type == DependencyType.FF:
            slack = succ.early_finish - (task.early_finish + lag)
        else:
            slack = succ.early_finish - (task.early_start + lag)
        slacks.append(slack.days)
    return max(0, min(slacks))


def find_constraint_conflicts(tasks: Iterable[Task]) -> list[ConstraintConflict]:
    """Report computed dates that land past start/finish no-later-than style constraints."""

    conflicts: list[ConstraintConflict] = []
    for task in tasks:
        if task.constraint_date is None or task.early_start is None:
            continue
        if task.constraint_type in ("snlt", "mso") and task.early_start > task.constraint_date:
            conflicts.append(ConstraintConflict(task.id, task.constraint_type, task.constraint_date, task.early_start))
        elif task.constraint_type in ("fnlt", "mfo") and task.early_finish > task.constraint_date:
            conflicts.append(ConstraintConflict(task.id, task.constraint_type, task.constraint_date, task.early_finish))
    return conflicts
