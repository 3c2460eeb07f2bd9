from __future__ import annotations

from typing import Iterable, List

from .project_models import ScheduleRow, Task
from .wbs import children_by_parent, sibling_sort_key


def to_schedule_rows(tasks: Iterable[Task]) -> list[ScheduleRow]:
    """
    Convert scheduled tasks into a flat list of rows with indentation.

    Root tasks come first in WBS order; each task row precedes its children
    and nested tasks increase indent by 1. A task whose parent is not in the
    given set is treated as a root.
    """

    rows: List[ScheduleRow] = []
    children = children_by_parent(tasks)
    order = 0
    for task in sorted(children.get(None, []), key=sibling_sort_key):
        order = _append_task(task, children, rows, order, indent=0)
    return rows


def _append_task(
    task: Task,
    children: dict[int | None, list[Task]],
    rows: List[ScheduleRow],
    order: int,
    indent: int,
) -> int:
    """Append the given task and its children; return updated order counter."""

    rows.append(
        ScheduleRow(
            order=order,
            indent=indent,
            task_id=task.id,
            wbs_code=task.wbs_code,
            name=task.name,
            duration=task.duration_days,
            early_start=task.early_start,
            early_finish=task.early_finish,
            late_start=task.late_start,
            late_finish=task.late_finish,
            total_float=task.total_float,
            free_float=task.free_float,
            is_critical_path=task.is_critical,
        )
    )
    order += 1
    for child in sorted(children.get(task.id, []), key=sibling_sort_key):
        order = _append_task(child, children, rows, order, indent=indent + 1)
    return order
