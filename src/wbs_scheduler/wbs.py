from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from .config import settings
from .errors import HierarchyCycleError, ProjectValidationError, UnknownTaskError, WbsDepthExceededError
from .project_models import Task

logger = logging.getLogger(__name__)


def parse_wbs_code(code: str | None) -> tuple[int, ...] | None:
    """Numeric segments of a dotted code, or None when empty or non-numeric."""
    if not code:
        return None
    try:
        return tuple(int(part) for part in code.split("."))
    except ValueError:
        return None


def sibling_sort_key(task: Task) -> tuple:
    # Coded tasks first by their segments, then creation order, then id.
    segments = parse_wbs_code(task.wbs_code)
    return (segments is None, segments or (), task.sort_order, task.id)


def children_by_parent(tasks: Iterable[Task]) -> dict[int | None, list[Task]]:
    """Group tasks by parent id; tasks whose parent is outside the set fall under None."""
    task_list = list(tasks)
    known = {task.id for task in task_list}
    children: dict[int | None, list[Task]] = {None: []}
    for task in task_list:
        parent_id = task.parent_id if task.parent_id in known else None
        children.setdefault(parent_id, []).append(task)
    return children


def compute_wbs_codes(tasks: Iterable[Task], *, max_depth: int | None = None) -> dict[int, str]:
    """
    Compute dotted codes top-down, breadth-first by level.

    Raises WbsDepthExceededError for any task deeper than ``max_depth`` and
    HierarchyCycleError for tasks that are not reachable from the root.
    """

    limit = max_depth or settings.WBS_MAX_DEPTH
    task_list = list(tasks)
    children = children_by_parent(task_list)
    codes: dict[int, str] = {}

    queue: deque[tuple[int | None, str]] = deque([(None, "")])
    while queue:
        parent_id, prefix = queue.popleft()
        siblings = sorted(children.get(parent_id, []), key=sibling_sort_key)
        for index, child in enumerate(siblings, start=1):
            code = f"{prefix}.{index}" if prefix else str(index)
            depth = code.count(".") + 1
            if depth > limit:
                raise WbsDepthExceededError(child.id, depth, limit)
            codes[child.id] = code
            queue.append((child.id, code))

    if len(codes) != len(task_list):
        stranded = next(task for task in task_list if task.id not in codes)
        raise HierarchyCycleError(stranded.id, stranded.parent_id)
    return codes


def renumber(tasks: Iterable[Task], *, max_depth: int | None = None) -> list[Task]:
    """Rewrite wbs_code in-place and return the tasks whose code changed."""

    task_list = list(tasks)
    codes = compute_wbs_codes(task_list, max_depth=max_depth)
    changed = []
    for task in task_list:
        code = codes[task.id]
        if task.wbs_code != code:
            logger.debug("Task %s: WBS %r -> %r", task.id, task.wbs_code, code)
            task.wbs_code = code
            changed.append(task)
    return changed


def reparent(tasks: dict[int, Task], task_ids: Iterable[int], new_parent_id: int | None) -> list[Task]:
    """
    Make each task a child of ``new_parent_id`` (None moves it to the root).

    Works on the given mapping in-place; the caller renumbers afterwards.
    """

    if new_parent_id is not None and new_parent_id not in tasks:
        raise UnknownTaskError(new_parent_id)

    moved = []
    for task_id in task_ids:
        task = _require(tasks, task_id)
        if new_parent_id is not None:
            _assert_not_ancestor(tasks, task_id, new_parent_id)
        if task.parent_id != new_parent_id:
            task.parent_id = new_parent_id
            moved.append(task)
    return moved


def move_up_level(tasks: dict[int, Task], task_ids: Iterable[int]) -> list[Task]:
    """
    Reparent each task to its grandparent; root tasks stay where they are.

    Grandparents come from the hierarchy as it was before the batch, so a
    selected parent and child each go up exactly one level.
    """

    selected = [task for task in _in_sibling_order(tasks, task_ids) if task.parent_id is not None]
    grandparents = {}
    for task in selected:
        parent = tasks.get(task.parent_id)
        grandparents[task.id] = parent.parent_id if parent is not None else None

    for task in selected:
        task.parent_id = grandparents[task.id]
    return selected


def move_down_level(tasks: dict[int, Task], task_ids: Iterable[int]) -> list[Task]:
    """
    Reparent each task to its nearest preceding sibling; first children stay put.

    Tasks move one at a time in sibling order against the updated tree, so
    consecutive selected siblings land under the same new parent instead of
    nesting under each other.
    """

    moved = []
    for task in _in_sibling_order(tasks, task_ids):
        siblings = sorted(
            (other for other in tasks.values() if other.parent_id == task.parent_id),
            key=sibling_sort_key,
        )
        index = siblings.index(task)
        if index == 0:
            continue
        task.parent_id = siblings[index - 1].id
        moved.append(task)
    return moved


def _in_sibling_order(tasks: dict[int, Task], task_ids: Iterable[int]) -> list[Task]:
    selected = [_require(tasks, task_id) for task_id in dict.fromkeys(task_ids)]
    return sorted(selected, key=sibling_sort_key)


def _require(tasks: dict[int, Task], task_id: int) -> Task:
    task = tasks.get(task_id)
    if task is None:
        raise UnknownTaskError(task_id)
    return task


def _assert_not_ancestor(tasks: dict[int, Task], task_id: int, new_parent_id: int) -> None:
    seen: set[int] = set()
    current: int | None = new_parent_id
    while current is not None:
        if current == task_id:
            raise HierarchyCycleError(task_id, new_parent_id)
        if current in seen:
            raise ProjectValidationError(f"Parent chain of task {new_parent_id} loops at task {current}")
        seen.add(current)
        parent = tasks.get(current)
        current = parent.parent_id if parent is not None else None
