from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import CyclicDependencyError, UnknownTaskError
from .graph import Cycle, build_graph
from .project_models import BulkAction, Dependency, DependencyType, Task

logger = logging.getLogger(__name__)

BULK_ACTIONS = ("chain-fs", "set-ss", "set-ff", "clear")


@dataclass(frozen=True)
class DependencyPlan:
    """Links to create and dependency ids to delete for one bulk action."""

    to_create: list[tuple[int, int, DependencyType]]
    to_delete: list[int]


def plan_bulk_dependencies(
    tasks: list[Task],
    dependencies: list[Dependency],
    task_ids: list[int],
    action: BulkAction,
) -> DependencyPlan:
    """
    Work out the dependency changes for a bulk action over ``task_ids``.

    ``chain-fs`` links each task to the next with FS; ``set-ss``/``set-ff``
    link the first task to every other one; ``clear`` removes every link
    between two selected tasks. Nothing is written here: proposed links are
    checked against the existing graph and a cycle raises before any commit.
    """

    if action not in BULK_ACTIONS:
        raise ValueError(f"Unknown bulk dependency action '{action}', expected one of {BULK_ACTIONS}")

    known = {task.id for task in tasks}
    ordered = list(dict.fromkeys(task_ids))
    for task_id in ordered:
        if task_id not in known:
            raise UnknownTaskError(task_id)

    if action == "clear":
        selected = set(ordered)
        doomed = [
            dep.id
            for dep in dependencies
            if dep.predecessor_id in selected and dep.successor_id in selected
        ]
        return DependencyPlan(to_create=[], to_delete=doomed)

    if action == "chain-fs":
        pairs = [(ordered[i], ordered[i + 1], DependencyType.FS) for i in range(len(ordered) - 1)]
    else:
        dep_type = DependencyType.SS if action == "set-ss" else DependencyType.FF
        pairs = [(ordered[0], other, dep_type) for other in ordered[1:]]

    existing = {(dep.predecessor_id, dep.successor_id, dep.type) for dep in dependencies}
    to_create = [pair for pair in pairs if pair not in existing]

    graph = build_graph(tasks, dependencies)
    project_id = tasks[0].project_id if tasks else 0
    proposed = [
        # Negative ids keep proposed links apart from stored ones.
        Dependency(id=-(index + 1), project_id=project_id, predecessor_id=pred, successor_id=succ, type=dep_type)
        for index, (pred, succ, dep_type) in enumerate(to_create)
    ]
    cycle = graph.would_create_cycle(proposed)
    if cycle:
        raise _cycle_error(cycle, proposed)

    logger.debug("Bulk %s over %d tasks: %d new links", action, len(ordered), len(to_create))
    return DependencyPlan(to_create=to_create, to_delete=[])


def _cycle_error(cycle: Cycle, proposed: list[Dependency]) -> CyclicDependencyError:
    new_links = {(dep.predecessor_id, dep.successor_id) for dep in proposed}
    link = next((pair for pair in zip(cycle.path, cycle.path[1:]) if pair in new_links), None)
    stored_id = cycle.dependency_id if cycle.dependency_id is not None and cycle.dependency_id > 0 else None
    return CyclicDependencyError(stored_id, cycle.path, proposed_link=link)
