from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from .errors import CyclicDependencyError, OrphanDependencyError, ProjectValidationError
from .project_models import Dependency, Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cycle:
    """Detected cycle: the task-id path and the dependency that closes it."""

    path: list[int]
    dependency_id: int | None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return " -> ".join(str(task_id) for task_id in self.path)


@dataclass
class DependencyGraph:
    """
    Adjacency view over one project's tasks and dependencies.

    Tasks are keyed by id; edges are held as Dependency records in both
    directions. ``order`` is a topological order (predecessors first).
    """

    tasks: dict[int, Task]
    dependencies: list[Dependency]
    successors: dict[int, list[Dependency]] = field(default_factory=dict)
    predecessors: dict[int, list[Dependency]] = field(default_factory=dict)
    order: list[int] = field(default_factory=list)

    def start_task_ids(self) -> list[int]:
        return [task_id for task_id in self.order if not self.predecessors[task_id]]

    def end_task_ids(self) -> list[int]:
        return [task_id for task_id in self.order if not self.successors[task_id]]

    def reverse_order(self) -> list[int]:
        return list(reversed(self.order))

    def would_create_cycle(self, proposed: Iterable[Dependency]) -> Cycle | None:
        """Return the cycle the proposed edges would introduce, or None."""
        edges = list(self.dependencies) + list(proposed)
        return find_cycle(list(self.tasks), edges)


def build_graph(tasks: Iterable[Task], dependencies: Iterable[Dependency]) -> DependencyGraph:
    """
    Validate and index a project's task/dependency set.

    - Rejects dependencies whose endpoints are missing or in another project.
    - Rejects dependency cycles (self-loops included).
    - Computes a deterministic topological order seeded in task input order.
    """

    task_list = list(tasks)
    dep_list = list(dependencies)
    task_lookup = _index_tasks(task_list)
    _validate_dependencies(task_lookup, dep_list)

    cycle = find_cycle(list(task_lookup), dep_list)
    if cycle:
        raise CyclicDependencyError(cycle.dependency_id, cycle.path)

    graph = DependencyGraph(tasks=task_lookup, dependencies=dep_list)
    graph.successors = {task_id: [] for task_id in task_lookup}
    graph.predecessors = {task_id: [] for task_id in task_lookup}
    for dep in dep_list:
        graph.successors[dep.predecessor_id].append(dep)
        graph.predecessors[dep.successor_id].append(dep)

    graph.order = _toposort(list(task_lookup), graph.successors, graph.predecessors)
    logger.debug("Built graph with %d tasks and %d dependencies", len(task_lookup), len(dep_list))
    return graph


def _index_tasks(tasks: list[Task]) -> dict[int, Task]:
    lookup: dict[int, Task] = {}
    project_ids = {task.project_id for task in tasks}
    if len(project_ids) > 1:
        raise ProjectValidationError(f"Tasks span several projects: {sorted(project_ids)}")
    for task in tasks:
        if task.id in lookup:
            raise ProjectValidationError(f"Duplicate task id {task.id}")
        lookup[task.id] = task
    return lookup


def _validate_dependencies(task_lookup: dict[int, Task], dependencies: list[Dependency]) -> None:
    for dep in dependencies:
        for endpoint in (dep.predecessor_id, dep.successor_id):
            task = task_lookup.get(endpoint)
            if task is None:
                raise OrphanDependencyError(dep.id, endpoint)
            if task.project_id != dep.project_id:
                raise ProjectValidationError(
                    f"Dependency {dep.id} (project {dep.project_id}) links task {endpoint} "
                    f"of project {task.project_id}"
                )


def find_cycle(order: list[int], dependencies: Iterable[Dependency]) -> Cycle | None:
    """Three-colour DFS over predecessor -> successor edges."""

    outgoing: dict[int, list[Dependency]] = {}
    for dep in dependencies:
        outgoing.setdefault(dep.predecessor_id, []).append(dep)

    state: dict[int, str] = {}
    stack: list[int] = []
    positions: dict[int, int] = {}

    def dfs(task_id: int) -> Cycle | None:
        state[task_id] = "visiting"
        positions[task_id] = len(stack)
        stack.append(task_id)

        for dep in outgoing.get(task_id, []):
            next_id = dep.successor_id
            next_state = state.get(next_id)
            if next_state == "visiting":
                cycle_path = stack[positions[next_id] :] + [next_id]
                return Cycle(cycle_path, dep.id)
            if next_state is None:
                found = dfs(next_id)
                if found:
                    return found

        stack.pop()
        positions.pop(task_id, None)
        state[task_id] = "done"
        return None

    for task_id in order:
        if state.get(task_id) is None:
            found = dfs(task_id)
            if found:
                return found
    return None


def _toposort(
    order: list[int],
    successors: dict[int, list[Dependency]],
    predecessors: dict[int, list[Dependency]],
) -> list[int]:
    # Kahn's algorithm; seeds and adjacency keep the incoming order so runs are reproducible.
    indegree = {task_id: len(predecessors[task_id]) for task_id in order}
    queue = deque([task_id for task_id in order if indegree[task_id] == 0])
    result: list[int] = []

    while queue:
        current = queue.popleft()
        result.append(current)
        for dep in successors[current]:
            indegree[dep.successor_id] -= 1
            if indegree[dep.successor_id] == 0:
                queue.append(dep.successor_id)

    if len(result) != len(order):
        # Should not happen because cycles are validated earlier.
        raise CyclicDependencyError(None, sorted(set(order) - set(result)))
    return result
