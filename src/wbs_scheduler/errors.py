from __future__ import annotations


class SchedulingError(Exception):
    """Raised when a schedule or hierarchy operation cannot be completed."""


class ProjectValidationError(SchedulingError):
    """Raised when the project data is invalid (bad refs, bad fields, cycles)."""


class CyclicDependencyError(ProjectValidationError):
    """
    The dependency set contains a cycle; ``dependency_id`` is one stored edge on it.

    When a link that is not stored yet closes the cycle, ``proposed_link``
    holds its (predecessor, successor) pair.
    """

    def __init__(
        self,
        dependency_id: int | None,
        path: list[int],
        proposed_link: tuple[int, int] | None = None,
    ):
        self.dependency_id = dependency_id
        self.path = path
        self.proposed_link = proposed_link
        cycle = " -> ".join(str(task_id) for task_id in path)
        if proposed_link is not None:
            super().__init__(f"Dependency cycle detected via new link {proposed_link[0]} -> {proposed_link[1]}: {cycle}")
        elif dependency_id is None:
            super().__init__(f"Dependency cycle detected: {cycle}")
        else:
            super().__init__(f"Dependency cycle detected via dependency {dependency_id}: {cycle}")


class OrphanDependencyError(ProjectValidationError):
    def __init__(self, dependency_id: int, task_id: int):
        self.dependency_id = dependency_id
        self.task_id = task_id
        super().__init__(f"Dependency {dependency_id} references unknown task {task_id}")


class InvalidDurationError(ProjectValidationError):
    def __init__(self, task_id: int, duration: object):
        self.task_id = task_id
        self.duration = duration
        super().__init__(f"Task {task_id} has invalid duration {duration!r}")


class UnknownTaskError(ProjectValidationError):
    def __init__(self, task_id: int):
        self.task_id = task_id
        super().__init__(f"Unknown task {task_id}")


class NegativeFloatError(SchedulingError):
    """A computed total float is negative, which points to a modeling error."""

    def __init__(self, task_id: int, total_float: int):
        self.task_id = task_id
        self.total_float = total_float
        super().__init__(f"Task {task_id} has negative total float {total_float}")


class WbsDepthExceededError(SchedulingError):
    def __init__(self, task_id: int, depth: int, max_depth: int):
        self.task_id = task_id
        self.depth = depth
        self.max_depth = max_depth
        super().__init__(f"Task {task_id} would sit at WBS level {depth} (maximum {max_depth})")


class HierarchyCycleError(SchedulingError):
    def __init__(self, task_id: int, new_parent_id: int):
        self.task_id = task_id
        self.new_parent_id = new_parent_id
        super().__init__(f"Task {task_id} cannot become a child of its own descendant {new_parent_id}")


class ScheduleBusyError(SchedulingError):
    def __init__(self, project_id: int, timeout: float):
        self.project_id = project_id
        self.timeout = timeout
        super().__init__(f"Project {project_id} is busy; lock not acquired within {timeout}s")
