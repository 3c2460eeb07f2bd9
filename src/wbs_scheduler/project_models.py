from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Literal


TaskStatus = Literal["not-started", "in-progress", "review", "completed", "on-hold"]
"""Lifecycle states a task moves through."""

ConstraintType = Literal["asap", "snet", "mso", "snlt", "fnlt", "mfo"]
"""Date constraints: as soon as possible, start no earlier than, must start on,
start no later than, finish no later than, must finish on."""

BulkAction = Literal["chain-fs", "set-ss", "set-ff", "clear"]

TASK_STATUSES: tuple[str, ...] = ("not-started", "in-progress", "review", "completed", "on-hold")
CONSTRAINT_TYPES: tuple[str, ...] = ("asap", "snet", "mso", "snlt", "fnlt", "mfo")
EARLY_START_FLOOR_CONSTRAINTS = frozenset({"snet", "mso"})


class DependencyType(str, Enum):
    """Precedence relationship between a predecessor and a successor."""

    FS = "FS"
    SS = "SS"
    FF = "FF"
    SF = "SF"


@dataclass
class Task:
    """Schedulable WBS node; computed CPM fields are written back by a schedule run."""

    id: int
    project_id: int
    name: str
    wbs_code: str = ""
    parent_id: int | None = None
    status: TaskStatus = "not-started"
    priority: str = "medium"
    progress: int = 0
    duration_days: int | None = None
    estimated_hours: float | None = None
    start_date: date | None = None
    end_date: date | None = None
    early_start: date | None = None
    early_finish: date | None = None
    late_start: date | None = None
    late_finish: date | None = None
    total_float: int | None = None
    free_float: int | None = None
    is_critical: bool = False
    constraint_type: ConstraintType = "asap"
    constraint_date: date | None = None
    baseline_start: date | None = None
    baseline_finish: date | None = None
    actual_start: date | None = None
    actual_finish: date | None = None
    sort_order: int = 0

    @property
    def is_complete(self) -> bool:
        return self.progress >= 100

    @property
    def early_start_floor(self) -> date | None:
        """Constraint date acting as a lower bound on the early start, if any."""
        if self.constraint_type in EARLY_START_FLOOR_CONSTRAINTS:
            return self.constraint_date
        return None


@dataclass
class Dependency:
    """Directed edge from ``predecessor_id`` to ``successor_id``; lag is signed days."""

    id: int
    project_id: int
    predecessor_id: int
    successor_id: int
    type: DependencyType = DependencyType.FS
    lag: int = 0


@dataclass(frozen=True)
class ConstraintConflict:
    """A computed date that lands past a task's no-later-than style constraint."""

    task_id: int
    constraint_type: str
    constraint_date: date
    computed_date: date

    @property
    def conflict_days(self) -> int:
        return (self.computed_date - self.constraint_date).days

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return (
            f"Task {self.task_id}: computed {self.computed_date} is {self.conflict_days} days "
            f"after {self.constraint_type} constraint {self.constraint_date}"
        )


@dataclass
class ScheduleRow:
    """
    Read-only projection of one task's schedule fields.

    Rows are listed in WBS order; ``indent`` is the zero-based hierarchy level.
    """

    order: int
    indent: int
    task_id: int
    wbs_code: str
    name: str
    duration: int | None
    early_start: date | None = None
    early_finish: date | None = None
    late_start: date | None = None
    late_finish: date | None = None
    total_float: int | None = None
    free_float: int | None = None
    is_critical_path: bool = False


@dataclass
class ScheduleResult:
    success: bool
    project_id: int
    project_start: date | None = None
    project_finish: date | None = None
    critical_path_duration: int = 0
    tasks: list[ScheduleRow] = field(default_factory=list)
    critical_task_ids: list[int] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class CriticalPathView:
    tasks: list[ScheduleRow]
    total_duration: int


@dataclass
class BaselineResult:
    count: int
    skipped: int
    tasks: list[Task] = field(default_factory=list)


@dataclass
class BulkDependencyResult:
    action: str
    created: list[Dependency] = field(default_factory=list)
    deleted: list[int] = field(default_factory=list)


@dataclass
class Project:
    """Project header kept alongside its tasks in a project file."""

    id: int
    name: str
    start_date: date | None = None
