from __future__ import annotations

import logging
from typing import Iterable

from .errors import UnknownTaskError
from .project_models import BaselineResult, Task

logger = logging.getLogger(__name__)


def set_baseline(tasks: dict[int, Task], task_ids: Iterable[int]) -> BaselineResult:
    """
    Snapshot planned dates into the baseline fields of the selected tasks.

    Completed tasks (progress 100) keep their existing baseline and are
    counted as skipped. Unknown ids are rejected before anything changes.
    """

    selected = []
    for task_id in dict.fromkeys(task_ids):
        task = tasks.get(task_id)
        if task is None:
            raise UnknownTaskError(task_id)
        selected.append(task)

    updated: list[Task] = []
    skipped = 0
    for task in selected:
        if task.is_complete:
            skipped += 1
            continue
        task.baseline_start = task.start_date
        task.baseline_finish = task.end_date
        updated.append(task)

    logger.info("Baseline set for %d tasks (%d completed tasks skipped)", len(updated), skipped)
    return BaselineResult(count=len(updated), skipped=skipped, tasks=updated)
