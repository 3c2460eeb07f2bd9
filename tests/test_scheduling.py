import datetime as dt

import pytest

from wbs_scheduler.errors import CyclicDependencyError, InvalidDurationError, OrphanDependencyError
from wbs_scheduler.project_models import Dependency, DependencyType, Task
from wbs_scheduler.scheduling import resolve_duration, schedule_project

START = dt.date(2024, 1, 1)


def _day(offset):
    return START + dt.timedelta(days=offset)


def _task(task_id, duration=None, **kwargs):
    return Task(id=task_id, project_id=1, name=f"T{task_id}", duration_days=duration, **kwargs)


def _dep(dep_id, pred, succ, dep_type=DependencyType.FS, lag=0):
    return Dependency(id=dep_id, project_id=1, predecessor_id=pred, successor_id=succ, type=dep_type, lag=lag)


def _schedule(tasks, deps, **kwargs):
    return schedule_project(1, tasks, deps, START, **kwargs)


def test_finish_to_start_with_lag():
    a, b = _task(1, 5), _task(2, 3)

    result = _schedule([a, b], [_dep(1, 1, 2, lag=2)])

    assert (a.early_start, a.early_finish) == (_day(0), _day(5))
    assert (b.early_start, b.early_finish) == (_day(7), _day(10))
    assert result.project_finish == _day(10)
    assert result.critical_path_duration == 10
    assert result.critical_task_ids == [1, 2]


def test_start_to_start_with_lag():
    a, b = _task(1, 5), _task(2, 2)

    _schedule([a, b], [_dep(1, 1, 2, DependencyType.SS, lag=1)])

    assert b.early_start == _day(1)
    assert b.early_finish == _day(3)
    assert b.total_float == 2
    assert not b.is_critical
    assert a.is_critical


def test_finish_to_finish_aligns_successor_finish():
    a, b = _task(1, 5), _task(2, 2)

    _schedule([a, b], [_dep(1, 1, 2, DependencyType.FF, lag=1)])

    assert (b.early_start, b.early_finish) == (_day(4), _day(6))
    assert a.late_finish == _day(5)
    assert a.total_float == 0
    assert b.total_float == 0


def test_start_to_finish_bound():
    a, b = _task(1, 5), _task(2, 2)

    _schedule([a, b], [_dep(1, 1, 2, DependencyType.SF, lag=3)])

    assert (b.early_start, b.early_finish) == (_day(1), _day(3))
    assert b.total_float == 2
    assert a.total_float == 0


def test_negative_lag_is_a_lead():
    a, b = _task(1, 5), _task(2, 3)

    _schedule([a, b], [_dep(1, 1, 2, lag=-2)])

    assert b.early_start == _day(3)


def test_parallel_branches_float_and_critical_set():
    short, long_, join = _task(1, 2), _task(2, 5), _task(3, 1)
    deps = [_dep(1, 1, 3), _dep(2, 2, 3)]

    result = _schedule([short, long_, join], deps)

    assert join.early_start == _day(5)
    assert short.total_float == 3
    assert short.free_float == 3
    assert short.late_start == _day(3)
    assert result.critical_task_ids == [2, 3]
    critical_span = sum(task.duration_days for task in (long_, join) if task.is_critical)
    assert critical_span == result.critical_path_duration


def test_duration_identities_and_non_negative_float():
    tasks = [_task(1, 4), _task(2, 2), _task(3, 6), _task(4, 1)]
    deps = [
        _dep(1, 1, 2),
        _dep(2, 1, 3, DependencyType.SS, lag=1),
        _dep(3, 2, 4, DependencyType.FF),
        _dep(4, 3, 4, lag=-1),
    ]

    _schedule(tasks, deps)

    for task in tasks:
        duration = dt.timedelta(days=task.duration_days)
        assert task.early_finish - task.early_start == duration
        assert task.late_finish - task.late_start == duration
        assert task.early_start <= task.late_start
        assert task.total_float >= 0
        assert task.is_critical == (task.total_float == 0)


def test_running_twice_gives_identical_results():
    tasks = [_task(1, 3), _task(2, 4), _task(3, 2, start_date=_day(2), end_date=_day(4))]
    deps = [_dep(1, 1, 2), _dep(2, 1, 3, DependencyType.SS, lag=1)]

    def snapshot():
        return [
            (t.early_start, t.early_finish, t.late_start, t.late_finish, t.total_float, t.is_critical)
            for t in tasks
        ]

    _schedule(tasks, deps)
    first = snapshot()
    _schedule(tasks, deps)

    assert snapshot() == first


def test_planned_dates_are_written_from_early_dates():
    a, b = _task(1, 2), _task(2, 3)

    _schedule([a, b], [_dep(1, 1, 2)])

    assert (b.start_date, b.end_date) == (b.early_start, b.early_finish)
    assert (b.end_date - b.start_date).days == b.duration_days


def test_constraint_date_floors_early_start():
    # Constraint dates are treated as an early-start floor only.
    a = _task(1, 5)
    b = _task(2, 3, constraint_type="snet", constraint_date=_day(10))

    _schedule([a, b], [_dep(1, 1, 2)])

    assert b.early_start == _day(10)
    assert a.total_float == 5
    assert b.is_critical


def test_unconstrained_root_starts_at_project_start():
    task = _task(1, 2, constraint_type="fnlt", constraint_date=_day(30))

    _schedule([task], [])

    assert task.early_start == START


def test_finish_no_later_than_conflict_is_reported_not_applied():
    a = _task(1, 5)
    b = _task(2, 3, constraint_type="fnlt", constraint_date=_day(6))

    result = _schedule([a, b], [_dep(1, 1, 2)])

    assert b.early_finish == _day(8)
    assert len(result.warnings) == 1
    assert "Task 2" in result.warnings[0]


def test_cycle_is_rejected_with_offending_dependency():
    tasks = [_task(1, 1), _task(2, 1), _task(3, 1)]
    deps = [_dep(1, 1, 2), _dep(2, 2, 3), _dep(3, 3, 1)]

    with pytest.raises(CyclicDependencyError) as excinfo:
        _schedule(tasks, deps)

    assert excinfo.value.dependency_id == 3
    assert excinfo.value.path == [1, 2, 3, 1]
    assert all(task.early_start is None for task in tasks)


def test_orphan_dependency_is_rejected():
    with pytest.raises(OrphanDependencyError) as excinfo:
        _schedule([_task(1, 1)], [_dep(7, 1, 99)])

    assert excinfo.value.dependency_id == 7
    assert excinfo.value.task_id == 99


def test_negative_duration_fails_fast_by_default():
    with pytest.raises(InvalidDurationError) as excinfo:
        _schedule([_task(1, -1)], [], strict_durations=True)

    assert excinfo.value.task_id == 1


def test_negative_duration_is_floored_when_lenient():
    task = _task(1, -2)

    result = _schedule([task], [], strict_durations=False)

    assert task.duration_days == 0
    assert task.early_start == task.early_finish
    assert result.warnings


def test_duration_resolution_order():
    planned = _task(1, start_date=_day(0), end_date=_day(4))
    estimated = _task(2, estimated_hours=20)
    bare = _task(3)

    assert resolve_duration(planned, hours_per_day=8, strict=True) == 4
    assert resolve_duration(estimated, hours_per_day=8, strict=True) == 3
    assert resolve_duration(bare, hours_per_day=8, strict=True) == 1


def test_empty_project_succeeds():
    result = _schedule([], [])

    assert result.success
    assert result.tasks == []
    assert result.critical_path_duration == 0
