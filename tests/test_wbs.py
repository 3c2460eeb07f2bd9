import pytest

from wbs_scheduler.errors import HierarchyCycleError, WbsDepthExceededError
from wbs_scheduler.project_models import Task
from wbs_scheduler.wbs import compute_wbs_codes, move_down_level, move_up_level, renumber, reparent


def _task(task_id, code="", parent=None, sort_order=0):
    return Task(id=task_id, project_id=1, name=f"T{task_id}", wbs_code=code, parent_id=parent, sort_order=sort_order)


def _codes(tasks):
    return {task.id: task.wbs_code for task in tasks.values()}


def _lookup(*tasks):
    return {task.id: task for task in tasks}


def test_reparent_under_first_sibling_renumbers():
    tasks = _lookup(_task(1, "1"), _task(2, "2"), _task(3, "3"))

    reparent(tasks, [3], 1)
    renumber(tasks.values())

    assert _codes(tasks) == {1: "1", 2: "2", 3: "1.1"}


def test_renumber_closes_gaps_and_returns_changed_tasks():
    tasks = _lookup(_task(1, "1"), _task(2, "4"), _task(3, "4.7", parent=2))

    changed = renumber(tasks.values())

    assert _codes(tasks) == {1: "1", 2: "2", 3: "2.1"}
    assert {task.id for task in changed} == {2, 3}


def test_uncoded_tasks_follow_coded_ones_in_creation_order():
    tasks = _lookup(_task(1, "", sort_order=2), _task(2, "1", sort_order=3), _task(3, "", sort_order=1))

    renumber(tasks.values())

    assert _codes(tasks) == {2: "1", 3: "2", 1: "3"}


def test_sixth_level_is_rejected_without_changes():
    tasks = _lookup(
        _task(1, "1"),
        _task(2, "1.1", parent=1),
        _task(3, "1.1.1", parent=2),
        _task(4, "1.1.1.1", parent=3),
        _task(5, "1.1.1.1.1", parent=4),
        _task(6, "2"),
    )
    reparent(tasks, [6], 5)

    with pytest.raises(WbsDepthExceededError) as excinfo:
        renumber(tasks.values())

    assert excinfo.value.task_id == 6
    assert excinfo.value.depth == 6
    assert tasks[6].wbs_code == "2"


def test_custom_max_depth():
    tasks = [_task(1, "1"), _task(2, "1.1", parent=1)]

    with pytest.raises(WbsDepthExceededError):
        compute_wbs_codes(tasks, max_depth=1)


def test_task_cannot_become_its_own_ancestor():
    tasks = _lookup(_task(1, "1"), _task(2, "1.1", parent=1))

    with pytest.raises(HierarchyCycleError):
        reparent(tasks, [1], 2)
    with pytest.raises(HierarchyCycleError):
        reparent(tasks, [1], 1)


def test_move_up_level_reparents_to_grandparent():
    tasks = _lookup(_task(1, "1"), _task(2, "1.1", parent=1), _task(3, "1.2", parent=1), _task(4, "2"))

    moved = move_up_level(tasks, [2])
    renumber(tasks.values())

    assert [task.id for task in moved] == [2]
    assert tasks[2].parent_id is None
    assert _codes(tasks) == {1: "1", 2: "2", 3: "1.1", 4: "3"}


def test_move_down_level_reparents_to_preceding_sibling():
    tasks = _lookup(_task(1, "1"), _task(2, "1.1", parent=1), _task(3, "1.2", parent=1))

    move_down_level(tasks, [3])
    renumber(tasks.values())

    assert tasks[3].parent_id == 2
    assert tasks[3].wbs_code == "1.1.1"


def test_move_down_level_keeps_first_child_in_place():
    tasks = _lookup(_task(1, "1"), _task(2, "1.1", parent=1))

    assert move_down_level(tasks, [2]) == []
    assert tasks[2].parent_id == 1


def test_move_down_level_batch_shares_new_parent():
    tasks = _lookup(_task(1, "1"), _task(2, "2"), _task(3, "3"))

    move_down_level(tasks, [3, 2])
    renumber(tasks.values())

    assert tasks[2].parent_id == 1
    assert tasks[3].parent_id == 1
    assert _codes(tasks) == {1: "1", 2: "1.1", 3: "1.2"}


def test_move_up_level_parent_and_child_each_go_up_one_level():
    tasks = _lookup(_task(1, "1"), _task(2, "1.1", parent=1), _task(3, "1.1.1", parent=2))

    moved = move_up_level(tasks, [3, 2])
    renumber(tasks.values())

    assert [task.id for task in moved] == [2, 3]
    assert tasks[2].parent_id is None
    assert tasks[3].parent_id == 1
    assert _codes(tasks) == {1: "1", 2: "2", 3: "1.1"}


def test_move_down_level_consecutive_siblings_do_not_nest():
    tasks = _lookup(_task(1, "1"), _task(2, "2"), _task(3, "3"), _task(4, "4"))

    move_down_level(tasks, [2, 3])
    renumber(tasks.values())

    # Against the pre-move tree task 3 would have gone under task 2.
    assert tasks[3].parent_id == 1
    assert _codes(tasks) == {1: "1", 2: "1.1", 3: "1.2", 4: "2"}
