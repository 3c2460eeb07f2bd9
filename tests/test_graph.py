import pytest

from wbs_scheduler.errors import CyclicDependencyError, ProjectValidationError
from wbs_scheduler.graph import build_graph
from wbs_scheduler.project_models import Dependency, DependencyType, Task


def _task(task_id, project_id=1):
    return Task(id=task_id, project_id=project_id, name=f"T{task_id}", duration_days=1)


def _dep(dep_id, pred, succ, project_id=1):
    return Dependency(id=dep_id, project_id=project_id, predecessor_id=pred, successor_id=succ)


def test_topological_order_puts_predecessors_first():
    tasks = [_task(3), _task(1), _task(2)]
    deps = [_dep(1, 1, 2), _dep(2, 2, 3)]

    graph = build_graph(tasks, deps)

    assert graph.order == [1, 2, 3]
    assert graph.start_task_ids() == [1]
    assert graph.end_task_ids() == [3]


def test_independent_tasks_keep_input_order():
    graph = build_graph([_task(5), _task(2), _task(9)], [])

    assert graph.order == [5, 2, 9]


def test_self_loop_is_a_cycle():
    with pytest.raises(CyclicDependencyError) as excinfo:
        build_graph([_task(1)], [_dep(4, 1, 1)])

    assert excinfo.value.dependency_id == 4


def test_dependency_across_projects_is_rejected():
    tasks = [_task(1), _task(2)]

    with pytest.raises(ProjectValidationError):
        build_graph(tasks, [_dep(1, 1, 2, project_id=2)])


def test_would_create_cycle_checks_proposed_edges():
    graph = build_graph([_task(1), _task(2), _task(3)], [_dep(1, 1, 2), _dep(2, 2, 3)])

    closing = Dependency(id=-1, project_id=1, predecessor_id=3, successor_id=1, type=DependencyType.SS)
    harmless = Dependency(id=-2, project_id=1, predecessor_id=1, successor_id=3)

    assert graph.would_create_cycle([closing]) is not None
    assert graph.would_create_cycle([harmless]) is None
