from __future__ import annotations

import argparse
import datetime as dt
import sys
from pathlib import Path

import yaml

from .bulk_dependencies import BULK_ACTIONS
from .errors import SchedulingError
from .log import configure_logging
from .parse_project import dump_project, load_project
from .project_models import ScheduleRow
from .service import ScheduleService
from .store import InMemoryProjectStore


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wbs-scheduler",
        description="CPM scheduler for WBS project files",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ...)")
    commands = parser.add_subparsers(dest="command", required=True)

    def add_command(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = commands.add_parser(name, help=help_text, formatter_class=argparse.ArgumentDefaultsHelpFormatter)
        sub.add_argument("project", help="Path to project YAML")
        sub.add_argument("--out", help="Write the updated project YAML here")
        return sub

    schedule = add_command("schedule", "Run the forward/backward pass and print the schedule")
    schedule.add_argument("--start", type=_parse_date, help="Project start date (YYYY-MM-DD)")

    critical = add_command("critical-path", "Run the schedule and print only critical tasks")
    critical.add_argument("--start", type=_parse_date, help="Project start date (YYYY-MM-DD)")

    add_command("renumber", "Recompute WBS codes from the hierarchy")

    baseline = add_command("baseline", "Snapshot planned dates into baseline fields")
    baseline.add_argument("task_ids", type=int, nargs="+", help="Tasks to baseline")

    link = add_command("link", "Create or clear dependencies across tasks")
    link.add_argument("action", choices=BULK_ACTIONS)
    link.add_argument("task_ids", type=int, nargs="+", help="Tasks in link order")

    move = add_command("move", "Move tasks in the hierarchy and renumber")
    move.add_argument("task_ids", type=int, nargs="+", help="Tasks to move")
    target = move.add_mutually_exclusive_group(required=True)
    target.add_argument("--parent", type=int, help="New parent task id")
    target.add_argument("--root", action="store_true", help="Move to the top level")
    target.add_argument("--up", action="store_true", help="Move up one level")
    target.add_argument("--down", action="store_true", help="Move under the preceding sibling")
    return parser


def _format_row(row: ScheduleRow) -> str:
    marker = "*" if row.is_critical_path else " "
    name = ("  " * row.indent + row.name)[:40]
    return (
        f"{marker} {row.wbs_code:<12} {name:<40} {row.duration if row.duration is not None else '-':>5} "
        f"{_fmt(row.early_start)} {_fmt(row.early_finish)} {_fmt(row.late_start)} {_fmt(row.late_finish)} "
        f"{row.total_float if row.total_float is not None else '-':>5}"
    )


def _fmt(value: dt.date | None) -> str:
    return value.isoformat() if value else "-" * 10


def _print_rows(rows: list[ScheduleRow]) -> None:
    print(f"  {'WBS':<12} {'Task':<40} {'Dur':>5} {'ES':<10} {'EF':<10} {'LS':<10} {'LF':<10} {'Float':>5}")
    for row in rows:
        print(_format_row(row))


def _project_id(store: InMemoryProjectStore) -> int:
    return next(iter(store.projects))


def _run(args: argparse.Namespace, store: InMemoryProjectStore) -> None:
    service = ScheduleService(store)
    project_id = _project_id(store)
    start = getattr(args, "start", None) or store.projects[project_id].start_date

    if args.command == "schedule":
        result = service.run_schedule(project_id, start)
        _print_rows(result.tasks)
        print(f"Project finish: {result.project_finish}  critical path: {result.critical_path_duration} days")
        for warning in result.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
    elif args.command == "critical-path":
        service.run_schedule(project_id, start)
        view = service.get_critical_path(project_id)
        _print_rows(view.tasks)
        print(f"Critical path: {view.total_duration} days")
    elif args.command == "renumber":
        changed = service.recalculate_wbs(project_id)
        print(f"Renumbered {len(changed)} tasks")
    elif args.command == "baseline":
        baseline = service.bulk_set_baseline(args.task_ids)
        print(f"Baseline set for {baseline.count} tasks, skipped {baseline.skipped}")
    elif args.command == "link":
        bulk = service.bulk_set_dependencies(args.task_ids, args.action)
        print(f"Created {len(bulk.created)} dependencies, deleted {len(bulk.deleted)}")
    elif args.command == "move":
        if args.up:
            touched = service.move_up_level(args.task_ids)
        elif args.down:
            touched = service.move_down_level(args.task_ids)
        else:
            touched = service.reparent(args.task_ids, None if args.root else args.parent)
        print(f"Updated {len(touched)} tasks")
        _print_rows(service.get_schedule_data(project_id))


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    project_path = Path(args.project)

    try:
        store = load_project(str(project_path))
    except (yaml.YAMLError, SchedulingError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: project file not found: {project_path}", file=sys.stderr)
        return 1

    try:
        _run(args, store)
    except (SchedulingError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if args.out:
        try:
            dump_project(store, _project_id(store), args.out)
        except OSError as exc:
            print(f"Error: cannot write {args.out}: {exc}", file=sys.stderr)
            return 1

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
