from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from rich.console import Console
from rich.table import Table

from .config import get_focus_config, get_logging_config, load_config
from .constants import ISSUE_LABELS
from .domain.models import IssueStatus, ProjectStatus
from .focus import stats
from .logging_utils import configure_logging, format_duration
from .transfer import read_export, write_export
from .utils import _now, _parse_iso
from .workspace import Workspace

Handler = Callable[[argparse.Namespace, Workspace], Awaitable[int]]


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _emit(payload: Any) -> int:
    sys.stdout.write(json.dumps(payload, indent=2) + '\n')
    return 0


def _when(raw: Optional[str], label: str):
    if raw is None:
        return _now()
    value = _parse_iso(raw)
    if value is None:
        raise ValueError(f"Invalid {label} timestamp: {raw}")
    return value


# -- tasks ------------------------------------------------------------------

async def _task_add(args: argparse.Namespace, ws: Workspace) -> int:
    task = await ws.tasks.add(
        args.text,
        args.subtask or [],
        _when(args.due, 'due'),
        args.tag or [],
        args.priority,
    )
    return _emit({'task': task.to_dict()})


async def _task_list(args: argparse.Namespace, ws: Workspace) -> int:
    ws.tasks.set_search_query(args.search or '')
    tasks = ws.tasks.completed_tasks() if args.completed else ws.tasks.active()
    return _emit({'tasks': [task.to_dict() for task in tasks]})


async def _task_done(args: argparse.Namespace, ws: Workspace) -> int:
    task = await ws.tasks.complete(args.task_id)
    return _emit({'task': task.to_dict()})


async def _task_undo(args: argparse.Namespace, ws: Workspace) -> int:
    task = await ws.tasks.uncomplete(args.task_id)
    return _emit({'task': task.to_dict()})


async def _task_rm(args: argparse.Namespace, ws: Workspace) -> int:
    await ws.tasks.remove(args.task_id)
    return _emit({'removed': args.task_id})


async def _task_board(args: argparse.Namespace, ws: Workspace) -> int:
    ws.tasks.set_search_query(args.search or '')
    if args.by == 'tag':
        groups = ws.tasks.group_by_tag()
    elif args.by == 'priority':
        groups = ws.tasks.group_by_priority()
    else:
        groups = ws.tasks.group_by_time_category()

    if args.json:
        return _emit({name: [t.to_dict() for t in tasks] for name, tasks in groups.items()})

    table = Table(title=f"Tasks by {args.by}", show_header=True)
    table.add_column("Group", style="cyan")
    table.add_column("ID", justify="right")
    table.add_column("Task", style="bold")
    table.add_column("Priority", justify="center")
    table.add_column("Due")
    table.add_column("Tags", style="dim")
    for name, tasks in groups.items():
        for task in tasks:
            table.add_row(
                name,
                str(task.id),
                task.task,
                str(task.priority),
                task.duedate.strftime("%Y-%m-%d %H:%M"),
                ", ".join(task.tags),
            )
    Console().print(table)
    return 0


# -- focus ------------------------------------------------------------------

async def _focus_add(args: argparse.Namespace, ws: Workspace) -> int:
    end = _when(args.end, 'end')
    start = end - timedelta(minutes=args.minutes) if args.minutes is not None else _when(args.start, 'start')
    session = await ws.focus.add(args.tag, start, end)
    return _emit({'session': session.to_dict()})


async def _focus_list(args: argparse.Namespace, ws: Workspace) -> int:
    sessions = ws.focus.sessions[: args.limit] if args.limit else ws.focus.sessions
    return _emit({'sessions': [s.to_dict() for s in sessions]})


async def _focus_rm(args: argparse.Namespace, ws: Workspace) -> int:
    await ws.focus.remove(args.session_id)
    return _emit({'removed': args.session_id})


async def _focus_stats(args: argparse.Namespace, ws: Workspace) -> int:
    focus_cfg = get_focus_config(ws.config)
    now = _now()
    sessions = ws.focus.sessions
    rolling = stats.rolling_totals(sessions, now, focus_cfg['rolling_windows_days'])
    payload = {
        'today': ws.focus.today_total(now),
        'last_7_days': ws.focus.last_7_days_total(now),
        'rolling': {f"{days}d": seconds for days, seconds in rolling.items()},
        'tags': stats.tag_totals(sessions),
    }
    if args.json:
        return _emit(payload)

    table = Table(title="Focus time", show_header=True)
    table.add_column("Window", style="cyan")
    table.add_column("Total", justify="right", style="bold")
    table.add_row("Today", format_duration(payload['today']))
    table.add_row("Last 7 days", format_duration(payload['last_7_days']))
    for label, seconds in payload['rolling'].items():
        table.add_row(f"Trailing {label}", format_duration(seconds))
    for tag, seconds in payload['tags'].items():
        table.add_row(f"#{tag or 'untagged'}", format_duration(seconds))
    Console().print(table)
    return 0


async def _focus_heatmap(args: argparse.Namespace, ws: Workspace) -> int:
    year = args.year or _now().year
    thresholds = get_focus_config(ws.config)['heatmap_thresholds']
    cells = stats.year_heatmap(ws.focus.sessions, year, thresholds)
    return _emit({
        'year': year,
        'days': [
            {
                'date': cell.day.isoformat(),
                'seconds': cell.total_seconds,
                'sessions': cell.session_count,
                'level': cell.level,
            }
            for cell in cells
            if cell.level
        ],
    })


# -- projects ---------------------------------------------------------------

async def _project_add(args: argparse.Namespace, ws: Workspace) -> int:
    project = await ws.projects.add_project(args.title, args.status, args.version, args.notes)
    return _emit({'project': project.to_dict()})


async def _project_list(args: argparse.Namespace, ws: Workspace) -> int:
    return _emit({'projects': [p.to_dict() for p in ws.projects.all_projects_with_stats()]})


async def _project_show(args: argparse.Namespace, ws: Workspace) -> int:
    project = ws.projects.project_with_stats(args.project_id)
    if project is None:
        sys.stderr.write(f"Unknown project: {args.project_id}\n")
        return 1
    payload = project.to_dict()
    payload['issues'] = {
        str(m.id): [i.to_dict() for i in ws.projects.issues_for_milestone(m.id)]
        for m in project.milestones
    }
    return _emit({'project': payload})


async def _project_rm(args: argparse.Namespace, ws: Workspace) -> int:
    await ws.projects.delete_project(args.project_id)
    return _emit({'removed': args.project_id})


async def _milestone_add(args: argparse.Namespace, ws: Workspace) -> int:
    milestone = await ws.projects.add_milestone(
        args.project_id,
        args.title,
        args.status,
        _when(args.deadline, 'deadline'),
        args.budget,
    )
    return _emit({'milestone': milestone.to_dict()})


async def _milestone_rm(args: argparse.Namespace, ws: Workspace) -> int:
    await ws.projects.delete_milestone(args.milestone_id)
    return _emit({'removed': args.milestone_id})


async def _issue_add(args: argparse.Namespace, ws: Workspace) -> int:
    issue = await ws.projects.add_issue(
        args.milestone_id,
        args.title,
        args.label,
        _when(args.due, 'due'),
        args.description,
    )
    return _emit({'issue': issue.to_dict()})


async def _issue_close(args: argparse.Namespace, ws: Workspace) -> int:
    issue = await ws.projects.update_issue(args.issue_id, status=IssueStatus.CLOSE)
    return _emit({'issue': issue.to_dict()})


async def _issue_reopen(args: argparse.Namespace, ws: Workspace) -> int:
    issue = await ws.projects.update_issue(args.issue_id, status=IssueStatus.OPEN)
    return _emit({'issue': issue.to_dict()})


async def _issue_rm(args: argparse.Namespace, ws: Workspace) -> int:
    await ws.projects.delete_issue(args.issue_id)
    return _emit({'removed': args.issue_id})


# -- transfer ---------------------------------------------------------------

async def _export(args: argparse.Namespace, ws: Workspace) -> int:
    path = await write_export(ws, Path(args.path).expanduser())
    return _emit({'exported': str(path)})


async def _import(args: argparse.Namespace, ws: Workspace) -> int:
    counts = await read_export(ws, Path(args.path).expanduser())
    return _emit({'imported': counts})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Focusboard: tasks, focus sessions and projects')
    parser.add_argument('--project-dir', default=None, help='Directory holding .focusboard/ (default: current working directory)')
    parser.add_argument('--log-level', default=None, help='Override the configured log level')
    subparsers = parser.add_subparsers(dest='command', required=True)

    task = subparsers.add_parser('task', help='Manage tasks')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tadd = task_sub.add_parser('add', help='Add a task')
    tadd.add_argument('text')
    tadd.add_argument('--subtask', action='append')
    tadd.add_argument('--tag', action='append')
    tadd.add_argument('--due', default=None, help='ISO-8601 due date (default: now)')
    tadd.add_argument('--priority', type=int, default=None)
    tadd.set_defaults(func=_task_add)
    tlist = task_sub.add_parser('list', help='List tasks')
    tlist.add_argument('--search', default=None)
    tlist.add_argument('--completed', action='store_true')
    tlist.set_defaults(func=_task_list)
    for name, func, help_text in (
        ('done', _task_done, 'Mark a task completed'),
        ('undo', _task_undo, 'Mark a task not completed'),
        ('rm', _task_rm, 'Permanently delete a task'),
    ):
        cmd = task_sub.add_parser(name, help=help_text)
        cmd.add_argument('task_id', type=int)
        cmd.set_defaults(func=func)
    tboard = task_sub.add_parser('board', help='Show grouped active tasks')
    tboard.add_argument('--by', choices=['time', 'tag', 'priority'], default='time')
    tboard.add_argument('--search', default=None)
    tboard.add_argument('--json', action='store_true')
    tboard.set_defaults(func=_task_board)

    focus = subparsers.add_parser('focus', help='Manage focus sessions')
    focus_sub = focus.add_subparsers(dest='focus_cmd', required=True)
    fadd = focus_sub.add_parser('add', help='Record a focus session')
    fadd.add_argument('tag')
    fadd.add_argument('--start', default=None)
    fadd.add_argument('--end', default=None)
    fadd.add_argument('--minutes', type=float, default=None, help='Duration ending at --end (default: now)')
    fadd.set_defaults(func=_focus_add)
    flist = focus_sub.add_parser('list', help='List sessions, newest first')
    flist.add_argument('--limit', type=int, default=None)
    flist.set_defaults(func=_focus_list)
    frm = focus_sub.add_parser('rm', help='Delete a session')
    frm.add_argument('session_id', type=int)
    frm.set_defaults(func=_focus_rm)
    fstats = focus_sub.add_parser('stats', help='Show focus totals')
    fstats.add_argument('--json', action='store_true')
    fstats.set_defaults(func=_focus_stats)
    fheat = focus_sub.add_parser('heatmap', help='Show per-day focus intensity for a year')
    fheat.add_argument('--year', type=int, default=None)
    fheat.set_defaults(func=_focus_heatmap)

    statuses = [s.value for s in ProjectStatus]
    project = subparsers.add_parser('project', help='Manage projects')
    project_sub = project.add_subparsers(dest='project_cmd', required=True)
    padd = project_sub.add_parser('add', help='Create a project')
    padd.add_argument('title')
    padd.add_argument('--status', choices=statuses, default=ProjectStatus.SCHEDULED.value)
    padd.add_argument('--version', default='')
    padd.add_argument('--notes', default='')
    padd.set_defaults(func=_project_add)
    plist = project_sub.add_parser('list', help='List projects with progress')
    plist.set_defaults(func=_project_list)
    pshow = project_sub.add_parser('show', help='Show one project with milestones and issues')
    pshow.add_argument('project_id', type=int)
    pshow.set_defaults(func=_project_show)
    prm = project_sub.add_parser('rm', help='Delete a project and everything under it')
    prm.add_argument('project_id', type=int)
    prm.set_defaults(func=_project_rm)

    milestone = subparsers.add_parser('milestone', help='Manage milestones')
    milestone_sub = milestone.add_subparsers(dest='milestone_cmd', required=True)
    madd = milestone_sub.add_parser('add', help='Add a milestone to a project')
    madd.add_argument('project_id', type=int)
    madd.add_argument('title')
    madd.add_argument('--status', choices=statuses, default=ProjectStatus.SCHEDULED.value)
    madd.add_argument('--deadline', default=None)
    madd.add_argument('--budget', type=float, default=0)
    madd.set_defaults(func=_milestone_add)
    mrm = milestone_sub.add_parser('rm', help='Delete a milestone and its issues')
    mrm.add_argument('milestone_id', type=int)
    mrm.set_defaults(func=_milestone_rm)

    issue = subparsers.add_parser('issue', help='Manage issues')
    issue_sub = issue.add_subparsers(dest='issue_cmd', required=True)
    iadd = issue_sub.add_parser('add', help='Add an issue to a milestone')
    iadd.add_argument('milestone_id', type=int)
    iadd.add_argument('title')
    iadd.add_argument('--label', choices=list(ISSUE_LABELS), default=ISSUE_LABELS[0])
    iadd.add_argument('--due', default=None)
    iadd.add_argument('--description', default='')
    iadd.set_defaults(func=_issue_add)
    for name, func, help_text in (
        ('close', _issue_close, 'Close an issue'),
        ('reopen', _issue_reopen, 'Reopen an issue'),
        ('rm', _issue_rm, 'Delete an issue'),
    ):
        cmd = issue_sub.add_parser(name, help=help_text)
        cmd.add_argument('issue_id', type=int)
        cmd.set_defaults(func=func)

    export = subparsers.add_parser('export', help='Export the workspace to JSON')
    export.add_argument('path')
    export.set_defaults(func=_export)
    imp = subparsers.add_parser('import', help='Replace the workspace with a JSON export')
    imp.add_argument('path')
    imp.set_defaults(func=_import)

    return parser


async def _dispatch(handler: Handler, args: argparse.Namespace) -> int:
    workspace = await Workspace.open(_resolve_project_dir(args.project_dir))
    try:
        return int(await handler(args, workspace) or 0)
    except (KeyError, ValueError) as exc:
        message = exc.args[0] if isinstance(exc, KeyError) and exc.args else exc
        prefix = 'Not found' if isinstance(exc, KeyError) else 'Invalid'
        sys.stderr.write(f"{prefix}: {message}\n")
        return 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    level = args.log_level
    if level is None:
        config, _ = load_config(_resolve_project_dir(args.project_dir))
        level = get_logging_config(config)['level']
    configure_logging(level)
    return asyncio.run(_dispatch(handler, args))


if __name__ == '__main__':
    raise SystemExit(main())
