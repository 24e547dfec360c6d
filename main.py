"""Taskwise console: manage tasks and browse their occurrences."""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, timedelta
from typing import List, Optional

from core.errors import StorageError
from core.log import get_logger, set_verbose
from core.priorities import normalize_priority, priority_label, priority_name
from core.settings import SNOOZE
from helpers import snooze
from helpers.datetime_utils import (
    build_due_datetime,
    parse_date_strict,
    parse_time_of_day,
    parse_weekdays,
)
from models.task import RepeatRule
from services.occurrence_query import (
    VIEWS,
    apply_filters,
    group_by_day,
    join_tasks,
    occurrences_on_date,
)
from services.tags import TagService
from services.tasks import TaskService
from storage.config import load_config
from storage.db import init_db
from utils.datetime_utils import local_now


logger = get_logger("taskwise.cli")


def _cmd_init(args, tasks: TaskService) -> int:
    print("Database ready.")
    return 0


def _cmd_add(args, tasks: TaskService) -> int:
    if args.repeat:
        start = parse_date_strict(args.start) or date.today()
        end = parse_date_strict(args.end) or start + timedelta(days=90)
        rule = RepeatRule.weekly(
            parse_weekdays(args.repeat),
            start,
            end,
            time_of_day=parse_time_of_day(args.time),
        )
        task = tasks.create(
            args.title,
            schedule_type="repeating",
            repeat_rule=rule,
            all_day=args.time is None,
            priority=args.priority,
            notes=args.notes or "",
        )
    else:
        due = build_due_datetime(args.date, args.time)
        task = tasks.create(
            args.title,
            schedule_type="one-time",
            due_at=due,
            all_day=args.time is None,
            priority=args.priority,
            notes=args.notes or "",
        )
    print(task.id)
    return 0


def _cmd_agenda(args, tasks: TaskService) -> int:
    day = parse_date_strict(args.date) or date.today()
    snapshot_tasks, snapshot_occurrences = tasks.load_snapshot(day, day)
    pairs = occurrences_on_date(snapshot_occurrences, snapshot_tasks, day)
    print(day.strftime("%A, %d %B %Y"))
    if not pairs:
        print("  nothing scheduled")
    for pair in pairs:
        marker = {"completed": "x", "skipped": "-"}.get(pair.occurrence.state, " ")
        when = "all day" if pair.task.all_day else pair.at.strftime("%H:%M")
        print(
            f"  [{marker}] {when:>7}  {pair.task.title}"
            f"  ({priority_label(pair.task.priority)})  {pair.occurrence.id}"
        )
    return 0


def _cmd_done(args, tasks: TaskService) -> int:
    occ = tasks.occurrences.toggle_complete(args.occurrence_id)
    if occ is None:
        print(f"No occurrence {args.occurrence_id}", file=sys.stderr)
        return 1
    print(f"{occ.id}: {occ.state}")
    return 0


def _cmd_snooze(args, tasks: TaskService) -> int:
    if args.preset:
        occ = tasks.occurrences.snooze(args.occurrence_id, until=snooze.PRESETS[args.preset](local_now()))
    else:
        delay = args.minutes or load_config().default_snooze_minutes or SNOOZE.default_minutes
        occ = tasks.occurrences.snooze(args.occurrence_id, minutes=delay)
    if occ is None:
        print(f"No occurrence {args.occurrence_id}", file=sys.stderr)
        return 1
    print(f"{occ.id}: snoozed until {occ.snoozed_until:%Y-%m-%d %H:%M}")
    return 0


def _cmd_list(args, tasks: TaskService) -> int:
    start, end = tasks.occurrences.default_window()
    snapshot_tasks, snapshot_occurrences = tasks.load_snapshot(start, end)
    tags_by_task = TagService(tasks.session_factory).tag_ids_by_task() if args.tag else {}
    pairs = apply_filters(
        join_tasks(snapshot_occurrences, snapshot_tasks),
        view=args.view,
        priorities={normalize_priority(p) for p in args.priority or ()},
        tag_ids=set(args.tag or ()),
        tags_by_task=tags_by_task,
        query=args.search or "",
        now=local_now(),
    )
    for day, items in group_by_day(pairs).items():
        print(day.isoformat())
        for pair in items:
            when = "all day" if pair.task.all_day else pair.at.strftime("%H:%M")
            print(
                f"  {when:>7}  {pair.task.title}  [{priority_name(pair.task.priority)}]"
                f"  {pair.occurrence.id}"
            )
    if not pairs:
        print("nothing to show")
    return 0


def _cmd_refresh(args, tasks: TaskService) -> int:
    count = tasks.refresh_occurrences()
    print(f"Refreshed {count} tasks.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskwise", description=__doc__ or "")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the local database").set_defaults(handler=_cmd_init)

    add = sub.add_parser("add", help="Create a task")
    add.add_argument("title")
    add.add_argument("--date", help="Due date (YYYY-MM-DD, DD.MM.YYYY, today, tomorrow)")
    add.add_argument("--time", help="Time of day (HH:MM); omit for an all-day task")
    add.add_argument("--repeat", help="Weekdays for a weekly task, e.g. mon,wed or weekdays")
    add.add_argument("--start", help="First day of a weekly task (default: today)")
    add.add_argument("--end", help="Last day of a weekly task (default: start + 90 days)")
    add.add_argument("--priority", default="none", help="none, low, medium or high")
    add.add_argument("--notes")
    add.set_defaults(handler=_cmd_add)

    agenda = sub.add_parser("agenda", help="List occurrences for a day")
    agenda.add_argument("--date", help="Day to show (default: today)")
    agenda.set_defaults(handler=_cmd_agenda)

    done = sub.add_parser("done", help="Toggle completion of an occurrence")
    done.add_argument("occurrence_id")
    done.set_defaults(handler=_cmd_done)

    snooze_cmd = sub.add_parser("snooze", help="Defer an occurrence")
    snooze_cmd.add_argument("occurrence_id")
    snooze_cmd.add_argument("--minutes", type=int, help="Delay in minutes (default from config)")
    snooze_cmd.add_argument("--preset", choices=sorted(snooze.PRESETS))
    snooze_cmd.set_defaults(handler=_cmd_snooze)

    list_cmd = sub.add_parser("list", help="List occurrences in the current window")
    list_cmd.add_argument("--view", choices=VIEWS, default="all")
    list_cmd.add_argument("--priority", action="append", help="none, low, medium or high; repeatable")
    list_cmd.add_argument("--tag", action="append", help="Tag id; repeatable")
    list_cmd.add_argument("--search")
    list_cmd.set_defaults(handler=_cmd_list)

    sub.add_parser("refresh", help="Regenerate occurrences for all tasks").set_defaults(
        handler=_cmd_refresh
    )
    return parser


def main(argv: Optional[List[str]] = None, *, tasks: Optional[TaskService] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s [%(levelname)s] %(message)s")
        set_verbose()

    if tasks is None:
        init_db()
        tasks = TaskService()
    try:
        return args.handler(args, tasks)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except StorageError as exc:
        logger.exception("Command %s failed", args.command)
        print(f"storage error: {exc}", file=sys.stderr)
        return 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    cli()
