"""CLI handler for `remind-bot reminders` subcommand.

Read-only: the running bot is the only writer of the store file.
"""

import argparse
import sys
from datetime import timezone
from pathlib import Path

from remind_bot.config import DB_FILE
from remind_bot.scheduling.reminders import InvalidSchedule, Reminder, next_fire_time, utcnow
from remind_bot.storage import InvalidTimezone, PersistenceError, Store, parse_timezone


def run_reminders_command(argv: list[str]) -> None:
    parser = argparse.ArgumentParser(prog="remind-bot reminders")
    sub = parser.add_subparsers(dest="action")

    list_p = sub.add_parser("list", help="Show stored reminders")
    list_p.add_argument("--channel", type=int, default=None, help="Only this channel")
    list_p.add_argument("--db", default=str(DB_FILE), help="Store file path")

    check_p = sub.add_parser("check", help="Validate a schedule and preview fire times")
    check_p.add_argument(
        "--cron", required=True, help='Six fields: "min hour dom month dow year"'
    )
    check_p.add_argument("--tz", default="UTC", help="IANA timezone name")
    check_p.add_argument("--count", type=int, default=5, help="Fire times to show")

    args = parser.parse_args(argv)

    if args.action == "list":
        _handle_list(args.db, args.channel)
    elif args.action == "check":
        _handle_check(args.cron, args.tz, args.count)
    else:
        parser.print_help()
        sys.exit(1)


def _handle_list(db: str, channel: int | None) -> None:
    if not Path(db).exists():
        print("no reminders")
        return
    try:
        store = Store.open(db)
    except PersistenceError as e:
        print(e)
        sys.exit(1)
    with store:
        channels = [channel] if channel is not None else store.channels()
        printed = False
        now = utcnow()
        for ch in channels:
            entry = store.get_channel_entry(ch)
            if entry is None or not len(entry.reminders):
                continue
            printed = True
            print(f"channel {ch} ({entry.tz.key})")
            for rid, r in entry.reminders.items():
                nxt = next_fire_time(r.kind, entry.tz, now)
                when = nxt.astimezone(entry.tz).strftime("%Y-%m-%d %H:%M") if nxt else "never"
                print(f"  {str(rid):6s}  {when}  {r.message}")
        if not printed:
            print("no reminders")


def _handle_check(expr: str, tz_name: str, count: int) -> None:
    try:
        tz = parse_timezone(tz_name)
        reminder = Reminder.recurring("", expr, tz)
    except (InvalidSchedule, InvalidTimezone) as e:
        print(f"invalid: {e}")
        sys.exit(1)
    print(f"schedule {reminder.kind.expr!r} in {tz.key}:")
    at = utcnow()
    for _ in range(count):
        nxt = next_fire_time(reminder.kind, tz, at)
        if nxt is None:
            break
        print(f"  {nxt.astimezone(tz):%a %Y-%m-%d %H:%M %Z}")
        at = nxt.astimezone(timezone.utc)
