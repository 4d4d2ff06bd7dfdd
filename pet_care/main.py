"""命令行入口：查看今日日程、日历标记，或按当前偏好重排全部闹钟。"""
import argparse
import asyncio
import sys
from datetime import date, datetime, timedelta
from typing import List, Optional

from pet_care import __version__
from pet_care.agenda import AgendaItemKind, DailyAgenda, build_calendar, marked_dates
from pet_care.config import ensure_dirs
from pet_care.errors import PetCareError
from pet_care.health import ReminderStore, VisitStore
from pet_care.logger import setup_logging
from pet_care.notifications import APSchedulerBackend, NotificationEngine, PreferencesStore
from pet_care.pets import PetStore


def _parse_day(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def cmd_today(args) -> int:
    agenda = DailyAgenda(ReminderStore(), VisitStore(), PetStore(), args.user)
    items = asyncio.run(agenda.refresh(args.date))
    if agenda.last_error:
        print(agenda.last_error, file=sys.stderr)
        return 1
    for item in items:
        mark = "x" if item.completed else " "
        who = f" ({item.subtitle})" if item.subtitle else ""
        prefix = f"[{mark}]" if item.kind == AgendaItemKind.REMINDER else " * "
        print(f"{item.time_label} {prefix} {item.title}{who}")
    if not items:
        print("Nothing planned.")
    return 0


def cmd_calendar(args) -> int:
    reminders = ReminderStore().list_for_user(args.user)
    visits = VisitStore().list_for_user(args.user)
    pets = PetStore().list_by_owner(args.user)
    end = args.end or args.start + timedelta(days=30)
    calendar = build_calendar(reminders, visits, pets, args.start, end)
    dots = marked_dates(calendar)
    for key, items in calendar.items():
        print(f"{key}  {len(items):>2} item(s)  {' '.join(dots[key])}")
    return 0


def cmd_alarms(args) -> int:
    store = ReminderStore()
    prefs = PreferencesStore(args.user).get()
    engine = NotificationEngine(APSchedulerBackend())
    engine.attach()

    def active():
        today = datetime.now().date()
        return [
            r for r in store.list_for_user(args.user)
            if r.end_date is None or r.end_date >= today
        ]

    engine.refresh_all(active, prefs)
    for alarm in engine.backend.list_scheduled():
        when = alarm.fire_at.strftime("%Y-%m-%d %H:%M") if alarm.fire_at else (
            f"every {alarm.repeat.hour:02d}:{alarm.repeat.minute:02d}"
        )
        print(f"{when}  [{alarm.channel.value}] {alarm.content.title}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pet-care", description="Pet care reminders")
    parser.add_argument("--version", action="version", version=__version__)
    sub = parser.add_subparsers(dest="command", required=True)

    today = sub.add_parser("today", help="show the agenda for one day")
    today.add_argument("--user", required=True)
    today.add_argument("--date", type=_parse_day, default=None)
    today.set_defaults(func=cmd_today)

    calendar = sub.add_parser("calendar", help="show marked dates for a range")
    calendar.add_argument("--user", required=True)
    calendar.add_argument("--start", type=_parse_day, default=date.today())
    calendar.add_argument("--end", type=_parse_day, default=None)
    calendar.set_defaults(func=cmd_calendar)

    alarms = sub.add_parser("alarms", help="re-plan every alarm and list them")
    alarms.add_argument("--user", required=True)
    alarms.set_defaults(func=cmd_alarms)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    ensure_dirs()
    setup_logging()
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except PetCareError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
