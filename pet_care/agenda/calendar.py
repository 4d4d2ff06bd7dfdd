"""日历视图：一段日期内每天的日程，以及按类型着色的日期标记。"""
from collections import OrderedDict
from typing import Dict, Iterable, List

from pet_care.agenda.builder import build_agenda
from pet_care.agenda.models import AgendaItem, AgendaItemKind
from pet_care.config import CALENDAR_MAX_DAYS
from pet_care.errors import ValidationError
from pet_care.health.models import Reminder, ReminderType, VetVisit
from pet_care.health.recurrence import DayLike, days_between, iter_days, to_day
from pet_care.pets.models import Pet

TYPE_COLORS = {
    ReminderType.MEDICATION: "#4F46E5",
    ReminderType.VET_APPOINTMENT: "#EF4444",
    ReminderType.VACCINE: "#10B981",
    ReminderType.ANTIPARASITIC: "#8B5CF6",
    ReminderType.HYGIENE: "#06B6D4",
    ReminderType.GROOMING: "#EC4899",
    ReminderType.FOOD: "#F59E0B",
    ReminderType.WALK: "#22C55E",
    ReminderType.TRAINING: "#F97316",
    ReminderType.OTHER: "#6B7280",
}
VISIT_COLOR = TYPE_COLORS[ReminderType.VET_APPOINTMENT]


def build_calendar(
    reminders: Iterable[Reminder],
    visits: Iterable[VetVisit],
    pets: Iterable[Pet],
    start: DayLike,
    end: DayLike,
) -> "OrderedDict[str, List[AgendaItem]]":
    """start 到 end（含）每天的日程；没有条目的日期不出现。"""
    first, last = to_day(start), to_day(end)
    span = days_between(first, last) + 1
    if span < 1:
        raise ValidationError(f"calendar range ends before it starts: {first} > {last}")
    if span > CALENDAR_MAX_DAYS:
        raise ValidationError(f"calendar range too long: {span} days (max {CALENDAR_MAX_DAYS})")

    reminders, visits, pets = list(reminders), list(visits), list(pets)
    out = OrderedDict()
    for day in iter_days(first, last):
        items = build_agenda(reminders, visits, pets, day)
        if items:
            out[day.strftime("%Y-%m-%d")] = items
    return out


def marked_dates(calendar: Dict[str, List[AgendaItem]]) -> Dict[str, List[str]]:
    """每天一组不重复的圆点颜色，顺序同条目顺序。"""
    out = {}
    for key, items in calendar.items():
        colors = []
        for item in items:
            if item.kind == AgendaItemKind.VISIT:
                color = VISIT_COLOR
            else:
                color = TYPE_COLORS.get(item.reminder.type, TYPE_COLORS[ReminderType.OTHER])
            if color not in colors:
                colors.append(color)
        out[key] = colors
    return out
