"""今日日程与日历。"""
from pet_care.agenda.builder import DailyAgenda, build_agenda
from pet_care.agenda.calendar import build_calendar, marked_dates
from pet_care.agenda.models import AgendaItem, AgendaItemKind

__all__ = [
    "AgendaItem",
    "AgendaItemKind",
    "DailyAgenda",
    "build_agenda",
    "build_calendar",
    "marked_dates",
]
