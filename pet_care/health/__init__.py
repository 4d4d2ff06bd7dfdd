"""提醒、就诊与重复规则。"""
from pet_care.health.completion import CompletionMutation, is_completed, occurrence_key, toggle_completion
from pet_care.health.models import Frequency, Occurrence, Reminder, ReminderType, VetVisit
from pet_care.health.recurrence import applies_on, next_occurrence, occurrences_between, occurrences_on
from pet_care.health.reminders import ReminderStore
from pet_care.health.visits import VisitStore

__all__ = [
    "CompletionMutation",
    "Frequency",
    "Occurrence",
    "Reminder",
    "ReminderStore",
    "ReminderType",
    "VetVisit",
    "VisitStore",
    "applies_on",
    "is_completed",
    "next_occurrence",
    "occurrence_key",
    "occurrences_between",
    "occurrences_on",
    "toggle_completion",
]
