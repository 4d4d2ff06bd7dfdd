"""完成状态：一次性提醒用 completed，重复提醒用 completed_dates 里的发生键。"""
from datetime import date
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from pet_care.health.models import Reminder
from pet_care.health.recurrence import DayLike, to_day


class CompletionMutation(BaseModel):
    """切换完成状态后要持久化的变更；本身不做任何 I/O。"""
    reminder_id: str = Field(..., description="提醒 ID（不含实例后缀）")
    key: str = Field(..., description="发生键 YYYY-MM-DD[-HH:MM]")
    completed: bool = Field(..., description="切换后的状态")
    patch: Dict[str, Any] = Field(..., description="交给 patch_reminder 的部分字段")

    def apply(self, reminder: Reminder) -> Reminder:
        """返回应用变更后的提醒副本。"""
        return reminder.model_copy(update=self.patch)


def occurrence_key(day: date, instance_key: str = "") -> str:
    """一次发生的唯一键：日期加实例后缀。"""
    return to_day(day).strftime("%Y-%m-%d") + instance_key


def is_completed(reminder: Reminder, day: DayLike, instance_key: str = "") -> bool:
    if not reminder.is_recurring:
        return reminder.completed
    return occurrence_key(to_day(day), instance_key) in reminder.completed_dates


def _set_key(dates: List[str], key: str, done: bool) -> List[str]:
    if done:
        return dates if key in dates else [*dates, key]
    return [d for d in dates if d != key]


def _mutation(reminder: Reminder, key: str, done: bool) -> CompletionMutation:
    if not reminder.is_recurring:
        patch = {"completed": done}
    else:
        patch = {"completed_dates": _set_key(list(reminder.completed_dates), key, done)}
    return CompletionMutation(reminder_id=reminder.id, key=key, completed=done, patch=patch)


def toggle_completion(reminder: Reminder, day: DayLike, instance_key: str = "") -> CompletionMutation:
    """翻转某次发生的完成状态，返回要持久化的变更。"""
    key = occurrence_key(to_day(day), instance_key)
    return _mutation(reminder, key, not is_completed(reminder, day, instance_key))


def revert_completion(reminder: Reminder, mutation: CompletionMutation) -> CompletionMutation:
    """基于提醒当前状态撤销一次变更：只动这一个键，同一提醒其他时段的切换不受影响。"""
    return _mutation(reminder, mutation.key, not mutation.completed)
