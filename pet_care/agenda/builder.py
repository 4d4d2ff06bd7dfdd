"""今日日程：合并当天到期的提醒与就诊，并支持乐观切换完成状态。"""
import asyncio
from datetime import datetime, time, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from pet_care.agenda.models import (
    REMINDER_ICONS,
    VISIT_DEFAULT_TITLE,
    VISIT_ICON,
    AgendaItem,
    AgendaItemKind,
)
from pet_care.errors import RepositoryError, ValidationError, require_id
from pet_care.health.completion import CompletionMutation, is_completed, revert_completion, toggle_completion
from pet_care.health.models import Reminder, VetVisit
from pet_care.health.recurrence import DayLike, applies_on, occurrences_on, to_day
from pet_care.logger import logger
from pet_care.pets.models import Pet

LOAD_ERROR_MESSAGE = "Could not load today's tasks"
TOGGLE_ERROR_MESSAGE = "Could not update the reminder"


class ReminderRepository(Protocol):
    async def list_reminders(self, user_id: str) -> List[Reminder]: ...

    async def patch_reminder(self, user_id: str, reminder_id: str, partial: Dict[str, Any]) -> None: ...


class VisitRepository(Protocol):
    async def list_visits(self, user_id: str) -> List[VetVisit]: ...


class PetRepository(Protocol):
    async def list_pets(self, user_id: str) -> List[Pet]: ...


def _reminder_items(reminder: Reminder, day, pet_names: Dict[str, str]) -> List[AgendaItem]:
    subtitle = pet_names.get(reminder.pet_id) if reminder.pet_id else None
    icon = REMINDER_ICONS.get(reminder.type, "bell")
    return [
        AgendaItem(
            id=reminder.id + occ.instance_key,
            kind=AgendaItemKind.REMINDER,
            day=day,
            time=occ.time,
            title=reminder.title,
            subtitle=subtitle,
            icon=icon,
            completed=is_completed(reminder, day, occ.instance_key),
            instance_key=occ.instance_key,
            reminder=reminder,
        )
        for occ in occurrences_on(reminder, day)
    ]


def build_agenda(
    reminders: Iterable[Reminder],
    visits: Iterable[VetVisit],
    pets: Iterable[Pet],
    today: DayLike,
) -> List[AgendaItem]:
    """构建某天的日程，按时间升序；同一时间保持插入顺序（先提醒后就诊）。

    纯函数，可重复调用。
    """
    day = to_day(today)
    start = datetime.combine(day, time())
    end = start + timedelta(days=1)
    pet_names = {p.id: p.name for p in pets}

    items = []
    for reminder in reminders:
        if applies_on(reminder, day):
            items.extend(_reminder_items(reminder, day, pet_names))
    for visit in visits:
        if not (start <= visit.date < end):
            continue
        items.append(
            AgendaItem(
                id=visit.id,
                kind=AgendaItemKind.VISIT,
                day=day,
                time=visit.date,
                title=visit.reason or VISIT_DEFAULT_TITLE,
                subtitle=pet_names.get(visit.pet_id) if visit.pet_id else None,
                icon=VISIT_ICON,
                visit=visit,
            )
        )
    items.sort(key=lambda item: item.time)
    return items


class DailyAgenda:
    """今日视图的状态：条目按 ID 存放，刷新整体替换，切换与回滚都按 ID 定位。"""

    def __init__(
        self,
        reminders: ReminderRepository,
        visits: VisitRepository,
        pets: PetRepository,
        user_id: Optional[str],
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._reminder_repo = reminders
        self._visit_repo = visits
        self._pet_repo = pets
        self._user_id = user_id
        self._clock = clock
        self._items: Dict[str, AgendaItem] = {}
        # 每条提醒的最新已知状态；同一提醒多个时段的切换都基于它计算
        self._reminders: Dict[str, Reminder] = {}
        self._token = 0
        self.day = None
        self.loading = False
        self.last_error: Optional[str] = None

    @property
    def items(self) -> List[AgendaItem]:
        return list(self._items.values())

    def get(self, item_id: str) -> Optional[AgendaItem]:
        return self._items.get(item_id)

    async def refresh(self, today: Optional[DayLike] = None) -> List[AgendaItem]:
        """重新加载并构建日程；被更新的请求取代的旧请求结果直接丢弃。"""
        user_id = require_id(self._user_id, "user_id")
        self._token += 1
        token = self._token
        day = to_day(today or self._clock())
        self.loading = True
        try:
            reminders, visits, pets = await asyncio.gather(
                self._reminder_repo.list_reminders(user_id),
                self._visit_repo.list_visits(user_id),
                self._pet_repo.list_pets(user_id),
            )
        except RepositoryError as e:
            logger.warning("agenda load failed for %s: %s", user_id, e)
            if token == self._token:
                self.loading = False
                self.last_error = LOAD_ERROR_MESSAGE
            return self.items

        if token != self._token:
            logger.debug("discarding stale agenda build %d (latest %d)", token, self._token)
            return self.items

        items = build_agenda(reminders, visits, pets, day)
        self._items = {item.id: item for item in items}
        self._reminders = {r.id: r for r in reminders}
        self.day = day
        self.loading = False
        self.last_error = None
        return self.items

    async def toggle(self, item_id: str) -> AgendaItem:
        """切换某条提醒的完成状态：先改本地，再持久化，失败则只回滚这一条。"""
        user_id = require_id(self._user_id, "user_id")
        item = self._items.get(item_id)
        if item is None:
            raise ValidationError(f"unknown agenda item: {item_id!r}")
        if item.kind != AgendaItemKind.REMINDER:
            raise ValidationError(f"agenda item {item_id!r} is not a reminder")

        reminder_id = item.reminder.id
        current = self._reminders.get(reminder_id, item.reminder)
        mutation = toggle_completion(current, item.day, item.instance_key)
        updated = mutation.apply(current)
        self._reminders[reminder_id] = updated
        self._items[item_id] = item.model_copy(update={"completed": mutation.completed, "reminder": updated})

        try:
            await self._reminder_repo.patch_reminder(user_id, reminder_id, mutation.patch)
        except Exception as e:
            logger.warning("toggle of %s failed, rolling back: %s", item_id, e)
            self._rollback(item, mutation)
            self.last_error = TOGGLE_ERROR_MESSAGE
            raise
        return self._items.get(item_id, item)

    def _rollback(self, item: AgendaItem, mutation: CompletionMutation) -> None:
        reminder_id = item.reminder.id
        latest = self._reminders.get(reminder_id)
        if latest is not None:
            latest = revert_completion(latest, mutation).apply(latest)
            self._reminders[reminder_id] = latest
        live = self._items.get(item.id)
        # 期间刷新到了别的日期，同一 ID 已是另一次发生，不能改它
        if live is None or live.day != item.day:
            return
        reminder = latest or live.reminder
        self._items[item.id] = live.model_copy(
            update={"completed": is_completed(reminder, live.day, live.instance_key), "reminder": reminder}
        )
