"""测试公共部件：内存闹钟后端、可控的异步仓库。"""
import asyncio
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from pet_care.errors import RepositoryError, SchedulerError
from pet_care.notifications.models import AlarmContent, NotificationChannel, RepeatRule, ScheduledAlarm


class FakeBackend:
    """内存闹钟后端；可指定某些标题安排失败、某些 ID 取消失败。"""

    def __init__(self):
        self.alarms: Dict[str, ScheduledAlarm] = {}
        self.fail_titles = set()
        self.fail_cancel = set()
        self.fail_list = False
        self.on_fired = None
        self._seq = 0

    def _add(self, **kwargs) -> str:
        if kwargs["content"].title in self.fail_titles:
            raise SchedulerError(f"cannot schedule {kwargs['content'].title}")
        self._seq += 1
        alarm_id = f"alarm-{self._seq}"
        self.alarms[alarm_id] = ScheduledAlarm(identifier=alarm_id, **kwargs)
        return alarm_id

    def schedule_one_shot(self, fire_at: datetime, content: AlarmContent, channel: NotificationChannel) -> str:
        return self._add(fire_at=fire_at, content=content, channel=channel)

    def schedule_repeating(self, rule: RepeatRule, content: AlarmContent, channel: NotificationChannel) -> str:
        return self._add(repeat=rule, content=content, channel=channel)

    def cancel(self, alarm_id: str) -> None:
        if alarm_id in self.fail_cancel:
            raise SchedulerError(f"cannot cancel {alarm_id}")
        self.alarms.pop(alarm_id, None)

    def list_scheduled(self) -> List[ScheduledAlarm]:
        if self.fail_list:
            raise SchedulerError("cannot list")
        return list(self.alarms.values())

    def set_on_fired(self, callback) -> None:
        self.on_fired = callback

    def fire(self, alarm_id: str) -> ScheduledAlarm:
        """模拟一次性闹钟送达：先从待触发列表移除。"""
        alarm = self.alarms[alarm_id]
        if alarm.repeat is None:
            del self.alarms[alarm_id]
        return alarm


class FakeReminderRepo:
    def __init__(self, reminders=None):
        self.reminders = list(reminders or [])
        self.patches = []
        self.fail_list = False
        # 按调用顺序消费：None 立即成功，Exception 实例直接抛出，(Event, Exception|None) 等待后处理
        self.patch_plan = []
        self.list_gates: List[asyncio.Event] = []
        self.entered = asyncio.Event()

    async def list_reminders(self, user_id: str):
        snapshot = list(self.reminders)
        self.entered.set()
        if self.list_gates:
            await self.list_gates.pop(0).wait()
        if self.fail_list:
            raise RepositoryError("backend down")
        return snapshot

    async def patch_reminder(self, user_id: str, reminder_id: str, partial: dict) -> None:
        self.patches.append((reminder_id, partial))
        step = self.patch_plan.pop(0) if self.patch_plan else None
        self.entered.set()
        if isinstance(step, tuple):
            event, error = step
            await event.wait()
            step = error
        if step is not None:
            raise step


class FakeVisitRepo:
    def __init__(self, visits=None):
        self.visits = list(visits or [])

    async def list_visits(self, user_id: str):
        return list(self.visits)


class FakePetRepo:
    def __init__(self, pets=None):
        self.pets = list(pets or [])

    async def list_pets(self, user_id: str):
        return list(self.pets)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


def at(text: str) -> datetime:
    """'2024-01-05 09:00' -> datetime"""
    return datetime.strptime(text, "%Y-%m-%d %H:%M")


def make_alarm(alarm_id: str, data: Optional[dict] = None, fire_at: Optional[datetime] = None) -> ScheduledAlarm:
    return ScheduledAlarm(identifier=alarm_id, fire_at=fire_at, content=AlarmContent(title="t", data=data or {}))
