"""闹钟后端：接口约定与基于 APScheduler 的实现。"""
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from pet_care.errors import SchedulerError
from pet_care.logger import logger
from pet_care.notifications.models import AlarmContent, NotificationChannel, RepeatRule, ScheduledAlarm

FiredCallback = Callable[[ScheduledAlarm], object]


class SchedulerBackend(Protocol):
    """系统闹钟：一次性或原生重复；失败时抛 SchedulerError。"""

    def schedule_one_shot(self, fire_at: datetime, content: AlarmContent, channel: NotificationChannel) -> str: ...

    def schedule_repeating(self, rule: RepeatRule, content: AlarmContent, channel: NotificationChannel) -> str: ...

    def cancel(self, alarm_id: str) -> None: ...

    def list_scheduled(self) -> List[ScheduledAlarm]: ...

    def set_on_fired(self, callback: Optional[FiredCallback]) -> None: ...


def cron_trigger(rule: RepeatRule, timezone=None) -> CronTrigger:
    """把原生重复规则转成 CronTrigger；星期 0=周一，与 APScheduler 一致。"""
    kwargs = {"hour": rule.hour, "minute": rule.minute, "second": 0}
    if rule.weekday is not None:
        kwargs["day_of_week"] = rule.weekday
    if rule.day is not None:
        kwargs["day"] = rule.day
    return CronTrigger(start_date=rule.start, end_date=rule.end, timezone=timezone, **kwargs)


class APSchedulerBackend:
    """用 APScheduler 任务模拟系统闹钟；闹钟内容与负载放在任务 kwargs 里。"""

    def __init__(
        self,
        scheduler: Optional[BaseScheduler] = None,
        on_fired: Optional[FiredCallback] = None,
    ):
        self.scheduler = scheduler or BackgroundScheduler()
        self._on_fired = on_fired

    def set_on_fired(self, callback: Optional[FiredCallback]) -> None:
        self._on_fired = callback

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def _add(self, trigger, alarm: ScheduledAlarm) -> str:
        try:
            self.scheduler.add_job(
                self._fire,
                trigger=trigger,
                kwargs={"alarm": alarm.model_dump(mode="json")},
                id=alarm.identifier,
                name=f"alarm:{alarm.content.title[:30]}",
                replace_existing=True,
            )
        except Exception as e:
            raise SchedulerError(f"cannot schedule alarm {alarm.content.title!r}: {e}") from e
        return alarm.identifier

    def schedule_one_shot(self, fire_at: datetime, content: AlarmContent, channel: NotificationChannel) -> str:
        alarm = ScheduledAlarm(identifier=uuid.uuid4().hex, fire_at=fire_at, content=content, channel=channel)
        return self._add(DateTrigger(run_date=fire_at, timezone=self.scheduler.timezone), alarm)

    def schedule_repeating(self, rule: RepeatRule, content: AlarmContent, channel: NotificationChannel) -> str:
        alarm = ScheduledAlarm(identifier=uuid.uuid4().hex, repeat=rule, content=content, channel=channel)
        return self._add(cron_trigger(rule, self.scheduler.timezone), alarm)

    def cancel(self, alarm_id: str) -> None:
        try:
            self.scheduler.remove_job(alarm_id)
        except JobLookupError:
            # 一次性闹钟触发后任务已自动移除
            logger.debug("alarm %s already gone", alarm_id)
        except Exception as e:
            raise SchedulerError(f"cannot cancel alarm {alarm_id}: {e}") from e

    def list_scheduled(self) -> List[ScheduledAlarm]:
        try:
            jobs = self.scheduler.get_jobs()
        except Exception as e:
            raise SchedulerError(f"cannot list alarms: {e}") from e
        out = []
        for job in jobs:
            data = job.kwargs.get("alarm")
            if data is not None:
                out.append(ScheduledAlarm.model_validate(data))
        return out

    def _fire(self, alarm: dict) -> None:
        scheduled = ScheduledAlarm.model_validate(alarm)
        logger.info("alarm fired: %s (%s)", scheduled.content.title, scheduled.identifier)
        if self._on_fired is not None:
            self._on_fired(scheduled)
