"""通知调度：把提醒转成系统闹钟，并为系统无法原生重复的频率续排下一次。

DAILY / WEEKLY / MONTHLY / ONCE 交给系统的原生重复规则；
每 2/3 天、每 8/12 小时只排最近的一次，送达时在 on_delivered 里续排，
形成一条一次性闹钟链。链一旦断掉（送达被系统吞掉等），由 reconcile 按提醒状态补排。
"""
import threading
from collections import OrderedDict
from datetime import datetime, time, timedelta
from typing import Callable, Iterable, List, Optional

from pet_care.errors import SchedulerError
from pet_care.health.models import Frequency, Reminder, ReminderType
from pet_care.health.recurrence import next_occurrence
from pet_care.logger import logger
from pet_care.notifications.backend import SchedulerBackend
from pet_care.notifications.models import (
    AlarmContent,
    AlarmPayload,
    AlarmPlan,
    NotificationChannel,
    NotificationPreferences,
    RepeatRule,
    ScheduledAlarm,
)
from pet_care.notifications.preferences import PreferencesStore

TYPE_LABELS = {
    ReminderType.MEDICATION: "Medication",
    ReminderType.VET_APPOINTMENT: "Vet appointment",
    ReminderType.VACCINE: "Vaccine",
    ReminderType.ANTIPARASITIC: "Antiparasitic",
    ReminderType.HYGIENE: "Hygiene",
    ReminderType.GROOMING: "Grooming",
    ReminderType.FOOD: "Food",
    ReminderType.WALK: "Walk",
    ReminderType.TRAINING: "Training",
    ReminderType.OTHER: "Reminder",
}

_CHANNELS = {
    ReminderType.MEDICATION: NotificationChannel.MEDICATION,
    ReminderType.ANTIPARASITIC: NotificationChannel.MEDICATION,
    ReminderType.VET_APPOINTMENT: NotificationChannel.VET,
    ReminderType.VACCINE: NotificationChannel.VACCINE,
}

# 记录已处理过的送达，防止同一闹钟重复续排
_HANDLED_LIMIT = 1024


def channel_for(reminder_type: ReminderType) -> NotificationChannel:
    return _CHANNELS.get(reminder_type, NotificationChannel.DEFAULT)


def _content(reminder: Reminder, payload: AlarmPayload) -> AlarmContent:
    return AlarmContent(
        title=reminder.title,
        body=reminder.notes or TYPE_LABELS.get(reminder.type, "Reminder"),
        data=payload.to_data(),
    )


def _step(frequency: Frequency) -> timedelta:
    if frequency.interval_hours:
        return timedelta(hours=frequency.interval_hours)
    return timedelta(days=frequency.interval_days)


def plan_alarm(reminder: Reminder, preferences: NotificationPreferences, now: datetime) -> Optional[AlarmPlan]:
    """计算应为提醒安排的闹钟；不该安排时返回 None。纯函数。"""
    if not preferences.enabled or not preferences.is_type_enabled(reminder.type):
        return None
    if reminder.end_date is not None and now.date() > reminder.end_date:
        return None
    frequency = Frequency.ONCE if reminder.frequency is None else reminder.known_frequency
    if frequency is None:
        return None
    if frequency == Frequency.ONCE and reminder.completed:
        return None

    advance = timedelta(minutes=preferences.type_preference(reminder.type).advance_minutes)
    anchor = reminder.scheduled_at.replace(second=0, microsecond=0)
    first_fire = anchor - advance
    payload = AlarmPayload(
        reminder_id=reminder.id,
        reminder_type=reminder.type.value,
        frequency=frequency.value,
        interval_hours=frequency.interval_hours,
        interval_days=frequency.interval_days,
    )
    plan = dict(reminder_id=reminder.id, content=_content(reminder, payload), channel=channel_for(reminder.type))

    if frequency == Frequency.ONCE:
        if first_fire <= now:
            return None
        return AlarmPlan(fire_at=first_fire, **plan)

    if frequency.is_natively_repeatable:
        # 原生重复也要确认之后还有一次会触发（end_date 之内）
        if next_occurrence(reminder, now + advance) is None:
            return None
        end = None
        if reminder.end_date is not None:
            end = datetime.combine(reminder.end_date, time(23, 59, 59)) - advance
        rule = RepeatRule(
            hour=first_fire.hour,
            minute=first_fire.minute,
            weekday=first_fire.weekday() if frequency == Frequency.WEEKLY else None,
            # 提前量跨过午夜时日号随之前移：1 号 00:03 提前 5 分钟落在 31 号 23:58，没有 31 号的月份不响
            day=first_fire.day if frequency == Frequency.MONTHLY else None,
            start=first_fire,
            end=end,
        )
        return AlarmPlan(repeat=rule, **plan)

    # 没有原生规则：只排最近的一次
    if first_fire > now:
        fire_at = first_fire
    else:
        fire_at = datetime.combine(now.date(), first_fire.time())
        while fire_at <= now:
            fire_at += _step(frequency)
    if reminder.end_date is not None and (fire_at + advance).date() > reminder.end_date:
        return None
    return AlarmPlan(fire_at=fire_at, **plan)


def next_fire_after_delivery(alarm: ScheduledAlarm, payload: AlarmPayload, now: datetime) -> datetime:
    """送达后的下一次：按小时的直接加间隔；按天的加天数并保持原来的钟点。"""
    base = now.replace(second=0, microsecond=0)
    if payload.interval_hours:
        return base + timedelta(hours=payload.interval_hours)
    clock = (alarm.fire_at or base).time()
    return datetime.combine((base + timedelta(days=payload.interval_days)).date(), clock)


class NotificationEngine:
    """对外部闹钟后端的所有修改都在同一把锁下进行。"""

    def __init__(self, backend: SchedulerBackend, clock: Callable[[], datetime] = datetime.now):
        self.backend = backend
        self._clock = clock
        self._lock = threading.RLock()
        self._handled: "OrderedDict[str, None]" = OrderedDict()

    def attach(self) -> None:
        """让后端在闹钟触发时回调 on_delivered。"""
        self.backend.set_on_fired(self.on_delivered)

    def schedule(
        self,
        reminder: Reminder,
        preferences: NotificationPreferences,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """为提醒安排闹钟，返回闹钟 ID；被偏好关闭或时间已过返回 None。"""
        now = now or self._clock()
        plan = plan_alarm(reminder, preferences, now)
        if plan is None:
            logger.info("not scheduling reminder %s (%s)", reminder.id, reminder.title)
            return None
        with self._lock:
            if plan.is_one_shot:
                alarm_id = self.backend.schedule_one_shot(plan.fire_at, plan.content, plan.channel)
                logger.info("scheduled reminder %s at %s -> %s", reminder.id, plan.fire_at, alarm_id)
            else:
                alarm_id = self.backend.schedule_repeating(plan.repeat, plan.content, plan.channel)
                logger.info("scheduled repeating reminder %s at %02d:%02d -> %s",
                            reminder.id, plan.repeat.hour, plan.repeat.minute, alarm_id)
        return alarm_id

    def _mark_handled(self, alarm_id: str) -> bool:
        if alarm_id in self._handled:
            return False
        self._handled[alarm_id] = None
        while len(self._handled) > _HANDLED_LIMIT:
            self._handled.popitem(last=False)
        return True

    def on_delivered(self, alarm: ScheduledAlarm, now: Optional[datetime] = None) -> Optional[str]:
        """闹钟送达：带间隔负载的续排恰好一个后继，返回后继闹钟 ID。"""
        payload = alarm.payload
        if payload is None or not payload.needs_reschedule:
            return None
        now = now or self._clock()
        with self._lock:
            if not self._mark_handled(alarm.identifier):
                logger.debug("alarm %s already handled", alarm.identifier)
                return None
            try:
                # refresh_all 可能已经重新排过，已有的待触发闹钟就是后继
                for pending in self.backend.list_scheduled():
                    p = pending.payload
                    if pending.identifier != alarm.identifier and p and p.reminder_id == payload.reminder_id:
                        logger.info("reminder %s already has pending alarm %s",
                                    payload.reminder_id, pending.identifier)
                        return pending.identifier
                next_at = next_fire_after_delivery(alarm, payload, now)
                alarm_id = self.backend.schedule_one_shot(next_at, alarm.content, alarm.channel)
            except SchedulerError:
                self._handled.pop(alarm.identifier, None)
                logger.error("rescheduling reminder %s failed; chain broken until retried",
                             payload.reminder_id, exc_info=True)
                raise
        logger.info("rescheduled reminder %s (%s) for %s -> %s",
                    payload.reminder_id, alarm.content.title, next_at, alarm_id)
        return alarm_id

    def cancel_for_reminder(self, reminder_id: str) -> int:
        """取消引用该提醒的所有闹钟，返回取消数量；单个失败只记录。"""
        cancelled = 0
        with self._lock:
            try:
                alarms = self.backend.list_scheduled()
            except SchedulerError:
                logger.error("cannot list alarms for reminder %s", reminder_id, exc_info=True)
                return 0
            for alarm in alarms:
                payload = alarm.payload
                if payload is None or payload.reminder_id != reminder_id:
                    continue
                try:
                    self.backend.cancel(alarm.identifier)
                    cancelled += 1
                except SchedulerError as e:
                    logger.warning("cannot cancel alarm %s: %s", alarm.identifier, e)
        logger.info("cancelled %d alarm(s) for reminder %s", cancelled, reminder_id)
        return cancelled

    def _cancel_ids(self, ids: Iterable[str]) -> None:
        for alarm_id in ids:
            try:
                self.backend.cancel(alarm_id)
            except SchedulerError as e:
                logger.warning("cannot cancel alarm %s: %s", alarm_id, e)

    def _list_ids(self) -> List[str]:
        try:
            return [a.identifier for a in self.backend.list_scheduled()]
        except SchedulerError:
            logger.error("cannot list scheduled alarms", exc_info=True)
            return []

    def cancel_all(self) -> int:
        """取消全部闹钟；失败的重试一次，仍残留的记录错误。返回残留数量。"""
        with self._lock:
            self._cancel_ids(self._list_ids())
            survivors = self._list_ids()
            if survivors:
                self._cancel_ids(survivors)
                survivors = self._list_ids()
            if survivors:
                logger.error("%d alarm(s) survived cancellation: %s", len(survivors), survivors)
        return len(survivors)

    def refresh_all(
        self,
        get_active_reminders: Callable[[], Iterable[Reminder]],
        preferences: NotificationPreferences,
        now: Optional[datetime] = None,
    ) -> List[str]:
        """清空全部闹钟后按当前偏好重新安排每条有效提醒。"""
        now = now or self._clock()
        scheduled = []
        with self._lock:
            self.cancel_all()
            for reminder in get_active_reminders():
                try:
                    alarm_id = self.schedule(reminder, preferences, now)
                except SchedulerError as e:
                    logger.error("cannot schedule reminder %s: %s", reminder.id, e)
                    continue
                if alarm_id:
                    scheduled.append(alarm_id)
        logger.info("refreshed alarms: %d scheduled", len(scheduled))
        return scheduled

    def reconcile(
        self,
        reminders: Iterable[Reminder],
        preferences: NotificationPreferences,
        now: Optional[datetime] = None,
    ) -> int:
        """为闹钟链已断的按间隔提醒补排下一次，返回补排数量。"""
        now = now or self._clock()
        repaired = 0
        with self._lock:
            try:
                alarms = self.backend.list_scheduled()
            except SchedulerError:
                logger.error("cannot list alarms for reconciliation", exc_info=True)
                return 0
            pending = {a.payload.reminder_id for a in alarms if a.payload}
            for reminder in reminders:
                frequency = reminder.known_frequency
                if frequency is None or frequency.is_natively_repeatable or reminder.id in pending:
                    continue
                try:
                    if self.schedule(reminder, preferences, now):
                        repaired += 1
                except SchedulerError as e:
                    logger.error("cannot repair alarm chain for %s: %s", reminder.id, e)
        if repaired:
            logger.warning("repaired %d broken alarm chain(s)", repaired)
        return repaired

    def bind_preferences(
        self,
        store: PreferencesStore,
        get_active_reminders: Callable[[], Iterable[Reminder]],
    ) -> Callable[[], None]:
        """偏好变化时重新安排全部闹钟；返回取消订阅函数。"""
        return store.subscribe(lambda prefs: self.refresh_all(get_active_reminders, prefs))
