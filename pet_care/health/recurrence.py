"""重复规则：判断提醒在某天是否适用，并展开当天的具体发生时间。

所有计算只看本地日期与钟点，不涉及时区；无法识别的频率一律视为「不适用」，
保证迁移中的旧数据不会让日程崩溃。
"""
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional, Union

from pet_care.config import NEXT_OCCURRENCE_HORIZON_DAYS
from pet_care.health.models import Frequency, Occurrence, Reminder

DayLike = Union[date, datetime]

# 每 N 天重复的频率；一天多次的频率每天都适用
_EVERY_N_DAYS = {
    Frequency.EVERY_8_HOURS: 1,
    Frequency.EVERY_12_HOURS: 1,
    Frequency.DAILY: 1,
    Frequency.EVERY_TWO_DAYS: 2,
    Frequency.EVERY_THREE_DAYS: 3,
    Frequency.WEEKLY: 7,
}


def to_day(value: DayLike) -> date:
    """把 datetime 归一到当天（零点）。"""
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: date, end: date) -> int:
    """两天之间相差的自然日数（只比较日期，不受钟点与夏令时影响）。"""
    return (end - start).days


def applies_on(reminder: Reminder, target: DayLike) -> bool:
    """提醒在 target 这一天是否到期。"""
    day = to_day(target)
    anchor = reminder.anchor_day

    if reminder.end_date is not None and day > reminder.end_date:
        return False
    # 首次发生那天总是显示
    if day == anchor:
        return True
    if reminder.frequency is None or reminder.frequency == Frequency.ONCE:
        return False
    if day < anchor:
        return False

    frequency = reminder.known_frequency
    if frequency is None:
        return False
    diff_days = days_between(anchor, day)
    if frequency == Frequency.MONTHLY:
        # 按日号匹配，不对短月做截断：31 号的提醒在 30 天的月份不出现
        return day.day == anchor.day
    step = _EVERY_N_DAYS.get(frequency)
    if step is None:
        return False
    return diff_days % step == 0


def _slot_key(moment: datetime) -> str:
    return f"-{moment.hour:02d}:{moment.minute:02d}"


def occurrences_on(reminder: Reminder, target: DayLike) -> List[Occurrence]:
    """展开提醒在 target 当天的所有发生，按时间升序。

    不判断是否适用，调用方应先用 applies_on 过滤。
    """
    day = to_day(target)
    anchor = reminder.scheduled_at.replace(second=0, microsecond=0)
    frequency = reminder.known_frequency

    if frequency is None or not frequency.is_sub_daily:
        moment = datetime.combine(day, time(anchor.hour, anchor.minute))
        return [Occurrence(reminder=reminder, day=day, time=moment, instance_key="")]

    interval = frequency.interval_hours
    out = []
    for i in range(24 // interval):
        hour = (anchor.hour + i * interval) % 24
        moment = datetime.combine(day, time(hour, anchor.minute))
        # 首日不回显早于锚点的时段
        if day >= anchor.date() and moment >= anchor:
            out.append(
                Occurrence(reminder=reminder, day=day, time=moment, instance_key=_slot_key(moment))
            )
    out.sort(key=lambda o: o.time)
    return out


def iter_days(start: DayLike, end: DayLike) -> Iterator[date]:
    """从 start 到 end（含）逐日迭代。"""
    day, last = to_day(start), to_day(end)
    while day <= last:
        yield day
        day += timedelta(days=1)


def occurrences_between(reminder: Reminder, start: DayLike, end: DayLike) -> List[Occurrence]:
    """区间内（按日，含首尾）的全部发生。"""
    out = []
    for day in iter_days(start, end):
        if applies_on(reminder, day):
            out.extend(occurrences_on(reminder, day))
    return out


def next_occurrence(
    reminder: Reminder,
    after: datetime,
    horizon_days: int = NEXT_OCCURRENCE_HORIZON_DAYS,
) -> Optional[Occurrence]:
    """after 之后（严格大于）的第一次发生；在 horizon_days 内找不到返回 None。"""
    start = max(after.date(), reminder.anchor_day)
    for day in iter_days(start, start + timedelta(days=horizon_days)):
        if reminder.end_date is not None and day > reminder.end_date:
            return None
        if not applies_on(reminder, day):
            continue
        for occ in occurrences_on(reminder, day):
            if occ.time > after:
                return occ
    return None
