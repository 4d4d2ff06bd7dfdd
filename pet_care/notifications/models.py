"""通知偏好、闹钟与展示决策的数据模型。"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as ModelValidationError

from pet_care.config import (
    CHANNEL_DEFAULT,
    CHANNEL_MEDICATION,
    CHANNEL_VACCINE,
    CHANNEL_VET,
    DEFAULT_ADVANCE_MINUTES,
    DEFAULT_QUIET_END,
    DEFAULT_QUIET_START,
    DEFAULT_VACCINE_ADVANCE_DAYS,
)
from pet_care.health.models import ReminderType


class NotificationChannel(str, Enum):
    """平台通知渠道，只影响展示方式。"""
    DEFAULT = CHANNEL_DEFAULT
    MEDICATION = CHANNEL_MEDICATION
    VET = CHANNEL_VET
    VACCINE = CHANNEL_VACCINE


class QuietHours(BaseModel):
    """免打扰时段；开始含、结束不含，可跨午夜。"""
    enabled: bool = False
    start_hour: int = Field(DEFAULT_QUIET_START[0], ge=0, le=23)
    start_minute: int = Field(DEFAULT_QUIET_START[1], ge=0, le=59)
    end_hour: int = Field(DEFAULT_QUIET_END[0], ge=0, le=23)
    end_minute: int = Field(DEFAULT_QUIET_END[1], ge=0, le=59)

    def contains(self, when: datetime) -> bool:
        if not self.enabled:
            return False
        current = when.hour * 60 + when.minute
        start = self.start_hour * 60 + self.start_minute
        end = self.end_hour * 60 + self.end_minute
        if start > end:
            return current >= start or current < end
        return start <= current < end


class TypePreference(BaseModel):
    enabled: bool = True
    advance_minutes: int = Field(0, ge=0, description="提前多少分钟提醒，0 为准点")


def _default_type_preferences() -> Dict[ReminderType, TypePreference]:
    return {
        t: TypePreference(enabled=True, advance_minutes=DEFAULT_ADVANCE_MINUTES.get(t.value, 0))
        for t in ReminderType
    }


class NotificationPreferences(BaseModel):
    """用户通知偏好；所有调度与展示判断都显式传入，不读全局状态。"""
    enabled: bool = True
    sound: bool = True
    vibration: bool = True
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    type_preferences: Dict[ReminderType, TypePreference] = Field(default_factory=_default_type_preferences)
    vaccine_advance_days: int = Field(DEFAULT_VACCINE_ADVANCE_DAYS, ge=0)

    def type_preference(self, reminder_type: ReminderType) -> TypePreference:
        pref = self.type_preferences.get(reminder_type)
        if pref is None:
            return TypePreference(advance_minutes=DEFAULT_ADVANCE_MINUTES.get(reminder_type.value, 0))
        return pref

    def is_type_enabled(self, reminder_type: ReminderType) -> bool:
        return self.enabled and self.type_preference(reminder_type).enabled

    def in_quiet_hours(self, when: datetime) -> bool:
        return self.quiet_hours.contains(when)

    def should_notify(self, reminder_type: ReminderType, when: datetime) -> bool:
        return self.is_type_enabled(reminder_type) and not self.in_quiet_hours(when)


class AlarmPayload(BaseModel):
    """随闹钟携带的数据；带 frequency 与间隔的闹钟在送达后需要续排下一次。"""
    model_config = ConfigDict(extra="allow")

    reminder_id: str
    reminder_type: Optional[str] = None
    frequency: Optional[str] = None
    interval_hours: Optional[int] = None
    interval_days: Optional[int] = None

    @property
    def needs_reschedule(self) -> bool:
        return self.frequency is not None and bool(self.interval_hours or self.interval_days)

    @classmethod
    def from_data(cls, data: Optional[Dict[str, Any]]) -> Optional["AlarmPayload"]:
        """从闹钟 data 解析；不是本模块创建的闹钟返回 None。"""
        if not data or not data.get("reminder_id"):
            return None
        try:
            return cls.model_validate(data)
        except ModelValidationError:
            return None

    def to_data(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AlarmContent(BaseModel):
    title: str
    body: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    sound: bool = True


class RepeatRule(BaseModel):
    """系统原生重复规则：每天某时刻，可限定星期（0=周一）或日号。"""
    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(..., ge=0, le=59)
    weekday: Optional[int] = Field(None, ge=0, le=6)
    day: Optional[int] = Field(None, ge=1, le=31)
    start: Optional[datetime] = Field(None, description="不早于此时刻触发")
    end: Optional[datetime] = Field(None, description="晚于此时刻不再触发")


class ScheduledAlarm(BaseModel):
    """系统里的一个待触发闹钟。"""
    identifier: str
    fire_at: Optional[datetime] = None
    repeat: Optional[RepeatRule] = None
    content: AlarmContent
    channel: NotificationChannel = NotificationChannel.DEFAULT

    @property
    def payload(self) -> Optional[AlarmPayload]:
        return AlarmPayload.from_data(self.content.data)


class AlarmPlan(BaseModel):
    """schedule 的纯计算结果：一次性 fire_at 或原生 repeat 二选一。"""
    reminder_id: str
    fire_at: Optional[datetime] = None
    repeat: Optional[RepeatRule] = None
    content: AlarmContent
    channel: NotificationChannel = NotificationChannel.DEFAULT

    @property
    def is_one_shot(self) -> bool:
        return self.repeat is None


class PresentationDecision(BaseModel):
    show_alert: bool
    play_sound: bool
    set_badge: bool
