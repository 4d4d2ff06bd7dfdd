"""提醒、就诊与单次发生的数据模型。"""
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator


def _naive_local(value: datetime) -> datetime:
    """带时区的时间换算成本地钟点并去掉时区，其余原样返回。"""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class ReminderType(str, Enum):
    """提醒类型。"""
    MEDICATION = "MEDICATION"            # 用药
    VET_APPOINTMENT = "VET_APPOINTMENT"  # 兽医预约
    VACCINE = "VACCINE"                  # 疫苗
    ANTIPARASITIC = "ANTIPARASITIC"      # 驱虫
    HYGIENE = "HYGIENE"                  # 清洁
    GROOMING = "GROOMING"                # 美容
    FOOD = "FOOD"                        # 喂食
    WALK = "WALK"                        # 遛弯
    TRAINING = "TRAINING"                # 训练
    OTHER = "OTHER"


class Frequency(str, Enum):
    """重复频率。"""
    ONCE = "ONCE"
    EVERY_8_HOURS = "EVERY_8_HOURS"
    EVERY_12_HOURS = "EVERY_12_HOURS"
    DAILY = "DAILY"
    EVERY_TWO_DAYS = "EVERY_TWO_DAYS"
    EVERY_THREE_DAYS = "EVERY_THREE_DAYS"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"

    @property
    def interval_hours(self) -> Optional[int]:
        """一天内多次的间隔小时数（8/12），其他频率为 None。"""
        return _INTERVAL_HOURS.get(self)

    @property
    def interval_days(self) -> Optional[int]:
        """隔天类频率的间隔天数（2/3），其他频率为 None。"""
        return _INTERVAL_DAYS.get(self)

    @property
    def is_sub_daily(self) -> bool:
        return self in _INTERVAL_HOURS

    @property
    def is_natively_repeatable(self) -> bool:
        """系统闹钟能否用原生重复规则表达。"""
        return self in (Frequency.ONCE, Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY)


_INTERVAL_HOURS = {Frequency.EVERY_8_HOURS: 8, Frequency.EVERY_12_HOURS: 12}
_INTERVAL_DAYS = {Frequency.EVERY_TWO_DAYS: 2, Frequency.EVERY_THREE_DAYS: 3}


class Reminder(BaseModel):
    """一条照护提醒：一次性或重复。"""
    id: str = Field(..., description="提醒 ID，跨重复保持不变")
    user_id: Optional[str] = Field(None, description="所属用户 ID")
    title: str = Field(..., description="标题")
    type: ReminderType = Field(ReminderType.OTHER, description="提醒类型")
    scheduled_at: datetime = Field(..., description="锚点：首次发生的日期与时间（本地时间）")
    # 未知频率按原样保留（旧数据迁移中），判定时视为不适用
    frequency: Optional[Union[Frequency, str]] = Field(None, description="重复频率；为空视为 ONCE")
    end_date: Optional[date] = Field(None, description="最后有效日（含当天）")
    pet_id: Optional[str] = Field(None, description="所属宠物 ID，仅用于展示")
    notes: Optional[str] = Field(None, description="备注")
    completed: bool = Field(False, description="一次性提醒的完成标记")
    completed_dates: List[str] = Field(default_factory=list, description="重复提醒已完成的发生键")
    notification_id: Optional[str] = Field(None, description="最近一次安排的闹钟 ID")

    @field_validator("frequency", mode="before")
    @classmethod
    def _lenient_frequency(cls, value):
        if value is None or value == "" or isinstance(value, Frequency):
            return value or None
        try:
            return Frequency(value)
        except ValueError:
            return str(value)

    @field_validator("scheduled_at", mode="after")
    @classmethod
    def _scheduled_local(cls, value: datetime) -> datetime:
        return _naive_local(value)

    @field_validator("end_date", mode="before")
    @classmethod
    def _end_date_as_day(cls, value):
        if isinstance(value, datetime):
            return value.date()
        return value

    @property
    def known_frequency(self) -> Optional[Frequency]:
        """可识别的频率；为空或无法识别时为 None。"""
        return self.frequency if isinstance(self.frequency, Frequency) else None

    @property
    def is_recurring(self) -> bool:
        """频率不为空且不是 ONCE 时，完成状态以 completed_dates 为准。"""
        return self.frequency is not None and self.frequency != Frequency.ONCE

    @property
    def anchor_day(self) -> date:
        return self.scheduled_at.date()


class VetVisit(BaseModel):
    """兽医就诊（只读）。"""
    id: str = Field(..., description="就诊 ID")
    pet_id: Optional[str] = Field(None, description="宠物 ID")
    user_id: Optional[str] = Field(None, description="所属用户 ID")
    date: datetime = Field(..., description="就诊时间")
    reason: str = Field("", description="就诊原因")
    diagnosis: Optional[str] = Field(None, description="诊断")
    vet_name: Optional[str] = Field(None, description="医生")
    clinic_name: Optional[str] = Field(None, description="诊所")

    @field_validator("date", mode="after")
    @classmethod
    def _date_local(cls, value: datetime) -> datetime:
        return _naive_local(value)


class Occurrence(BaseModel):
    """提醒在某一天的一次具体发生；按需计算，不持久化。"""
    reminder: Reminder
    day: date
    time: datetime
    instance_key: str = Field("", description="一天多次时的 -HH:MM 后缀")

    @property
    def key(self) -> str:
        return self.day.strftime("%Y-%m-%d") + self.instance_key
