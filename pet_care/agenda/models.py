"""日程条目：把提醒的一次发生与兽医就诊统一成一种展示对象。"""
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

from pet_care.health.models import Reminder, ReminderType, VetVisit


class AgendaItemKind(str, Enum):
    REMINDER = "reminder"
    VISIT = "visit"


# 各类型图标名
REMINDER_ICONS = {
    ReminderType.MEDICATION: "pill",
    ReminderType.VET_APPOINTMENT: "hospital-building",
    ReminderType.VACCINE: "needle",
    ReminderType.ANTIPARASITIC: "bug",
    ReminderType.HYGIENE: "shower",
    ReminderType.GROOMING: "content-cut",
    ReminderType.FOOD: "food",
    ReminderType.WALK: "walk",
    ReminderType.TRAINING: "dog-side",
    ReminderType.OTHER: "bell",
}
VISIT_ICON = "medical-bag"
VISIT_DEFAULT_TITLE = "Vet visit"


class AgendaItem(BaseModel):
    """每次构建日程时新建，不持久化。"""
    id: str = Field(..., description="提醒 ID + 实例后缀，或就诊 ID")
    kind: AgendaItemKind
    day: date = Field(..., description="所属日期")
    time: datetime = Field(..., description="排序用的实际时间")
    title: str
    subtitle: Optional[str] = Field(None, description="宠物名字")
    icon: str = "bell"
    completed: Optional[bool] = Field(None, description="仅提醒条目有值")
    instance_key: str = ""
    reminder: Optional[Reminder] = None
    visit: Optional[VetVisit] = None

    @property
    def source(self) -> Union[Reminder, VetVisit, None]:
        return self.reminder if self.kind == AgendaItemKind.REMINDER else self.visit

    @property
    def time_label(self) -> str:
        return self.time.strftime("%H:%M")
