"""送达判定：通知即将展示时，决定是否弹出、响铃、设角标。

只依赖传入的三个参数，不读取任何其他组件的状态，由系统通知宿主在送达时调用。
"""
from datetime import datetime
from typing import Any, Dict, Optional, Union

from pet_care.health.models import ReminderType
from pet_care.notifications.models import AlarmPayload, NotificationPreferences, PresentationDecision

_SUPPRESS = PresentationDecision(show_alert=False, play_sound=False, set_badge=False)


def _payload_type(payload: Union[AlarmPayload, Dict[str, Any], None]) -> Optional[ReminderType]:
    if payload is None:
        return None
    raw = payload.reminder_type if isinstance(payload, AlarmPayload) else payload.get("reminder_type")
    try:
        return ReminderType(raw) if raw else None
    except ValueError:
        return None


def should_present(
    preferences: NotificationPreferences,
    now: datetime,
    payload: Union[AlarmPayload, Dict[str, Any], None] = None,
) -> PresentationDecision:
    if not preferences.enabled:
        return _SUPPRESS
    # 免打扰：不弹不响，但角标照设，事后能看到未读数
    if preferences.in_quiet_hours(now):
        return PresentationDecision(show_alert=False, play_sound=False, set_badge=True)
    reminder_type = _payload_type(payload)
    if reminder_type is not None and not preferences.type_preference(reminder_type).enabled:
        return _SUPPRESS
    return PresentationDecision(show_alert=True, play_sound=preferences.sound, set_badge=True)
