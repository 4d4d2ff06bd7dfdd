"""本地通知：偏好、闹钟调度与送达判定。"""
from pet_care.notifications.backend import APSchedulerBackend, SchedulerBackend
from pet_care.notifications.engine import NotificationEngine, channel_for, plan_alarm
from pet_care.notifications.gate import should_present
from pet_care.notifications.models import (
    AlarmContent,
    AlarmPayload,
    AlarmPlan,
    NotificationChannel,
    NotificationPreferences,
    PresentationDecision,
    QuietHours,
    RepeatRule,
    ScheduledAlarm,
    TypePreference,
)
from pet_care.notifications.preferences import PreferencesStore

__all__ = [
    "APSchedulerBackend",
    "AlarmContent",
    "AlarmPayload",
    "AlarmPlan",
    "NotificationChannel",
    "NotificationEngine",
    "NotificationPreferences",
    "PreferencesStore",
    "PresentationDecision",
    "QuietHours",
    "RepeatRule",
    "ScheduledAlarm",
    "SchedulerBackend",
    "TypePreference",
    "channel_for",
    "plan_alarm",
    "should_present",
]
