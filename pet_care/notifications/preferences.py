"""通知偏好存储：每个用户一个 JSON 文件，修改后通知订阅者。"""
import json
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import ValidationError as ModelValidationError

from pet_care.config import SETTINGS_DIR, ensure_dirs
from pet_care.errors import RepositoryError, require_id
from pet_care.health.models import ReminderType
from pet_care.logger import logger
from pet_care.notifications.models import NotificationPreferences

Listener = Callable[[NotificationPreferences], None]


class PreferencesStore:
    """通知偏好的读取与修改。"""

    def __init__(self, user_id: str, base_dir: Optional[Path] = None):
        self.user_id = require_id(user_id, "user_id")
        self.base_dir = base_dir or SETTINGS_DIR
        if base_dir is None:
            ensure_dirs()
        else:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        self._listeners: List[Listener] = []

    def _path(self) -> Path:
        return self.base_dir / f"notifications_{self.user_id}.json"

    def get(self) -> NotificationPreferences:
        """读取偏好；从未保存过时返回默认值。"""
        path = self._path()
        if not path.exists():
            return NotificationPreferences()
        try:
            with open(path, "r", encoding="utf-8") as f:
                return NotificationPreferences.model_validate(json.load(f))
        except (OSError, ValueError, ModelValidationError) as e:
            raise RepositoryError(f"cannot read {path}: {e}") from e

    def save(self, prefs: NotificationPreferences) -> NotificationPreferences:
        try:
            with open(self._path(), "w", encoding="utf-8") as f:
                f.write(prefs.model_dump_json(indent=2))
        except OSError as e:
            raise RepositoryError(f"cannot write {self._path()}: {e}") from e
        self._notify(prefs)
        return prefs

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """订阅偏好变化，返回取消订阅函数。"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, prefs: NotificationPreferences) -> None:
        for listener in list(self._listeners):
            try:
                listener(prefs)
            except Exception:
                logger.exception("preferences listener failed")

    def reset(self) -> NotificationPreferences:
        return self.save(NotificationPreferences())

    def set_enabled(self, enabled: bool) -> NotificationPreferences:
        return self.save(self.get().model_copy(update={"enabled": enabled}))

    def set_sound(self, sound: bool) -> NotificationPreferences:
        return self.save(self.get().model_copy(update={"sound": sound}))

    def set_quiet_hours(self, **fields) -> NotificationPreferences:
        """局部修改免打扰：enabled / start_hour / start_minute / end_hour / end_minute。"""
        prefs = self.get()
        quiet = prefs.quiet_hours.model_validate({**prefs.quiet_hours.model_dump(), **fields})
        return self.save(prefs.model_copy(update={"quiet_hours": quiet}))

    def set_type_preference(
        self,
        reminder_type: ReminderType,
        enabled: Optional[bool] = None,
        advance_minutes: Optional[int] = None,
    ) -> NotificationPreferences:
        prefs = self.get()
        current = prefs.type_preference(reminder_type)
        update = {}
        if enabled is not None:
            update["enabled"] = enabled
        if advance_minutes is not None:
            update["advance_minutes"] = advance_minutes
        pref = current.model_validate({**current.model_dump(), **update})
        types = {**prefs.type_preferences, reminder_type: pref}
        return self.save(prefs.model_copy(update={"type_preferences": types}))
