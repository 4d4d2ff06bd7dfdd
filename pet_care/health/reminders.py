"""提醒存储：本地 JSON 列表，按 user_id 区分归属。"""
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as ModelValidationError

from pet_care.config import HEALTH_DATA_DIR, ensure_dirs
from pet_care.errors import NotFoundError, PermissionDeniedError, RepositoryError, ValidationError, require_id
from pet_care.health.models import Reminder
from pet_care.logger import logger

# patch_reminder 不允许修改的字段
_READONLY_FIELDS = {"id", "user_id"}


class ReminderStore:
    """提醒的加载、保存与局部更新。"""
    _filename = "reminders.json"

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = data_dir or HEALTH_DATA_DIR
        if data_dir is None:
            ensure_dirs()
        else:
            self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self) -> Path:
        return self.data_dir / self._filename

    def _load(self) -> List[Reminder]:
        if not self._path().exists():
            return []
        try:
            with open(self._path(), "r", encoding="utf-8") as f:
                data = json.load(f)
            return [Reminder.model_validate(item) for item in data.get("reminders", [])]
        except (OSError, ValueError, ModelValidationError) as e:
            raise RepositoryError(f"cannot read {self._path()}: {e}") from e

    def _dump(self, reminders: List[Reminder]) -> None:
        data = {"reminders": [r.model_dump(mode="json") for r in reminders]}
        try:
            with open(self._path(), "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise RepositoryError(f"cannot write {self._path()}: {e}") from e

    def get(self, reminder_id: str) -> Optional[Reminder]:
        for r in self._load():
            if r.id == reminder_id:
                return r
        return None

    def save(self, reminder: Reminder) -> None:
        """保存单条提醒（同 ID 覆盖）。"""
        require_id(reminder.id, "reminder_id")
        reminders = [r for r in self._load() if r.id != reminder.id]
        reminders.append(reminder)
        self._dump(reminders)

    def delete(self, reminder_id: str) -> bool:
        reminders = self._load()
        kept = [r for r in reminders if r.id != reminder_id]
        if len(kept) == len(reminders):
            return False
        self._dump(kept)
        return True

    def list_for_user(self, user_id: str) -> List[Reminder]:
        """某用户的全部提醒，按锚点时间排序。"""
        user_id = require_id(user_id, "user_id")
        out = [r for r in self._load() if r.user_id == user_id]
        out.sort(key=lambda r: r.scheduled_at)
        return out

    def patch(self, user_id: str, reminder_id: str, partial: Dict[str, Any]) -> Reminder:
        """局部更新一条提醒并返回更新后的记录。"""
        user_id = require_id(user_id, "user_id")
        reminder_id = require_id(reminder_id, "reminder_id")
        bad = set(partial) & _READONLY_FIELDS
        if bad:
            raise ValidationError(f"cannot patch fields: {sorted(bad)}")
        reminders = self._load()
        for i, r in enumerate(reminders):
            if r.id != reminder_id:
                continue
            if r.user_id != user_id:
                raise PermissionDeniedError(f"reminder {reminder_id} does not belong to {user_id}")
            merged = {**r.model_dump(), **partial}
            try:
                updated = Reminder.model_validate(merged)
            except ModelValidationError as e:
                raise ValidationError(f"invalid patch for {reminder_id}: {e}") from e
            reminders[i] = updated
            self._dump(reminders)
            logger.debug("patched reminder %s: %s", reminder_id, sorted(partial))
            return updated
        raise NotFoundError(f"reminder {reminder_id} not found")

    async def list_reminders(self, user_id: str) -> List[Reminder]:
        return await asyncio.to_thread(self.list_for_user, user_id)

    async def patch_reminder(self, user_id: str, reminder_id: str, partial: Dict[str, Any]) -> None:
        await asyncio.to_thread(self.patch, user_id, reminder_id, partial)
