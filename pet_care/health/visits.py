"""兽医就诊存储（本地 JSON）。"""
import asyncio
import json
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError as ModelValidationError

from pet_care.config import HEALTH_DATA_DIR, ensure_dirs
from pet_care.errors import RepositoryError, require_id
from pet_care.health.models import VetVisit


class VisitStore:
    """就诊记录：按用户读取，按时间排序。"""
    _filename = "visits.json"

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = data_dir or HEALTH_DATA_DIR
        if data_dir is None:
            ensure_dirs()
        else:
            self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self) -> Path:
        return self.data_dir / self._filename

    def _load(self) -> List[VetVisit]:
        if not self._path().exists():
            return []
        try:
            with open(self._path(), "r", encoding="utf-8") as f:
                data = json.load(f)
            return [VetVisit.model_validate(item) for item in data.get("visits", [])]
        except (OSError, ValueError, ModelValidationError) as e:
            raise RepositoryError(f"cannot read {self._path()}: {e}") from e

    def save(self, visit: VetVisit) -> None:
        """保存就诊记录（同 ID 覆盖）。"""
        require_id(visit.id, "visit_id")
        visits = [v for v in self._load() if v.id != visit.id]
        visits.append(visit)
        try:
            with open(self._path(), "w", encoding="utf-8") as f:
                json.dump({"visits": [v.model_dump(mode="json") for v in visits]}, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise RepositoryError(f"cannot write {self._path()}: {e}") from e

    def list_for_user(self, user_id: str) -> List[VetVisit]:
        user_id = require_id(user_id, "user_id")
        return sorted((v for v in self._load() if v.user_id == user_id), key=lambda v: v.date)

    async def list_visits(self, user_id: str) -> List[VetVisit]:
        return await asyncio.to_thread(self.list_for_user, user_id)
