"""宠物档案本地存储。"""
import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError as ModelValidationError

from pet_care.config import PETS_DIR, ensure_dirs
from pet_care.errors import RepositoryError, require_id
from pet_care.pets.models import Pet


class PetStore:
    """档案存储（索引文件 + 每只宠物一个 JSON）。"""
    _index_file = "index.json"

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = base_dir or PETS_DIR
        if base_dir is None:
            ensure_dirs()
        else:
            self.base_dir.mkdir(parents=True, exist_ok=True)

    def _index_path(self) -> Path:
        return self.base_dir / self._index_file

    def _pet_path(self, pet_id: str) -> Path:
        return self.base_dir / f"{pet_id}.json"

    def list_ids(self) -> List[str]:
        """列出所有宠物 ID。"""
        if not self._index_path().exists():
            return []
        try:
            with open(self._index_path(), "r", encoding="utf-8") as f:
                return json.load(f).get("ids", [])
        except (OSError, ValueError) as e:
            raise RepositoryError(f"cannot read {self._index_path()}: {e}") from e

    def load(self, pet_id: str) -> Optional[Pet]:
        """加载一只宠物档案。"""
        path = self._pet_path(require_id(pet_id, "pet_id"))
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return Pet.model_validate(json.load(f))
        except (OSError, ValueError, ModelValidationError) as e:
            raise RepositoryError(f"cannot read {path}: {e}") from e

    def save(self, pet: Pet) -> None:
        """保存宠物档案并更新索引。"""
        require_id(pet.id, "pet_id")
        now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        if not pet.created_at:
            pet.created_at = now
        pet.updated_at = now
        try:
            with open(self._pet_path(pet.id), "w", encoding="utf-8") as f:
                f.write(pet.model_dump_json(indent=2))
            ids = self.list_ids()
            if pet.id not in ids:
                ids.append(pet.id)
                with open(self._index_path(), "w", encoding="utf-8") as f:
                    json.dump({"ids": ids}, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise RepositoryError(f"cannot save pet {pet.id}: {e}") from e

    def list_by_owner(self, owner_id: str) -> List[Pet]:
        """列出某用户拥有的宠物。"""
        owner_id = require_id(owner_id, "user_id")
        out = []
        for pet_id in self.list_ids():
            pet = self.load(pet_id)
            if pet and pet.owner_id == owner_id:
                out.append(pet)
        return out

    async def list_pets(self, user_id: str) -> List[Pet]:
        return await asyncio.to_thread(self.list_by_owner, user_id)
