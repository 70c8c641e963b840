"""
Recipe File Store
菜谱持久化 - 每个索引标题一个 JSON 文件
"""
import asyncio
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.contracts import Recipe
from utils.exceptions import StorageError
from utils.logger import get_storage_logger


logger = get_storage_logger()

_UNSAFE_CHARS = re.compile(r"[^\w\- ]+", re.UNICODE)


def sanitize_file_name(title: str) -> str:
    """索引标题 -> 安全文件名 (不含扩展名)"""
    name = _UNSAFE_CHARS.sub("_", str(title or "")).strip(" _")
    return name[:120] or "untitled"


def write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class RecipeFileStore:
    """
    菜谱文件存储

    Each index title maps to ``<directory>/<sanitized title>.json`` holding a
    JSON array of recipe records. Writes go through a temp file and
    ``os.replace`` and are serialized per file.
    """

    def __init__(self, directory: Optional[str] = None):
        """
        初始化文件存储

        Args:
            directory: 存储目录 (默认使用 RECIPE_OUTPUT_DIRECTORY)
        """
        if directory is None:
            from config import get_recipe_settings
            directory = get_recipe_settings().output_directory
        self.directory = Path(directory)
        self._locks: Dict[str, asyncio.Lock] = {}

    def path_for(self, index_title: str) -> Path:
        return self.directory / f"{sanitize_file_name(index_title)}.json"

    def _lock_for(self, path: Path) -> asyncio.Lock:
        key = str(path)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @staticmethod
    def _read_records(path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}", {"path": str(path)}) from e
        if not isinstance(data, list):
            raise StorageError(f"Expected a JSON array in {path}", {"path": str(path)})
        return [item for item in data if isinstance(item, dict)]

    async def load_all(self) -> List[Dict[str, Any]]:
        """
        读取所有菜谱记录 (原始字典)

        Unreadable files are logged and skipped.
        """
        if not self.directory.exists():
            return []

        records: List[Dict[str, Any]] = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                records.extend(await asyncio.to_thread(self._read_records, path))
            except StorageError as e:
                logger.warning(f"[RecipeStore] Skipping {path.name}: {e}")
        logger.info(f"[RecipeStore] Loaded {len(records)} records from {self.directory}")
        return records

    async def read_group(self, index_title: str) -> List[Dict[str, Any]]:
        path = self.path_for(index_title)
        async with self._lock_for(path):
            return await asyncio.to_thread(self._read_records, path)

    async def write_group(self, index_title: str, recipes: List[Recipe]) -> Path:
        """
        写入一个索引标题下的菜谱

        Records already on disk with another fingerprint are kept; records
        with the same fingerprint are replaced by the incoming copy.
        """
        path = self.path_for(index_title)
        async with self._lock_for(path):
            try:
                existing = await asyncio.to_thread(self._read_records, path)
            except StorageError as e:
                logger.warning(f"[RecipeStore] Overwriting unreadable {path.name}: {e}")
                existing = []

            incoming_ids = {recipe.id for recipe in recipes if recipe.id}
            kept = [item for item in existing if item.get("id") not in incoming_ids]
            payload = kept + [recipe.to_json_dict() for recipe in recipes]

            try:
                await asyncio.to_thread(write_json_atomic, path, payload)
            except OSError as e:
                raise StorageError(f"Failed to write {path}: {e}", {"path": str(path)}) from e

        logger.debug(f"[RecipeStore] Wrote {len(payload)} recipes to {path.name}")
        return path
