"""File store for cookbook orders and their synthesized recipes."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from config import get_order_settings
from core import CookbookOrder, SynthesizedRecipe
from storage.recipe_store import sanitize_file_name, write_json_atomic
from utils.exceptions import StorageError


logger = logging.getLogger(__name__)

ORDER_FILE_NAME = "Order.json"


class OrderFileStore:
    """Lays out one directory per order.

    ``<root>/<order_id>/Order.json``
    ``<root>/<order_id>/recipes/<name>.json``
    ``<root>/<order_id>/recipes/rejects/<n>. <name>.json``
    """

    def __init__(self, directory: Optional[str] = None) -> None:
        self.directory = Path(directory or get_order_settings().output_directory)
        self._lock = asyncio.Lock()

    def order_dir(self, order_id: str) -> Path:
        return self.directory / sanitize_file_name(order_id)

    async def _write(self, path: Path, payload) -> Path:
        try:
            await asyncio.to_thread(write_json_atomic, path, payload)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}", {"path": str(path)}) from e
        return path

    async def save_order(self, order: CookbookOrder) -> Path:
        async with self._lock:
            path = await self._write(self.order_dir(order.order_id) / ORDER_FILE_NAME, order.to_json_dict())
        logger.debug(f"[OrderStore] Saved order {order.order_id}")
        return path

    async def save_recipe(
        self,
        order_id: str,
        recipe_name: str,
        recipe: SynthesizedRecipe,
        rejects: Optional[List[SynthesizedRecipe]] = None,
    ) -> Path:
        recipes_dir = self.order_dir(order_id) / "recipes"
        file_name = sanitize_file_name(recipe_name)
        path = await self._write(recipes_dir / f"{file_name}.json", recipe.to_json_dict())
        for number, reject in enumerate(rejects or [], start=1):
            await self._write(recipes_dir / "rejects" / f"{number}. {file_name}.json", reject.to_json_dict())
        logger.debug(f"[OrderStore] Saved '{recipe_name}' with {len(rejects or [])} rejects for order {order_id}")
        return path

    async def load_order(self, order_id: str) -> Optional[CookbookOrder]:
        path = self.order_dir(order_id) / ORDER_FILE_NAME
        if not path.exists():
            return None
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            return CookbookOrder.model_validate(json.loads(text))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise StorageError(f"Failed to load order {order_id}: {e}", {"path": str(path)}) from e
