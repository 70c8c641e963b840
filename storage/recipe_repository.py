"""
Recipe Repository
菜谱仓库 - 内存索引 + 文件持久化
"""
import asyncio
from typing import Dict, List, Optional

from pydantic import ValidationError

from core.contracts import Recipe
from intelligence.agents import RecipeIndexer, strip_boilerplate
from scrapers.recipe_scraper import generate_url_fingerprint
from utils.logger import get_storage_logger

from .recipe_store import RecipeFileStore


logger = get_storage_logger()


def _match_score(recipe: Recipe, query: str) -> float:
    """检索相关度: 标题精确 > 标题包含 > 别名精确 > 别名包含 > 其他"""
    title = recipe.title.casefold()
    if title == query:
        return 1.0
    if query in title:
        return 0.8
    aliases = [alias.casefold() for alias in [*recipe.aliases, recipe.index_title or ""] if alias]
    if query in aliases:
        return 0.6
    if any(query in alias for alias in aliases):
        return 0.4
    return 0.2


def _without_boilerplate(recipe: Recipe) -> Recipe:
    recipe.title = strip_boilerplate(recipe.title) or recipe.title
    aliases, recipe.aliases = recipe.aliases, []
    recipe.add_aliases([strip_boilerplate(alias) for alias in aliases])
    return recipe


class RecipeRepository:
    """
    菜谱仓库

    Recipes are identified by source-URL fingerprint. The index maps every
    casefolded title and alias to the recipes answering to it. Recipes are
    only ever added or updated, never removed.
    """

    def __init__(
        self,
        store: Optional[RecipeFileStore] = None,
        indexer: Optional[RecipeIndexer] = None,
    ):
        """
        初始化仓库

        Args:
            store: 文件存储 (默认使用 RECIPE_OUTPUT_DIRECTORY)
            indexer: 索引命名 Agent (首次 merge 时创建)
        """
        self.store = store or RecipeFileStore()
        self._indexer = indexer
        self._recipes: Dict[str, Recipe] = {}
        self._index: Dict[str, Dict[str, Recipe]] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._init_task: Optional[asyncio.Task] = None

    @property
    def indexer(self) -> RecipeIndexer:
        if self._indexer is None:
            self._indexer = RecipeIndexer()
        return self._indexer

    @property
    def size(self) -> int:
        return len(self._recipes)

    async def initialize(self) -> None:
        """加载持久化菜谱 (幂等, 并发调用共享同一次加载)"""
        if self._initialized:
            return
        async with self._init_lock:
            if self._init_task is None:
                self._init_task = asyncio.ensure_future(self._load())
            task = self._init_task
        try:
            await asyncio.shield(task)
        except BaseException:
            # a cancelled caller leaves the shared load running for the others
            if task.done() and (task.cancelled() or task.exception() is not None):
                if self._init_task is task:
                    self._init_task = None
            raise

    async def _load(self) -> None:
        records = await self.store.load_all()
        loaded = 0
        for record in records:
            recipe_id = record.get("id")
            source_url = record.get("sourceUrl") or record.get("source_url")
            if not recipe_id and not source_url:
                logger.warning(f"[Repository] Skipping recipe without id or url: {record.get('title')!r}")
                continue
            if not recipe_id:
                record = {**record, "id": generate_url_fingerprint(source_url)}
            try:
                recipe = Recipe.model_validate(record)
            except ValidationError as e:
                logger.warning(f"[Repository] Skipping invalid recipe {record.get('id')}: {e.error_count()} errors")
                continue
            self._upsert(recipe)
            loaded += 1

        self._initialized = True
        logger.info(f"[Repository] Initialized with {len(self._recipes)} recipes ({loaded} records)")

    def contains(self, recipe_id: str) -> bool:
        return recipe_id in self._recipes

    def get(self, recipe_id: str) -> Optional[Recipe]:
        recipe = self._recipes.get(recipe_id)
        return recipe.model_copy(deep=True) if recipe else None

    async def search(self, query: str) -> List[Recipe]:
        """
        按标题/别名检索

        Returns copies ordered by match quality, stable within a tier.

        Raises:
            ValueError: 空查询
        """
        key = (query or "").strip().casefold()
        if not key:
            raise ValueError("Search query must not be empty")
        await self.initialize()

        matches: Dict[str, Recipe] = dict(self._index.get(key, {}))
        for index_key, group in self._index.items():
            if key in index_key or index_key in key:
                for recipe_id, recipe in group.items():
                    matches.setdefault(recipe_id, recipe)

        ranked = sorted(matches.values(), key=lambda recipe: _match_score(recipe, key), reverse=True)
        logger.debug(f"[Repository] Search '{query}' matched {len(ranked)} recipes")
        return [recipe.model_copy(deep=True) for recipe in ranked]

    async def merge(self, recipes: List[Recipe]) -> List[Recipe]:
        """
        合并菜谱到仓库并持久化

        Recipes without an index title are named by the indexer first. A
        recipe whose fingerprint is already known updates the stored copy in
        place.

        Returns:
            合并后的菜谱副本
        """
        await self.initialize()

        touched: Dict[str, List[str]] = {}
        merged: List[Recipe] = []
        for recipe in recipes:
            recipe = _without_boilerplate(recipe.model_copy(deep=True))
            if not recipe.id:
                if not recipe.source_url:
                    logger.warning(f"[Repository] Not merging recipe without id or url: {recipe.title!r}")
                    continue
                recipe.id = generate_url_fingerprint(recipe.source_url)

            if not recipe.index_title:
                if not self._reuse_index_title(recipe):
                    await self._assign_index(recipe)
                    # a concurrent merge may have stored this fingerprint meanwhile
                    self._reuse_index_title(recipe)

            canonical = self._upsert(recipe)
            group = touched.setdefault(canonical.index_title or canonical.title, [])
            if canonical.id not in group:
                group.append(canonical.id)
            merged.append(canonical.model_copy(deep=True))

        for index_title, recipe_ids in touched.items():
            await self.store.write_group(index_title, [self._recipes[recipe_id] for recipe_id in recipe_ids])

        logger.info(f"[Repository] Merged {len(merged)} recipes into {len(touched)} groups")
        return merged

    def _reuse_index_title(self, recipe: Recipe) -> bool:
        existing = self._recipes.get(recipe.id)
        if existing is None or not existing.index_title:
            return False
        recipe.index_title = existing.index_title
        return True

    async def _assign_index(self, recipe: Recipe) -> None:
        result = await self.indexer.index(recipe)
        recipe.index_title = result.index_title
        recipe.add_aliases(result.aliases, first=True)

    def _upsert(self, recipe: Recipe) -> Recipe:
        canonical = self._recipes.get(recipe.id)
        if canonical is None:
            canonical = recipe
            self._recipes[recipe.id] = canonical
        else:
            canonical.merge_from(recipe)

        for key in canonical.index_keys():
            self._index.setdefault(key.casefold(), {})[canonical.id] = canonical
        return canonical
