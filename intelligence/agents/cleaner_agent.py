"""
Cleaner Agent
数据清洗：统一单位、拆分配料与步骤、去除网页噪声。
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from config import get_recipe_settings
from core.cancellation import CancellationToken, check_cancelled
from core.contracts import Recipe, RecipeContent
from intelligence.oracle import ReasoningOracle
from intelligence.prompts import CLEAN_RECIPE_FUNCTION, CLEAN_RECIPE_SYSTEM_PROMPT, build_clean_recipe_prompt
from utils.exceptions import ContentPolicyError, SchemaValidationError


logger = logging.getLogger(__name__)


class CleanerAgent:
    """Normalizes scraped recipe text without changing the recipe itself."""

    def __init__(self, *, oracle: Optional[ReasoningOracle] = None, max_parallel_tasks: Optional[int] = None):
        self.oracle = oracle or ReasoningOracle()
        self.max_parallel_tasks = max(1, int(max_parallel_tasks or get_recipe_settings().max_parallel_tasks))

    async def clean(self, recipe: Recipe) -> Recipe:
        if recipe.cleaned:
            return recipe

        try:
            content = await self.oracle.submit(
                CLEAN_RECIPE_SYSTEM_PROMPT,
                build_clean_recipe_prompt(recipe),
                CLEAN_RECIPE_FUNCTION,
                RecipeContent,
            )
        except (ContentPolicyError, SchemaValidationError) as e:
            logger.warning(f"[Cleaner] Keeping '{recipe.title}' uncleaned: {e}")
            return recipe

        cleaned = recipe.model_copy(deep=True)
        for name in RecipeContent.model_fields:
            value = getattr(content, name)
            if not value:
                continue
            setattr(cleaned, name, value)
        cleaned.mark_cleaned()
        return cleaned

    async def clean_many(
        self,
        recipes: List[Recipe],
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Recipe]:
        """Clean recipes with bounded parallelism, keeping input order."""
        semaphore = asyncio.Semaphore(self.max_parallel_tasks)

        async def _clean(recipe: Recipe) -> Recipe:
            if recipe.cleaned:
                return recipe
            async with semaphore:
                check_cancelled(cancel_token)
                return await self.clean(recipe)

        return list(await asyncio.gather(*[_clean(recipe) for recipe in recipes]))
