"""
Relevance Agent
相关性评分：判断抓取内容是否为菜谱，以及与查询的相关程度。
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from config import get_recipe_settings
from core.cancellation import CancellationToken, check_cancelled
from core.contracts import Recipe, RecipeRanking, RelevancyResult
from intelligence.oracle import ReasoningOracle
from intelligence.prompts import RANK_RECIPE_FUNCTION, RANK_RECIPE_SYSTEM_PROMPT, build_rank_recipe_prompt
from utils.exceptions import LLMError


logger = logging.getLogger(__name__)


class RelevanceAgent:
    """Scores recipes against a query. A score of 0 means the page is not a recipe."""

    def __init__(
        self,
        *,
        oracle: Optional[ReasoningOracle] = None,
        max_parallel_tasks: Optional[int] = None,
        recipes_to_return: Optional[int] = None,
    ):
        settings = get_recipe_settings()
        self.oracle = oracle or ReasoningOracle()
        self.max_parallel_tasks = max(1, int(max_parallel_tasks or settings.max_parallel_tasks))
        self.recipes_to_return = max(1, int(recipes_to_return or settings.recipes_to_return_per_retrieval))

    async def rank(self, recipe: Recipe, query: str) -> RelevancyResult:
        """Rank one recipe and record the verdict on it."""
        ranking = await self.oracle.submit(
            RANK_RECIPE_SYSTEM_PROMPT,
            build_rank_recipe_prompt(recipe, query),
            RANK_RECIPE_FUNCTION,
            RecipeRanking,
        )
        recipe.record_relevancy(
            RelevancyResult(query=query, score=ranking.score, reasoning=ranking.reasoning)
        )
        return recipe.relevancy_for(query)

    async def rank_many(
        self,
        recipes: List[Recipe],
        query: str,
        acceptable_score: int,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Recipe]:
        """
        Rank recipes with bounded parallelism.

        Only recipes without a verdict for this query are sent to the oracle,
        so a recipe already scored at or above ``acceptable_score`` is never
        re-ranked. Ranking stops early once enough acceptable recipes are
        known; recipes not reached keep whatever verdict they had.
        """
        acceptable = sum(1 for recipe in recipes if self.is_acceptable(recipe, query, acceptable_score))
        pending = [recipe for recipe in recipes if recipe.relevancy_for(query) is None]
        if not pending or acceptable >= self.recipes_to_return:
            return recipes

        semaphore = asyncio.Semaphore(self.max_parallel_tasks)

        async def _rank(recipe: Recipe) -> None:
            nonlocal acceptable
            async with semaphore:
                if acceptable >= self.recipes_to_return:
                    return
                check_cancelled(cancel_token)
                try:
                    result = await self.rank(recipe, query)
                except LLMError as e:
                    logger.warning(f"[Relevance] Could not rank '{recipe.title}' for '{query}': {e}")
                    return
                if result is not None and result.score >= acceptable_score:
                    acceptable += 1

        await asyncio.gather(*[_rank(recipe) for recipe in pending])
        logger.info(
            f"[Relevance] '{query}': {acceptable} acceptable of {len(recipes)} "
            f"(threshold {acceptable_score})"
        )
        return recipes

    @staticmethod
    def is_acceptable(recipe: Recipe, query: str, acceptable_score: int) -> bool:
        result = recipe.relevancy_for(query)
        return result is not None and result.score >= acceptable_score
