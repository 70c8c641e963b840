"""Cookbook order intake and fulfillment."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from config import get_order_settings
from core import (
    CancellationToken,
    CookbookOrder,
    CookbookOrderSubmission,
    OrderRecipeList,
    OrderStatus,
    Recipe,
    SkippedRecipe,
    SynthesizedRecipe,
)
from intelligence.oracle import ReasoningOracle
from intelligence.prompts import (
    GENERATE_COOKBOOK_RECIPES_FUNCTION,
    PROCESS_ORDER_SYSTEM_PROMPT,
    build_process_order_prompt,
)
from utils.exceptions import NoRecipeError, OperationCancelledError, StorageError
from utils.logger import get_order_logger

from .recipe_service import RecipeService
from .store import OrderFileStore


logger = get_order_logger()


def _source_recipes(recipe: SynthesizedRecipe, candidates: List[Recipe]) -> List[Recipe]:
    """Candidates the synthesis drew on, or every candidate when it names none."""
    inspired = set(recipe.inspired_by)
    return [r for r in candidates if r.source_url and r.source_url in inspired] or list(candidates)


def _source_images(sources: List[Recipe]) -> List[str]:
    images: List[str] = []
    for source in sources:
        if source.image_url and source.image_url not in images:
            images.append(source.image_url)
    return images


class CookbookOrderService:
    """Turns submissions into orders and fulfills them with bounded parallelism."""

    def __init__(
        self,
        *,
        oracle: Optional[ReasoningOracle] = None,
        recipe_service: Optional[RecipeService] = None,
        store: Optional[OrderFileStore] = None,
        max_parallel_tasks: Optional[int] = None,
        max_sample_recipes: Optional[int] = None,
    ) -> None:
        settings = get_order_settings()
        self._oracle = oracle
        self.recipe_service = recipe_service or RecipeService(oracle=self.oracle)
        self.store = store or OrderFileStore()
        self.max_parallel_tasks = max(1, int(max_parallel_tasks or settings.max_parallel_tasks))
        self.max_sample_recipes = max(1, int(max_sample_recipes or settings.max_sample_recipes))

    @property
    def oracle(self) -> ReasoningOracle:
        if self._oracle is None:
            self._oracle = ReasoningOracle()
        return self._oracle

    async def create_order(self, submission: CookbookOrderSubmission) -> CookbookOrder:
        """Ask the oracle for the order's recipe list and persist the new order."""
        result = await self.oracle.submit(
            PROCESS_ORDER_SYSTEM_PROMPT,
            build_process_order_prompt(submission),
            GENERATE_COOKBOOK_RECIPES_FUNCTION,
            OrderRecipeList,
        )
        order = CookbookOrder.from_submission(submission, result.recipes)
        await self.store.save_order(order)
        logger.info(f"[Order {order.order_id}] Created with {len(order.recipe_list)} recipes")
        return order

    async def get_order(self, order_id: str) -> Optional[CookbookOrder]:
        return await self.store.load_order(order_id)

    async def fulfill(
        self,
        order: CookbookOrder,
        sample_only: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CookbookOrder:
        """Synthesize every recipe on the order.

        Recipe names that cannot be fulfilled are recorded in
        ``skipped_recipes``; they never fail the order. With ``sample_only``
        the run stops once ``max_sample_recipes`` recipes are done.
        """
        limit = self.max_parallel_tasks
        if sample_only:
            limit = min(limit, self.max_sample_recipes)
        token = cancel_token.child() if cancel_token is not None else CancellationToken()
        semaphore = asyncio.Semaphore(limit)
        results: Dict[int, SynthesizedRecipe] = {}

        order.status = OrderStatus.IN_PROGRESS
        logger.info(
            f"[Order {order.order_id}] Fulfilling {len(order.recipe_list)} recipes "
            f"(parallel={limit}, sample_only={sample_only})"
        )

        async def _run(index: int, name: str) -> None:
            async with semaphore:
                if token.is_cancelled:
                    return
                try:
                    recipe, rejects = await self._process_recipe(order, name, token)
                except OperationCancelledError:
                    logger.info(f"[{name}] Stopped: {token.reason or 'cancelled'}")
                    return
                except NoRecipeError as e:
                    logger.warning(f"[{name}] Skipped, no recipes found")
                    order.skipped_recipes.append(
                        SkippedRecipe(recipe_name=name, reason=e.message, attempted_queries=e.previous_attempts)
                    )
                    return
                except Exception as e:
                    logger.error(f"[{name}] Failed: {e}")
                    order.skipped_recipes.append(SkippedRecipe(recipe_name=name, reason=str(e)))
                    return

                if sample_only and len(results) >= self.max_sample_recipes:
                    return
                results[index] = recipe
                order.rejected_recipes[name] = rejects
                if sample_only and len(results) >= self.max_sample_recipes:
                    token.cancel("sample size reached")

                try:
                    await self.store.save_recipe(order.order_id, name, recipe, rejects)
                except StorageError as e:
                    logger.error(f"[{name}] Could not persist recipe: {e}")

        await asyncio.gather(*[_run(index, name) for index, name in enumerate(order.recipe_list)])

        order.synthesized_recipes = [results[index] for index in sorted(results)]
        if cancel_token is not None and cancel_token.is_cancelled:
            order.status = OrderStatus.CANCELLED
        else:
            order.status = OrderStatus.COMPLETED
        order.completed_at = datetime.now(timezone.utc)
        await self.store.save_order(order)

        logger.info(
            f"[Order {order.order_id}] {order.status.value}: {len(order.synthesized_recipes)} synthesized, "
            f"{len(order.skipped_recipes)} skipped"
        )
        return order

    async def _process_recipe(
        self,
        order: CookbookOrder,
        name: str,
        token: CancellationToken,
    ) -> Tuple[SynthesizedRecipe, List[SynthesizedRecipe]]:
        candidates = await self.recipe_service.get_recipes(name, order, token)
        outcome = await self.recipe_service.synthesize_recipe(candidates, order, name, token)
        recipe = outcome.recipe
        recipe.source_recipes = _source_recipes(recipe, candidates)
        recipe.image_urls = _source_images(recipe.source_recipes)
        return recipe, outcome.rejected_drafts
