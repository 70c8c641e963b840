"""Recipe acquisition and synthesis for one requested recipe name."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from config import get_recipe_settings
from core import CancellationToken, CookbookOrder, Recipe, check_cancelled
from intelligence.agents import CleanerAgent, QueryRelaxationAgent, RelevanceAgent
from intelligence.graph import SynthesisGraph, SynthesisOutcome
from intelligence.oracle import ReasoningOracle
from scrapers import RecipeWebScraper
from storage import RecipeRepository
from utils.exceptions import NoRecipeError


logger = logging.getLogger(__name__)

RELAXATION_SCORE_STEP = 5


def _score(recipe: Recipe, query: str) -> int:
    result = recipe.relevancy_for(query)
    return result.score if result is not None else -1


class RecipeService:
    """Repository lookup, crawling, ranking, cleaning and query relaxation."""

    def __init__(
        self,
        *,
        oracle: Optional[ReasoningOracle] = None,
        repository: Optional[RecipeRepository] = None,
        scraper: Optional[RecipeWebScraper] = None,
        relevance_agent: Optional[RelevanceAgent] = None,
        cleaner: Optional[CleanerAgent] = None,
        query_agent: Optional[QueryRelaxationAgent] = None,
        synthesis_graph: Optional[SynthesisGraph] = None,
    ) -> None:
        self.settings = get_recipe_settings()
        self._oracle = oracle
        self.repository = repository or RecipeRepository()
        self.scraper = scraper or RecipeWebScraper(oracle=self.oracle)
        self.relevance_agent = relevance_agent or RelevanceAgent(oracle=self.oracle)
        self.cleaner = cleaner or CleanerAgent(oracle=self.oracle)
        self.query_agent = query_agent or QueryRelaxationAgent(oracle=self.oracle)
        self.synthesis_graph = synthesis_graph or SynthesisGraph(oracle=self.oracle)

    @property
    def oracle(self) -> ReasoningOracle:
        if self._oracle is None:
            self._oracle = ReasoningOracle()
        return self._oracle

    async def get_recipes_for_query(
        self,
        query: str,
        *,
        scrape: bool = True,
        acceptable_score: Optional[int] = None,
        requested_recipe_name: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Recipe]:
        """Return up to ``recipes_to_return_per_retrieval`` acceptable recipes, best first.

        Relevance is judged against ``requested_recipe_name`` when given, so
        recipes found through a broader query are still scored for the dish
        that was actually asked for.
        """
        rank_query = requested_recipe_name or query
        threshold = self.settings.acceptable_score_threshold if acceptable_score is None else acceptable_score
        limit = self.settings.recipes_to_return_per_retrieval
        label = requested_recipe_name or query

        check_cancelled(cancel_token)
        known = await self.repository.search(query)
        await self.relevance_agent.rank_many(known, rank_query, threshold, cancel_token)
        acceptable = [r for r in known if RelevanceAgent.is_acceptable(r, rank_query, threshold)]

        arrivals: List[Recipe] = []
        if len(acceptable) < limit and scrape:
            logger.info(f"[{label}] {len(acceptable)}/{limit} local recipes for '{query}', crawling")
            scraped = await self.scraper.scrape(query, cancel_token=cancel_token)
            seen: Dict[str, Recipe] = {}
            for item in scraped:
                if item.id in seen or self.repository.contains(item.id):
                    continue
                seen[item.id] = Recipe.from_scraped(item)
            arrivals = list(seen.values())
            await self.relevance_agent.rank_many(arrivals, rank_query, threshold, cancel_token)

        # score 0 means the page was not a recipe at all
        arrivals = [r for r in arrivals if _score(r, rank_query) != 0]
        candidates = [r for r in [*known, *arrivals] if _score(r, rank_query) != 0]
        candidates.sort(key=lambda r: _score(r, rank_query), reverse=True)

        selected = [r for r in candidates if _score(r, rank_query) >= threshold][:limit]
        cleaned = {r.id: r for r in await self.cleaner.clean_many(selected, cancel_token)}

        # known recipes are merged back too so their new verdicts persist
        to_merge = [cleaned.get(r.id, r) for r in [*known, *arrivals]]
        merged = {r.id: r for r in await self.repository.merge(to_merge)} if to_merge else {}

        results = [merged.get(r.id, cleaned[r.id]) for r in selected]
        logger.info(f"[{label}] {len(results)} recipes for '{query}' at score >= {threshold}")
        return results

    async def get_recipes(
        self,
        recipe_name: str,
        order: CookbookOrder,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Recipe]:
        """Find recipes for ``recipe_name``, relaxing the query until something turns up.

        Raises:
            NoRecipeError: every attempt came back empty
        """
        threshold = self.settings.acceptable_score_threshold
        attempts = [recipe_name]

        recipes = await self.get_recipes_for_query(
            recipe_name,
            acceptable_score=threshold,
            requested_recipe_name=recipe_name,
            cancel_token=cancel_token,
        )
        if recipes:
            return recipes

        relaxation = self.query_agent.start(recipe_name, order)
        for _ in range(self.query_agent.max_attempts):
            check_cancelled(cancel_token)
            threshold = max(0, threshold - RELAXATION_SCORE_STEP)

            recipes = await self._recheck_local(attempts, recipe_name, threshold, cancel_token)
            if recipes:
                return recipes

            query = await self.query_agent.next_query(relaxation)
            if not query or query.casefold() in {attempt.casefold() for attempt in attempts}:
                logger.info(f"[{recipe_name}] Relaxed query '{query}' adds nothing new, skipping")
                continue
            attempts.append(query)

            recipes = await self.get_recipes_for_query(
                query,
                acceptable_score=threshold,
                requested_recipe_name=recipe_name,
                cancel_token=cancel_token,
            )
            if recipes:
                return recipes

        logger.warning(f"[{recipe_name}] No recipes after {len(attempts)} queries: {attempts}")
        raise NoRecipeError(previous_attempts=attempts)

    async def _recheck_local(
        self,
        queries: List[str],
        recipe_name: str,
        threshold: int,
        cancel_token: Optional[CancellationToken],
    ) -> List[Recipe]:
        found: Dict[str, Recipe] = {}
        for query in queries:
            for recipe in await self.get_recipes_for_query(
                query,
                scrape=False,
                acceptable_score=threshold,
                requested_recipe_name=recipe_name,
                cancel_token=cancel_token,
            ):
                found.setdefault(recipe.id, recipe)
        ranked = sorted(found.values(), key=lambda r: _score(r, recipe_name), reverse=True)
        return ranked[: self.settings.recipes_to_return_per_retrieval]

    async def synthesize_recipe(
        self,
        recipes: List[Recipe],
        order: CookbookOrder,
        recipe_name: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SynthesisOutcome:
        return await self.synthesis_graph.run(recipe_name, recipes, order, cancel_token)
