"""Tests for the relevance, cleaner and query relaxation agents."""

from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from core import CookbookOrder, Recipe, RecipeContent, RecipeRanking, RelevancyResult
from core.cancellation import CancellationToken
from intelligence.agents import CleanerAgent, QueryRelaxationAgent, RelevanceAgent
from intelligence.llm import MessageRole
from intelligence.prompts import GENERALIZE_QUERY_SYSTEM_PROMPT, PROCESS_ORDER_SYSTEM_PROMPT
from utils.exceptions import ContentPolicyError, LLMError, OperationCancelledError, SchemaValidationError


class _RankingOracle:
    def __init__(self, scores: Dict[str, int], failing: tuple = ()):
        self.scores = scores
        self.failing = failing
        self.ranked: List[str] = []

    async def submit(self, system_prompt, user_prompt, function, result_type):
        title = next(name for name in self.scores if f'"title":"{name}"' in user_prompt)
        self.ranked.append(title)
        if title in self.failing:
            raise LLMError("rate limited for good", provider="fake")
        return RecipeRanking(score=self.scores[title], reasoning="fake")


class _CleaningOracle:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = 0

    async def submit(self, system_prompt, user_prompt, function, result_type):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return RecipeContent(
            title="",
            servings="4",
            ingredients=["1 cup lentils", "1 tsp salt"],
            directions=["Rinse the lentils.", "Simmer for 20 minutes."],
        )


class _TextOracle:
    def __init__(self, replies: List[str]):
        self.replies = list(replies)
        self.requests: List[list] = []

    async def complete_text(self, messages):
        self.requests.append(list(messages))
        return self.replies.pop(0)


def _recipe(title: str) -> Recipe:
    return Recipe(
        id=f"id-{title}",
        title=title,
        source_url=f"https://example.com/{title}",
        ingredients=["lentils  ", "salt!!"],
        directions=["cook"],
    )


@pytest.mark.asyncio
async def test_rank_records_verdict_on_recipe():
    agent = RelevanceAgent(oracle=_RankingOracle({"Dal": 88}))
    recipe = _recipe("Dal")

    result = await agent.rank(recipe, "Lentil Dal")

    assert result.score == 88
    assert recipe.relevancy_for("lentil dal").score == 88


@pytest.mark.asyncio
async def test_known_verdicts_are_not_reranked():
    oracle = _RankingOracle({"Dal": 95, "Soup": 10, "Stew": 85})
    agent = RelevanceAgent(oracle=oracle, recipes_to_return=5)
    dal, soup, stew = _recipe("Dal"), _recipe("Soup"), _recipe("Stew")
    dal.record_relevancy(RelevancyResult(query="dal", score=95))
    soup.record_relevancy(RelevancyResult(query="dal", score=30))

    await agent.rank_many([dal, soup, stew], "dal", acceptable_score=80)

    assert oracle.ranked == ["Stew"]
    assert soup.relevancy_for("dal").score == 30


@pytest.mark.asyncio
async def test_ranking_stops_once_enough_recipes_are_acceptable():
    scores = {f"Dal {n}": 90 for n in range(5)}
    oracle = _RankingOracle(scores)
    agent = RelevanceAgent(oracle=oracle, max_parallel_tasks=1, recipes_to_return=2)
    recipes = [_recipe(name) for name in scores]

    await agent.rank_many(recipes, "dal", acceptable_score=80)

    assert len(oracle.ranked) == 2
    assert sum(RelevanceAgent.is_acceptable(r, "dal", 80) for r in recipes) == 2


@pytest.mark.asyncio
async def test_ranking_errors_leave_recipe_unranked():
    oracle = _RankingOracle({"Dal": 90, "Soup": 90}, failing=("Soup",))
    agent = RelevanceAgent(oracle=oracle, recipes_to_return=5)
    dal, soup = _recipe("Dal"), _recipe("Soup")

    await agent.rank_many([dal, soup], "dal", acceptable_score=80)

    assert dal.relevancy_for("dal").score == 90
    assert soup.relevancy_for("dal") is None


@pytest.mark.asyncio
async def test_ranking_observes_cancellation():
    token = CancellationToken()
    token.cancel("order cancelled")
    agent = RelevanceAgent(oracle=_RankingOracle({"Dal": 90}), recipes_to_return=5)

    with pytest.raises(OperationCancelledError):
        await agent.rank_many([_recipe("Dal")], "dal", acceptable_score=80, cancel_token=token)


@pytest.mark.asyncio
async def test_clean_returns_cleaned_copy():
    agent = CleanerAgent(oracle=_CleaningOracle())
    original = _recipe("Dal")

    cleaned = await agent.clean(original)

    assert cleaned is not original
    assert cleaned.cleaned is True
    assert cleaned.title == "Dal"
    assert cleaned.servings == "4"
    assert cleaned.directions == ["Rinse the lentils.", "Simmer for 20 minutes."]
    assert cleaned.id == original.id
    assert original.cleaned is False


@pytest.mark.asyncio
async def test_clean_keeps_fields_the_oracle_left_out():
    agent = CleanerAgent(oracle=_CleaningOracle())
    original = _recipe("Dal")
    original.description = "Grandma's weeknight dal."
    original.notes = "Keeps for three days."

    cleaned = await agent.clean(original)

    assert cleaned.description == "Grandma's weeknight dal."
    assert cleaned.notes == "Keeps for three days."
    assert cleaned.servings == "4"


@pytest.mark.asyncio
async def test_cleaned_recipes_are_not_cleaned_again():
    oracle = _CleaningOracle()
    agent = CleanerAgent(oracle=oracle)
    recipe = _recipe("Dal")
    recipe.mark_cleaned()

    assert await agent.clean(recipe) is recipe
    assert oracle.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        ContentPolicyError("refused", provider="fake"),
        SchemaValidationError("no function call", function_name="CleanRecipeData"),
    ],
)
async def test_clean_soft_fails_to_original(error):
    agent = CleanerAgent(oracle=_CleaningOracle(error=error))
    recipe = _recipe("Dal")

    result = await agent.clean(recipe)

    assert result is recipe
    assert result.cleaned is False


@pytest.mark.asyncio
async def test_clean_many_keeps_order():
    agent = CleanerAgent(oracle=_CleaningOracle(), max_parallel_tasks=2)
    recipes = [_recipe(name) for name in ("A", "B", "C")]

    cleaned = await agent.clean_many(recipes)

    assert [r.title for r in cleaned] == ["A", "B", "C"]
    assert all(r.cleaned for r in cleaned)


@pytest.mark.asyncio
async def test_query_relaxation_switches_to_generic_prompt():
    oracle = _TextOracle([
        '"Spicy Noodles"\nThis is broader.',
        "Noodles",
        "  'Asian noodles' ",
        "noodle dish",
    ])
    agent = QueryRelaxationAgent(oracle=oracle, max_attempts=4)
    order = CookbookOrder(email="cook@example.com", recipe_list=["Dan Dan Noodles"])
    relaxation = agent.start("Dan Dan Noodles", order)

    queries = [await agent.next_query(relaxation) for _ in range(4)]

    assert queries == ["Spicy Noodles", "Noodles", "Asian noodles", "noodle dish"]
    assert relaxation.attempts == queries

    first, second, third, _ = oracle.requests
    assert first[0].content == PROCESS_ORDER_SYSTEM_PROMPT
    assert "Dan Dan Noodles" in first[1].content
    assert [m.role for m in second] == [
        MessageRole.SYSTEM, MessageRole.USER, MessageRole.ASSISTANT, MessageRole.USER,
    ]
    assert third[0].content == GENERALIZE_QUERY_SYSTEM_PROMPT
    assert "Spicy Noodles" in third[1].content
    assert "Noodles" in third[1].content
