"""Tests for the recipe repository and its file store."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

import pytest

from core import Recipe, RecipeIndexResult, RelevancyResult
from intelligence.agents import RecipeIndexer, strip_boilerplate
from intelligence.llm.base import BaseLLM, LLMResponse, Message, ToolCall
from intelligence.oracle import ReasoningOracle
from scrapers import generate_url_fingerprint
from storage import RecipeFileStore, RecipeRepository, sanitize_file_name
from utils.exceptions import LLMError, StorageError


class _IndexLLM(BaseLLM):
    def __init__(self, fail: bool = False):
        super().__init__(model="index")
        self.fail = fail
        self.calls = 0

    @property
    def provider(self) -> str:
        return "fake"

    async def acomplete(
        self,
        messages: List[Message],
        tools: List[Dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        self.calls += 1
        if self.fail:
            raise LLMError("provider down", provider=self.provider)
        prompt = messages[-1].content
        index_title = "Pizza" if "Pizza" in prompt else "Soup"
        arguments = {"indexTitle": index_title, "aliases": [f"{index_title} Classic", "Print Recipe"]}
        return LLMResponse(
            content="",
            model=self.model,
            tool_calls=[ToolCall(id=f"call_{self.calls}", name="IndexRecipe", arguments=arguments)],
        )


def _recipe(title: str, url: str, **overrides) -> Recipe:
    payload = {
        "id": generate_url_fingerprint(url),
        "title": title,
        "source_url": url,
        "aliases": [title],
        "ingredients": ["flour"],
        "directions": ["Bake."],
    }
    payload.update(overrides)
    return Recipe(**payload)


def _repository(tmp_path, llm: _IndexLLM | None = None) -> RecipeRepository:
    indexer = RecipeIndexer(oracle=ReasoningOracle(llm=llm or _IndexLLM()))
    return RecipeRepository(store=RecipeFileStore(str(tmp_path)), indexer=indexer)


def test_strip_boilerplate():
    assert strip_boilerplate("Margherita Pizza Print Pin It") == "Margherita Pizza"
    assert strip_boilerplate("Jump to Recipe   Tom  Yum") == "Tom Yum"


def test_sanitize_file_name():
    assert sanitize_file_name("Mac & Cheese / Baked") == "Mac _ Cheese _ Baked"
    assert sanitize_file_name("???") == "untitled"


@pytest.mark.asyncio
async def test_merge_is_idempotent(tmp_path):
    llm = _IndexLLM()
    repository = _repository(tmp_path, llm)
    recipes = [
        _recipe("Margherita Pizza Print Pin It", "https://example.com/pizza", aliases=[]),
        _recipe("Tomato Soup", "https://example.com/soup", aliases=[]),
    ]

    first = await repository.merge(recipes)
    second = await repository.merge(recipes)

    assert repository.size == 2
    assert llm.calls == 2
    assert [r.index_title for r in first] == ["Pizza", "Soup"]
    assert [r.model_dump() for r in first] == [r.model_dump() for r in second]

    pizza = first[0]
    assert pizza.title == "Margherita Pizza"
    assert pizza.aliases == ["Margherita Pizza", "Pizza Classic"]

    files = sorted(path.name for path in tmp_path.glob("*.json"))
    assert files == ["Pizza.json", "Soup.json"]
    assert len(json.loads((tmp_path / "Pizza.json").read_text(encoding="utf-8"))) == 1


@pytest.mark.asyncio
async def test_merge_keeps_stored_verdicts_and_returns_copies(tmp_path):
    repository = _repository(tmp_path)
    stored = _recipe("Pizza", "https://example.com/pizza", index_title="Pizza")
    stored.record_relevancy(RelevancyResult(query="pizza", score=90))
    await repository.merge([stored])

    update = _recipe("Pizza", "https://example.com/pizza")
    update.record_relevancy(RelevancyResult(query="pizza", score=10))
    update.record_relevancy(RelevancyResult(query="flatbread", score=60))
    merged = await repository.merge([update])

    assert merged[0].relevancy_for("pizza").score == 90
    assert merged[0].relevancy_for("flatbread").score == 60

    merged[0].title = "mutated"
    assert repository.get(merged[0].id).title == "Pizza"


@pytest.mark.asyncio
async def test_search_orders_by_match_tier(tmp_path):
    repository = _repository(tmp_path)
    await repository.merge([
        _recipe("Flatbread", "https://example.com/flat", index_title="Flatbread", aliases=["Flatbread", "Pizza"]),
        _recipe("Pepperoni Pizza", "https://example.com/pep", index_title="Pizza"),
        _recipe("Pizza", "https://example.com/pizza", index_title="Pizza"),
        _recipe("Lentil Soup", "https://example.com/soup", index_title="Soup"),
    ])

    results = await repository.search("  PIZZA ")

    assert [r.title for r in results] == ["Pizza", "Pepperoni Pizza", "Flatbread"]


@pytest.mark.asyncio
async def test_search_rejects_empty_query(tmp_path):
    repository = _repository(tmp_path)
    with pytest.raises(ValueError):
        await repository.search("   ")


@pytest.mark.asyncio
async def test_recipes_survive_restart(tmp_path):
    recipe = _recipe("Pizza", "https://example.com/pizza", index_title="Pizza")
    recipe.record_relevancy(RelevancyResult(query="pizza", score=77, reasoning="close"))
    await _repository(tmp_path).merge([recipe])

    reloaded = _repository(tmp_path)
    results = await reloaded.search("pizza")

    assert len(results) == 1
    assert results[0].relevancy_for("pizza").score == 77


@pytest.mark.asyncio
async def test_load_skips_and_fingerprints_records(tmp_path):
    records = [
        {"title": "No identity", "ingredients": ["x"], "directions": ["y"]},
        {"title": "Url only", "sourceUrl": "https://example.com/url-only", "aliases": ["Url only"]},
        {"id": "broken", "title": "Broken", "relevancy": "not a mapping"},
    ]
    (tmp_path / "Mixed.json").write_text(json.dumps(records), encoding="utf-8")
    (tmp_path / "Garbage.json").write_text("{not json", encoding="utf-8")

    repository = _repository(tmp_path)
    await repository.initialize()

    assert repository.size == 1
    assert repository.contains(generate_url_fingerprint("https://example.com/url-only"))


@pytest.mark.asyncio
async def test_initialize_is_single_flight(tmp_path):
    class _CountingStore(RecipeFileStore):
        loads = 0

        async def load_all(self):
            type(self).loads += 1
            await asyncio.sleep(0.01)
            return []

    repository = RecipeRepository(
        store=_CountingStore(str(tmp_path)),
        indexer=RecipeIndexer(oracle=ReasoningOracle(llm=_IndexLLM())),
    )

    await asyncio.gather(*[repository.initialize() for _ in range(5)])
    await repository.initialize()

    assert _CountingStore.loads == 1


@pytest.mark.asyncio
async def test_indexer_falls_back_to_title(tmp_path):
    llm = _IndexLLM(fail=True)
    repository = _repository(tmp_path, llm)

    merged = await repository.merge([_recipe("Jump to Recipe Tomato Soup", "https://example.com/soup", aliases=[])])

    assert merged[0].index_title == "Tomato Soup"
    assert merged[0].aliases == ["Tomato Soup"]
    assert (tmp_path / "Tomato Soup.json").exists()


class _SlowIndexer:
    """Answers with a different index title per call, after yielding to other merges."""

    def __init__(self, titles: List[str]):
        self.titles = list(titles)

    async def index(self, recipe: Recipe) -> RecipeIndexResult:
        title = self.titles.pop(0)
        await asyncio.sleep(0.01)
        return RecipeIndexResult(index_title=title, aliases=[title])


@pytest.mark.asyncio
async def test_concurrent_merges_keep_one_group_per_fingerprint(tmp_path):
    repository = RecipeRepository(
        store=RecipeFileStore(str(tmp_path)),
        indexer=_SlowIndexer(["Dal", "Red Lentil Dal"]),
    )
    recipe = _recipe("Red Lentil Dal", "https://example.com/dal", aliases=[])

    await asyncio.gather(repository.merge([recipe]), repository.merge([recipe]))

    assert sorted(path.name for path in tmp_path.glob("*.json")) == ["Dal.json"]
    records = json.loads((tmp_path / "Dal.json").read_text(encoding="utf-8"))
    assert [record["id"] for record in records] == [recipe.id]
    assert repository.get(recipe.id).index_title == "Dal"


class _SlowStore(RecipeFileStore):
    def __init__(self, directory: str, fail_first: bool = False):
        super().__init__(directory)
        self.fail_first = fail_first
        self.loads = 0

    async def load_all(self):
        self.loads += 1
        await asyncio.sleep(0.05)
        if self.fail_first and self.loads == 1:
            raise StorageError("disk unavailable")
        return [_recipe("Dal", "https://example.com/dal", index_title="Dal").to_json_dict()]


@pytest.mark.asyncio
async def test_cancelled_initialize_does_not_poison_repository(tmp_path):
    store = _SlowStore(str(tmp_path))
    repository = RecipeRepository(store=store, indexer=_SlowIndexer([]))

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(repository.initialize(), 0.01)

    results = await repository.search("dal")

    assert [r.title for r in results] == ["Dal"]
    assert store.loads == 1


@pytest.mark.asyncio
async def test_failed_initialize_is_retried(tmp_path):
    store = _SlowStore(str(tmp_path), fail_first=True)
    repository = RecipeRepository(store=store, indexer=_SlowIndexer([]))

    with pytest.raises(StorageError):
        await repository.initialize()

    await repository.initialize()

    assert repository.size == 1
    assert store.loads == 2
