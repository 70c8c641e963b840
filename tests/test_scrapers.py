"""Tests for site configuration, page parsing and the recipe crawler."""

from __future__ import annotations

from typing import Dict, List, Optional

import httpx
import pytest

from core import SiteSelectors, UrlSelection
from core.cancellation import CancellationToken
from scrapers.fetcher import PageFetcher
from scrapers.recipe_scraper import (
    RecipeWebScraper,
    build_search_url,
    generate_url_fingerprint,
    interleave_recipes,
    parse_recipe_page,
    resolve_recipe_url,
)
from scrapers.site_config import SiteSelectorRegistry, load_site_selectors
from utils.exceptions import ConfigurationError, OperationCancelledError, SchemaValidationError, ScraperError


def _selectors(site: str = "example", **overrides) -> SiteSelectors:
    payload = {
        "site": site,
        "base_url": f"https://{site}.com",
        "search_page": "/?s=",
        "search_results": "h2 a",
        "title": "h1.name",
        "ingredients": ".ing li",
        "directions": ".dir li",
        "image": "img.hero",
    }
    payload.update(overrides)
    return SiteSelectors(**payload)


def _recipe_html(title: str, ingredients: Optional[List[str]] = None, directions: Optional[List[str]] = None) -> str:
    ingredients = ["1 cup lentils", "1 tsp salt"] if ingredients is None else ingredients
    directions = ["Boil the lentils."] if directions is None else directions
    ing = "".join(f"<li>{item}</li>" for item in ingredients)
    dirs = "".join(f"<li>{item}</li>" for item in directions)
    return (
        f"<html><body><h1 class='name'>{title}</h1>"
        f"<img class='hero' data-lazy-src='https://cdn.example.com/{title}.jpg' src='data:,'>"
        f"<ul class='ing'>{ing}</ul><ol class='dir'>{dirs}</ol></body></html>"
    )


class _FakeFetcher:
    def __init__(self, links: Dict[str, List[str]], pages: Dict[str, str], failing: tuple = ()):
        self.links = links
        self.pages = pages
        self.failing = failing
        self.link_requests: List[str] = []
        self.page_requests: List[str] = []

    async def fetch_links(self, url: str, selector: str, render: bool = False) -> List[str]:
        self.link_requests.append(url)
        for site in self.failing:
            if site in url:
                raise ScraperError(f"boom {url}", source="http")
        for prefix, links in self.links.items():
            if url.startswith(prefix):
                return list(links)
        return []

    async def fetch_html(self, url: str, render: bool = False, wait_for_selector: Optional[str] = None) -> str:
        self.page_requests.append(url)
        if url not in self.pages:
            raise ScraperError(f"HTTP 404 for {url}", source="http", status=404)
        return self.pages[url]

    async def close(self) -> None:
        return None


class _FakeOracle:
    def __init__(self, indices: Optional[List[int]] = None, error: Optional[Exception] = None):
        self.indices = indices or []
        self.error = error
        self.calls = 0

    async def submit(self, system_prompt, user_prompt, function, result_type):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return UrlSelection(selected_indices=self.indices)


def test_interleave_round_robins_across_sites():
    merged = interleave_recipes([["a0", "a1", "a2"], ["b0"], ["c0", "c1"]])
    assert merged == ["a0", "b0", "c0", "a1", "c1", "a2"]
    assert interleave_recipes([]) == []


def test_fingerprint_is_sha256_of_url():
    fingerprint = generate_url_fingerprint("https://example.com/dal")
    assert len(fingerprint) == 64
    assert fingerprint == generate_url_fingerprint("https://example.com/dal")
    assert fingerprint != generate_url_fingerprint("https://example.com/dal/")


def test_build_search_url_escapes_query():
    assert build_search_url(_selectors(), "mac & cheese") == "https://example.com/?s=mac%20%26%20cheese"
    placeholder = _selectors(search_page="/search/{query}/recipes")
    assert build_search_url(placeholder, "pho") == "https://example.com/search/pho/recipes"


def test_resolve_recipe_url():
    base = "https://example.com"
    assert resolve_recipe_url("https://other.com/a", base) == "https://other.com/a"
    assert resolve_recipe_url("//cdn.example.com/a", base) == "https://cdn.example.com/a"
    assert resolve_recipe_url("/recipes/a", base) == "https://example.com/recipes/a"
    assert resolve_recipe_url("recipes/a", base) == "https://example.com/recipes/a"


def test_parse_recipe_page_extracts_fields():
    recipe = parse_recipe_page(_recipe_html("Dal"), "https://example.com/dal", _selectors())

    assert recipe.title == "Dal"
    assert recipe.ingredients == ["1 cup lentils", "1 tsp salt"]
    assert recipe.directions == ["Boil the lentils."]
    assert recipe.image_url == "https://cdn.example.com/Dal.jpg"
    assert recipe.id == generate_url_fingerprint("https://example.com/dal")


def test_parse_recipe_page_falls_back_to_srcset():
    html = (
        "<h1 class='name'>Dal</h1><img class='hero' srcset='https://cdn/a-300.jpg 300w, https://cdn/a-600.jpg 600w'>"
        "<ul class='ing'><li>lentils</li></ul><ol class='dir'><li>Boil</li></ol>"
    )
    recipe = parse_recipe_page(html, "https://example.com/dal", _selectors())
    assert recipe.image_url == "https://cdn/a-300.jpg"


def test_parse_recipe_page_requires_ingredients_and_directions():
    with pytest.raises(ScraperError):
        parse_recipe_page(_recipe_html("Dal", ingredients=[]), "https://example.com/dal", _selectors())
    with pytest.raises(ScraperError):
        parse_recipe_page(_recipe_html("Dal", directions=[]), "https://example.com/dal", _selectors())


def test_load_site_selectors_merges_templates_and_skips_incomplete_sites():
    config = {
        "templates": {"wp": {"search_results": "h2 a", "ingredients": ".ing li", "directions": ".dir li"}},
        "sites": {
            "alpha": {"use_template": "wp", "search_page": "/?s="},
            "beta": {"use_template": "wp", "search_page": "/?q=", "directions": ".steps li", "base_url": "https://beta.io/"},
            "gamma": {"search_page": "/?s="},
        },
    }
    sites = load_site_selectors(config)

    assert set(sites) == {"alpha", "beta"}
    assert sites["alpha"].base_url == "https://alpha.com"
    assert sites["alpha"].directions == ".dir li"
    assert sites["beta"].base_url == "https://beta.io"
    assert sites["beta"].directions == ".steps li"


def test_unknown_template_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        load_site_selectors({"templates": {}, "sites": {"alpha": {"use_template": "missing", "search_page": "/"}}})


def test_bundled_site_config_loads():
    registry = SiteSelectorRegistry()
    assert registry.sites
    assert registry.get("bbcgoodfood").stream_search is True


@pytest.mark.asyncio
async def test_scrape_interleaves_sites_and_drops_bad_pages():
    sites = {"alpha": _selectors("alpha"), "beta": _selectors("beta"), "gamma": _selectors("gamma")}
    fetcher = _FakeFetcher(
        links={
            "https://alpha.com": ["/a1", "/a2", "/a3"],
            "https://beta.com": ["/b1"],
            "https://gamma.com": ["/g1", "/g-broken"],
        },
        pages={
            "https://alpha.com/a1": _recipe_html("A1"),
            "https://alpha.com/a2": _recipe_html("A2"),
            "https://alpha.com/a3": _recipe_html("A3"),
            "https://beta.com/b1": _recipe_html("B1"),
            "https://gamma.com/g1": _recipe_html("G1"),
            "https://gamma.com/g-broken": _recipe_html("G2", ingredients=[]),
        },
    )
    scraper = RecipeWebScraper(oracle=_FakeOracle(), fetcher=fetcher, sites=sites, shuffle_sites=False)

    recipes = await scraper.scrape("dal")

    assert [r.title for r in recipes] == ["A1", "B1", "G1", "A2", "A3"]
    assert fetcher.link_requests[0] == "https://alpha.com/?s=dal"


@pytest.mark.asyncio
async def test_search_links_are_resolved_before_dedupe():
    fetcher = _FakeFetcher(
        links={"https://alpha.com": ["/dal", "https://alpha.com/dal", "//alpha.com/dal", "soup"]},
        pages={"https://alpha.com/dal": _recipe_html("Dal"), "https://alpha.com/soup": _recipe_html("Soup")},
    )
    scraper = RecipeWebScraper(oracle=_FakeOracle(), fetcher=fetcher, sites={"alpha": _selectors("alpha")})

    assert await scraper.search_site("alpha", "dal") == ["https://alpha.com/dal", "https://alpha.com/soup"]

    recipes = await scraper.scrape("dal")

    assert [r.title for r in recipes] == ["Dal", "Soup"]
    assert sorted(fetcher.page_requests) == ["https://alpha.com/dal", "https://alpha.com/soup"]


@pytest.mark.asyncio
async def test_failing_and_empty_sites_contribute_nothing():
    sites = {"alpha": _selectors("alpha"), "beta": _selectors("beta"), "gamma": _selectors("gamma")}
    fetcher = _FakeFetcher(
        links={"https://alpha.com": ["/a1"]},
        pages={"https://alpha.com/a1": _recipe_html("A1")},
        failing=("beta.com",),
    )
    scraper = RecipeWebScraper(oracle=_FakeOracle(), fetcher=fetcher, sites=sites)

    recipes = await scraper.scrape("dal")

    assert [r.title for r in recipes] == ["A1"]


@pytest.mark.asyncio
async def test_target_site_limits_crawl():
    sites = {"alpha": _selectors("alpha"), "beta": _selectors("beta")}
    fetcher = _FakeFetcher(links={}, pages={})
    scraper = RecipeWebScraper(oracle=_FakeOracle(), fetcher=fetcher, sites=sites)

    assert await scraper.scrape("dal", target_site="beta") == []
    assert fetcher.link_requests == ["https://beta.com/?s=dal"]
    assert await scraper.scrape("dal", target_site="nope") == []


@pytest.mark.asyncio
async def test_url_selection_follows_oracle_order():
    urls = ["/1", "/2", "/3", "/4", "/5"]
    oracle = _FakeOracle(indices=[4, 2, 2, 9])
    scraper = RecipeWebScraper(oracle=oracle, fetcher=_FakeFetcher({}, {}), sites={"alpha": _selectors("alpha")})

    assert await scraper.select_relevant_urls("alpha", urls, "dal") == ["/4", "/2"]
    assert oracle.calls == 1


@pytest.mark.asyncio
async def test_url_selection_falls_back_to_original_order():
    urls = ["/1", "/2", "/3", "/4"]
    sites = {"alpha": _selectors("alpha")}

    empty = RecipeWebScraper(oracle=_FakeOracle(indices=[]), fetcher=_FakeFetcher({}, {}), sites=sites)
    assert await empty.select_relevant_urls("alpha", urls, "dal") == urls

    unmatched = RecipeWebScraper(oracle=_FakeOracle(indices=[0, 7]), fetcher=_FakeFetcher({}, {}), sites=sites)
    assert await unmatched.select_relevant_urls("alpha", urls, "dal") == urls

    failing = RecipeWebScraper(
        oracle=_FakeOracle(error=SchemaValidationError("bad output", function_name="SelectTopRecipes")),
        fetcher=_FakeFetcher({}, {}),
        sites=sites,
    )
    assert await failing.select_relevant_urls("alpha", urls, "dal") == urls


@pytest.mark.asyncio
async def test_few_candidates_skip_the_oracle():
    oracle = _FakeOracle(indices=[1])
    scraper = RecipeWebScraper(oracle=oracle, fetcher=_FakeFetcher({}, {}), sites={"alpha": _selectors("alpha")})

    assert await scraper.select_relevant_urls("alpha", ["/1", "/2"], "dal") == ["/1", "/2"]
    assert oracle.calls == 0


@pytest.mark.asyncio
async def test_cancelled_token_stops_crawl():
    token = CancellationToken()
    token.cancel("stop")
    fetcher = _FakeFetcher(links={}, pages={})
    scraper = RecipeWebScraper(oracle=_FakeOracle(), fetcher=fetcher, sites={"alpha": _selectors("alpha")})

    with pytest.raises(OperationCancelledError):
        await scraper.scrape("dal", cancel_token=token)
    assert fetcher.link_requests == []


async def _no_sleep(_seconds):
    return None


class _FakeRenderer:
    def __init__(self, html: str):
        self.html = html
        self.rendered: List[tuple] = []

    async def render(self, url: str, wait_for_selector: Optional[str] = None) -> str:
        self.rendered.append((url, wait_for_selector))
        return self.html

    async def close(self) -> None:
        return None


@pytest.mark.asyncio
async def test_page_fetcher_selects_links_and_text():
    search_page = (
        "<h2><a href='/dal'>Dal</a></h2>"
        "<h2><a href='/dal'>Dal again</a></h2>"
        "<h2><a href='/soup'>Soup</a></h2>"
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=search_page)

    async with PageFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler))) as fetcher:
        assert await fetcher.fetch_links("https://example.com/?s=dal", "h2 a") == ["/dal", "/soup"]
        assert await fetcher.fetch_content("https://example.com/?s=dal", "h2 a") == ["Dal", "Dal again", "Soup"]


@pytest.mark.asyncio
async def test_page_fetcher_maps_http_errors(monkeypatch):
    monkeypatch.setattr(PageFetcher._get.retry, "sleep", _no_sleep)
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if request.url.path == "/flaky" and attempts["count"] < 3:
            raise httpx.ConnectError("connection reset", request=request)
        if request.url.path == "/missing":
            return httpx.Response(404, text="nope")
        return httpx.Response(200, text="<p>ok</p>")

    fetcher = PageFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    assert await fetcher.fetch_html("https://example.com/flaky") == "<p>ok</p>"
    assert attempts["count"] == 3

    with pytest.raises(ScraperError) as excinfo:
        await fetcher.fetch_html("https://example.com/missing")
    assert excinfo.value.details["status"] == 404


@pytest.mark.asyncio
async def test_page_fetcher_renders_streamed_search_pages():
    renderer = _FakeRenderer("<a class='hit' href='/pho'>Pho</a>")
    fetcher = PageFetcher(renderer=renderer)

    links = await fetcher.fetch_links("https://example.com/search?q=pho", "a.hit", render=True)

    assert links == ["/pho"]
    assert renderer.rendered == [("https://example.com/search?q=pho", "a.hit")]
