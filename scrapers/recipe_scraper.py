"""
Recipe Web Scraper
多站点并发菜谱抓取
"""
import asyncio
import hashlib
import random
from typing import Dict, List, Optional, Sequence, TypeVar, Union
from urllib.parse import quote

from bs4 import BeautifulSoup

from core.cancellation import CancellationToken, check_cancelled
from core.contracts import ScrapedRecipe, SiteSelectors, UrlSelection
from intelligence.prompts import (
    CHOOSE_RECIPES_SYSTEM_PROMPT,
    SELECT_TOP_RECIPES_FUNCTION,
    build_choose_recipes_prompt,
)
from utils.exceptions import LLMError, OperationCancelledError, ScraperError
from utils.logger import get_scraper_logger

from .base import BaseScraper
from .fetcher import PageFetcher, parse_html
from .site_config import SiteSelectorRegistry


logger = get_scraper_logger()

T = TypeVar("T")


def generate_url_fingerprint(url: str) -> str:
    """菜谱身份: 来源 URL 的 SHA-256"""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def interleave_recipes(site_lists: Sequence[Sequence[T]]) -> List[T]:
    """
    轮询合并各站点结果

    [a0, a1, a2], [b0], [c0, c1] -> a0, b0, c0, a1, c1, a2
    """
    merged: List[T] = []
    depth = max((len(items) for items in site_lists), default=0)
    for index in range(depth):
        for items in site_lists:
            if index < len(items):
                merged.append(items[index])
    return merged


def build_search_url(selectors: SiteSelectors, query: str) -> str:
    escaped = quote(query, safe="")
    search_page = selectors.search_page
    if "{query}" in search_page:
        search_page = search_page.replace("{query}", escaped)
    else:
        search_page = f"{search_page}{escaped}"
    return f"{selectors.base_url}{search_page}"


def resolve_recipe_url(url: str, base_url: str) -> str:
    if url.startswith("https://") or url.startswith("http://"):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    if not url.startswith("/"):
        url = f"/{url}"
    return f"{base_url}{url}"


def _extract_text(soup: BeautifulSoup, selector: Optional[str], attribute: Optional[str] = None) -> Optional[str]:
    if not selector:
        return None
    node = soup.select_one(selector)
    if node is None:
        return None
    if attribute:
        value = node.get(attribute)
        return value.strip() if isinstance(value, str) and value.strip() else None
    text = node.get_text(" ", strip=True)
    return text or None


def _extract_list(soup: BeautifulSoup, selector: Optional[str]) -> List[str]:
    if not selector:
        return []
    return [text for text in (n.get_text(" ", strip=True) for n in soup.select(selector)) if text]


def _extract_image(soup: BeautifulSoup, selector: Optional[str]) -> Optional[str]:
    image = _extract_text(soup, selector, "data-lazy-src") or _extract_text(soup, selector, "src")
    if image:
        return image
    srcset = _extract_text(soup, selector, "srcset")
    return srcset.split(" ")[0] if srcset else None


def parse_recipe_page(html: str, url: str, selectors: SiteSelectors) -> ScrapedRecipe:
    """
    解析菜谱页面

    Raises:
        ScraperError: 缺少配料或步骤
    """
    soup = parse_html(html)

    ingredients = _extract_list(soup, selectors.ingredients)
    if not ingredients:
        raise ScraperError(f"No ingredients found at {url}", source=selectors.site)
    directions = _extract_list(soup, selectors.directions)
    if not directions:
        raise ScraperError(f"No directions found at {url}", source=selectors.site)

    return ScrapedRecipe(
        id=generate_url_fingerprint(url),
        source_url=url,
        title=_extract_text(soup, selectors.title) or "",
        description=_extract_text(soup, selectors.description),
        servings=_extract_text(soup, selectors.servings),
        prep_time=_extract_text(soup, selectors.prep_time),
        cook_time=_extract_text(soup, selectors.cook_time),
        total_time=_extract_text(soup, selectors.total_time),
        ingredients=ingredients,
        directions=directions,
        notes=_extract_text(soup, selectors.notes),
        image_url=_extract_image(soup, selectors.image),
    )


class RecipeWebScraper(BaseScraper[ScrapedRecipe]):
    """
    菜谱爬虫

    对每个站点: 搜索页 -> 候选链接 -> (LLM 精选) -> 并发解析菜谱页,
    最后按站点轮询合并.
    """

    def __init__(
        self,
        oracle=None,
        fetcher: Optional[PageFetcher] = None,
        sites: Union[SiteSelectorRegistry, Dict[str, SiteSelectors], None] = None,
        shuffle_sites: bool = True,
    ):
        super().__init__()
        self.config = self.settings.webscraper
        self._oracle = oracle
        self.fetcher = fetcher or PageFetcher()
        if isinstance(sites, dict):
            self._sites = sites
            self._registry = None
        else:
            self._sites = None
            self._registry = sites or SiteSelectorRegistry()
        self.shuffle_sites = shuffle_sites

    @property
    def name(self) -> str:
        return "RecipeWeb"

    @property
    def oracle(self):
        if self._oracle is None:
            from intelligence.oracle import ReasoningOracle
            self._oracle = ReasoningOracle()
        return self._oracle

    @property
    def sites(self) -> Dict[str, SiteSelectors]:
        if self._sites is None:
            self._sites = self._registry.sites
        return self._sites

    async def scrape(
        self,
        query: str,
        target_site: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[ScrapedRecipe]:
        check_cancelled(cancel_token)

        site_names = [name for name in self.sites if not target_site or name == target_site]
        if target_site and not site_names:
            logger.warning(f"[{self.name}] Unknown target site '{target_site}'")
            return []
        if self.shuffle_sites:
            random.shuffle(site_names)

        semaphore = asyncio.Semaphore(max(1, self.config.max_parallel_sites))

        async def _run_site(site: str) -> List[ScrapedRecipe]:
            async with semaphore:
                check_cancelled(cancel_token)
                try:
                    return await self._scrape_site(site, query, cancel_token)
                except OperationCancelledError:
                    raise
                except Exception as e:
                    self._log_error(f"Error scraping recipes from site '{site}'", e)
                    return []

        results = await asyncio.gather(*[_run_site(site) for site in site_names], return_exceptions=True)
        check_cancelled(cancel_token)

        site_lists = []
        for site, result in zip(site_names, results):
            if isinstance(result, BaseException):
                self._log_error(f"Site task for '{site}' failed", result)
                continue
            site_lists.append(result)

        recipes = interleave_recipes(site_lists)
        self._log_search(query, len(recipes))
        return recipes

    async def _scrape_site(
        self,
        site: str,
        query: str,
        cancel_token: Optional[CancellationToken],
    ) -> List[ScrapedRecipe]:
        recipe_urls = await self.search_site(site, query)
        if not recipe_urls:
            logger.info(f"[{self.name}] No search results for '{query}' on site '{site}'")
            return []

        check_cancelled(cancel_token)
        relevant_urls = await self.select_relevant_urls(site, recipe_urls, query)
        return await self._scrape_pages(site, relevant_urls, query, cancel_token)

    async def search_site(self, site: str, query: str) -> List[str]:
        """抓取站点搜索页, 返回解析为绝对地址并去重后的候选链接"""
        selectors = self.sites[site]
        search_url = build_search_url(selectors, query)
        links = await self.fetcher.fetch_links(
            search_url,
            selectors.search_results,
            render=selectors.stream_search,
        )
        unique: List[str] = []
        for link in links:
            if not link:
                continue
            url = resolve_recipe_url(link, selectors.base_url)
            if url not in unique:
                unique.append(url)
        if unique:
            logger.info(f"[{self.name}] {len(unique)} search results for '{query}' on site '{site}'")
        return unique

    async def select_relevant_urls(self, site: str, urls: List[str], query: str) -> List[str]:
        """
        候选超过上限时由 LLM 精选

        Selected indices are 1-based and kept in the order returned. An empty
        or unusable selection falls back to the original order.
        """
        limit = self.config.max_num_recipes_per_site
        if len(urls) <= limit:
            return urls

        try:
            selection = await self.oracle.submit(
                CHOOSE_RECIPES_SYSTEM_PROMPT,
                build_choose_recipes_prompt(query, urls, limit),
                SELECT_TOP_RECIPES_FUNCTION,
                UrlSelection,
            )
        except LLMError as e:
            logger.warning(f"[{self.name}] URL selection failed for '{query}' on '{site}': {e}")
            return urls

        selected: List[str] = []
        for index in selection.selected_indices:
            if 1 <= index <= len(urls) and urls[index - 1] not in selected:
                selected.append(urls[index - 1])

        if not selected:
            logger.warning(
                f"[{self.name}] URL selection for '{query}' on '{site}' matched no candidates, "
                f"using original order"
            )
            return urls

        logger.info(f"[{self.name}] Selected {len(selected)} URLs for '{query}' on '{site}'")
        return selected

    async def _scrape_pages(
        self,
        site: str,
        urls: List[str],
        query: str,
        cancel_token: Optional[CancellationToken],
    ) -> List[ScrapedRecipe]:
        selectors = self.sites[site]
        to_scrape = urls[: self.config.max_num_recipes_per_site]
        semaphore = asyncio.Semaphore(max(1, self.config.max_parallel_pages))

        logger.info(f"[{self.name}] Scraping {len(to_scrape)} recipes from '{site}' for '{query}'")

        async def _scrape_page(url: str) -> Optional[ScrapedRecipe]:
            full_url = resolve_recipe_url(url, selectors.base_url)
            async with semaphore:
                check_cancelled(cancel_token)
                try:
                    html = await self.fetcher.fetch_html(full_url)
                    return await self._run_blocking(parse_recipe_page, html, full_url, selectors)
                except ScraperError as e:
                    logger.warning(f"[{self.name}] Dropping {full_url}: {e}")
                    return None

        results = await asyncio.gather(*[_scrape_page(url) for url in to_scrape], return_exceptions=True)
        check_cancelled(cancel_token)

        recipes: List[ScrapedRecipe] = []
        for url, result in zip(to_scrape, results):
            if isinstance(result, BaseException):
                self._log_error(f"Error parsing recipe from {url}", result)
                continue
            if result is not None:
                recipes.append(result)
        return recipes

    async def close(self):
        await self.fetcher.close()
