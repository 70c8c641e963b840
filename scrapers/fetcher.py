"""
Page Fetcher
页面抓取: 静态 HTML (httpx) 与浏览器渲染 (Playwright)
"""
import asyncio
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import get_webscraper_settings
from utils.exceptions import ScraperError
from utils.logger import get_scraper_logger


logger = get_scraper_logger()

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)

BROWSER_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-sync",
    "--mute-audio",
    "--no-first-run",
]

# 可重试的瞬时错误
_TRANSIENT_ERRORS = (httpx.TransportError,)


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def select_links(html: str, selector: str) -> List[str]:
    """按选择器提取 href, 去重并保持顺序"""
    soup = parse_html(html)
    links: List[str] = []
    seen = set()
    for node in soup.select(selector):
        href = (node.get("href") or "").strip()
        if not href or href in seen:
            continue
        seen.add(href)
        links.append(href)
    return links


def select_text(html: str, selector: str) -> List[str]:
    soup = parse_html(html)
    return [text for text in (node.get_text(" ", strip=True) for node in soup.select(selector)) if text]


class BrowserRenderer:
    """
    无头浏览器渲染
    共享一个 Chromium 实例, 并发页面数受信号量限制
    """

    def __init__(
        self,
        max_parallel_pages: Optional[int] = None,
        max_wait_time_ms: Optional[int] = None,
        headless: Optional[bool] = None,
    ):
        settings = get_webscraper_settings()
        self.max_wait_time_ms = max_wait_time_ms or settings.max_wait_time_ms
        self.headless = settings.headless if headless is None else headless
        self._semaphore = asyncio.Semaphore(max_parallel_pages or settings.max_parallel_pages)
        self._launch_lock = asyncio.Lock()
        self._playwright = None
        self._browser = None

    async def _get_browser(self):
        async with self._launch_lock:
            if self._browser is None:
                from playwright.async_api import async_playwright

                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=BROWSER_ARGS,
                    timeout=self.max_wait_time_ms,
                )
                logger.info("[Browser] Chromium launched")
        return self._browser

    async def render(self, url: str, wait_for_selector: Optional[str] = None) -> str:
        """渲染页面并返回执行脚本后的 HTML"""
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PWTimeoutError

        browser = await self._get_browser()
        async with self._semaphore:
            context = await browser.new_context(
                user_agent=USER_AGENT,
                java_script_enabled=True,
                ignore_https_errors=True,
                viewport={"width": 1280, "height": 720},
            )
            try:
                context.set_default_timeout(self.max_wait_time_ms)
                page = await context.new_page()
                try:
                    response = await page.goto(
                        url,
                        wait_until="domcontentloaded",
                        timeout=self.max_wait_time_ms,
                    )
                except PWTimeoutError as e:
                    raise ScraperError(f"Timed out loading {url}", source="browser") from e
                except PlaywrightError as e:
                    raise ScraperError(f"Failed to load {url}: {e}", source="browser") from e

                if response is not None and not response.ok:
                    raise ScraperError(
                        f"Failed to load {url}",
                        source="browser",
                        status=response.status,
                    )

                if wait_for_selector:
                    try:
                        await page.wait_for_selector(wait_for_selector, timeout=self.max_wait_time_ms)
                    except PWTimeoutError:
                        logger.debug(f"[Browser] Selector '{wait_for_selector}' never appeared on {url}")

                return await page.content()
            finally:
                await context.close()

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


class PageFetcher:
    """
    页面抓取器 (Fetch Oracle)

    - fetch_html: 返回原始 HTML, render=True 时走浏览器渲染
    - fetch_links: 返回选择器匹配元素的 href 列表
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        renderer: Optional[BrowserRenderer] = None,
    ):
        settings = get_webscraper_settings()
        self.timeout = timeout or settings.request_timeout
        self._client = client
        self._owns_client = client is None
        self._renderer = renderer

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=BROWSER_HEADERS,
                timeout=httpx.Timeout(float(self.timeout)),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
        return self._client

    def _get_renderer(self) -> BrowserRenderer:
        if self._renderer is None:
            self._renderer = BrowserRenderer()
        return self._renderer

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _get(self, url: str) -> httpx.Response:
        response = await self._get_client().get(url)
        response.raise_for_status()
        return response

    async def fetch_html(self, url: str, render: bool = False, wait_for_selector: Optional[str] = None) -> str:
        """
        获取页面 HTML

        Raises:
            ScraperError: 请求失败或返回空内容
        """
        if render:
            return await self._get_renderer().render(url, wait_for_selector)

        logger.debug(f"[Fetcher] GET {url}")
        try:
            response = await self._get(url)
        except httpx.HTTPStatusError as e:
            raise ScraperError(
                f"HTTP {e.response.status_code} for {url}",
                source="http",
                status=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ScraperError(f"Request failed for {url}: {e}", source="http") from e

        if not response.text:
            raise ScraperError(f"Empty response for {url}", source="http")
        return response.text

    async def fetch_links(self, url: str, selector: str, render: bool = False) -> List[str]:
        html = await self.fetch_html(url, render=render, wait_for_selector=selector if render else None)
        return select_links(html, selector)

    async def fetch_content(self, url: str, selector: str, render: bool = False) -> List[str]:
        """返回选择器匹配元素的文本"""
        html = await self.fetch_html(url, render=render, wait_for_selector=selector if render else None)
        return select_text(html, selector)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        if self._renderer is not None:
            await self._renderer.close()
            self._renderer = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
