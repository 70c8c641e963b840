"""
Scrapers Module
"""
from .base import BaseScraper
from .fetcher import BrowserRenderer, PageFetcher
from .site_config import SiteSelectorRegistry, load_site_selectors
from .recipe_scraper import (
    RecipeWebScraper,
    generate_url_fingerprint,
    interleave_recipes,
)

__all__ = [
    # Base
    "BaseScraper",
    # Fetch
    "BrowserRenderer",
    "PageFetcher",
    # Site config
    "SiteSelectorRegistry",
    "load_site_selectors",
    # Recipe crawler
    "RecipeWebScraper",
    "generate_url_fingerprint",
    "interleave_recipes",
]
