"""
Configuration Management Module
统一配置管理
"""
from .settings import (
    Settings,
    WebscraperSettings,
    RecipeSettings,
    OrderSettings,
    LLMSettings,
    get_settings,
    get_webscraper_settings,
    get_recipe_settings,
    get_order_settings,
    get_llm_settings,
)

__all__ = [
    "Settings",
    "WebscraperSettings",
    "RecipeSettings",
    "OrderSettings",
    "LLMSettings",
    "get_settings",
    "get_webscraper_settings",
    "get_recipe_settings",
    "get_order_settings",
    "get_llm_settings",
]
