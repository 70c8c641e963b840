"""Core contracts and shared types for the cookbook pipeline."""

from .cancellation import CancellationToken, check_cancelled
from .contracts import (
    CamelModel,
    CookbookContent,
    CookbookDetails,
    CookbookOrder,
    CookbookOrderSubmission,
    OrderRecipeList,
    OrderStatus,
    Recipe,
    RecipeAnalysis,
    RecipeContent,
    RecipeIndexResult,
    RecipeRanking,
    RelevancyResult,
    ScrapedRecipe,
    SiteSelectors,
    SkippedRecipe,
    SynthesizedRecipe,
    UrlSelection,
    UserDetails,
)

__all__ = [
    "CamelModel",
    "CancellationToken",
    "check_cancelled",
    "CookbookContent",
    "CookbookDetails",
    "CookbookOrder",
    "CookbookOrderSubmission",
    "OrderRecipeList",
    "OrderStatus",
    "Recipe",
    "RecipeAnalysis",
    "RecipeContent",
    "RecipeIndexResult",
    "RecipeRanking",
    "RelevancyResult",
    "ScrapedRecipe",
    "SiteSelectors",
    "SkippedRecipe",
    "SynthesizedRecipe",
    "UrlSelection",
    "UserDetails",
]
