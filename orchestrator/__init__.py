"""Order scheduling and recipe acquisition services."""

from .recipe_service import RecipeService
from .service import CookbookOrderService
from .store import OrderFileStore

__all__ = [
    "CookbookOrderService",
    "OrderFileStore",
    "RecipeService",
]
