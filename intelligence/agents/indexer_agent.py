"""
Indexer Agent
索引命名：为菜谱生成索引标题与检索别名。
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from core.contracts import Recipe, RecipeIndexResult
from intelligence.oracle import ReasoningOracle
from intelligence.prompts import INDEX_RECIPE_FUNCTION, RECIPE_NAMER_SYSTEM_PROMPT, build_recipe_namer_prompt
from utils.exceptions import LLMError


logger = logging.getLogger(__name__)

BOILERPLATE_PHRASES = ("Print Pin It", "Jump to Recipe", "Pin Recipe", "Print Recipe")

_BOILERPLATE_RE = re.compile("|".join(re.escape(phrase) for phrase in BOILERPLATE_PHRASES), re.IGNORECASE)
_SPACES_RE = re.compile(r"\s+")


def strip_boilerplate(text: str) -> str:
    """去除网页按钮文字"""
    return _SPACES_RE.sub(" ", _BOILERPLATE_RE.sub(" ", str(text or ""))).strip()


class RecipeIndexer:
    """Names a recipe for the repository index."""

    def __init__(self, *, oracle: Optional[ReasoningOracle] = None):
        self.oracle = oracle or ReasoningOracle()

    async def index(self, recipe: Recipe) -> RecipeIndexResult:
        """
        Returns the index title and aliases for ``recipe``.

        The recipe's own title (boilerplate removed) is always the first
        alias. If the oracle fails, the title doubles as the index title.
        """
        title = strip_boilerplate(recipe.title) or recipe.title
        index_title = ""
        aliases = []
        try:
            result = await self.oracle.submit(
                RECIPE_NAMER_SYSTEM_PROMPT,
                build_recipe_namer_prompt(recipe),
                INDEX_RECIPE_FUNCTION,
                RecipeIndexResult,
            )
            index_title = strip_boilerplate(result.index_title)
            aliases = [strip_boilerplate(alias) for alias in result.aliases]
        except LLMError as e:
            logger.warning(f"[Indexer] Falling back to title for '{title}': {e}")

        return RecipeIndexResult(index_title=index_title or title, aliases=[title, *aliases])
