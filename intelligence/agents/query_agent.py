"""
Query Agent
查询放宽：菜谱名检索无果时，逐步泛化搜索词。
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

from config import get_recipe_settings
from core.contracts import CookbookOrder
from intelligence.llm import Message
from intelligence.oracle import ReasoningOracle
from intelligence.prompts import (
    GENERALIZE_QUERY_SYSTEM_PROMPT,
    PROCESS_ORDER_SYSTEM_PROMPT,
    build_failed_query_followup,
    build_generalize_query_prompt,
    build_process_order_prompt,
    build_wider_query_request,
)


logger = logging.getLogger(__name__)


@dataclass
class QueryRelaxation:
    """Relaxation state for one recipe name within one order."""

    recipe_name: str
    order: CookbookOrder
    attempts: List[str] = field(default_factory=list)
    messages: List[Message] = field(default_factory=list)


def _clean_query(text: str) -> str:
    line = next((part for part in str(text or "").splitlines() if part.strip()), "")
    return line.strip().strip("\"'`").strip()


class QueryRelaxationAgent:
    """
    Suggests broader search queries.

    The first half of the attempt budget continues a conversation seeded with
    the order, asking for a wider query after each miss. The remaining
    attempts use a one-shot prompt that asks for a single generic noun phrase.
    """

    def __init__(self, *, oracle: Optional[ReasoningOracle] = None, max_attempts: Optional[int] = None):
        self.oracle = oracle or ReasoningOracle()
        self.max_attempts = max(1, int(max_attempts or get_recipe_settings().max_new_recipe_name_attempts))

    @property
    def conversational_attempts(self) -> int:
        return math.ceil(self.max_attempts / 2)

    def start(self, recipe_name: str, order: CookbookOrder) -> QueryRelaxation:
        return QueryRelaxation(recipe_name=recipe_name, order=order)

    async def next_query(self, relaxation: QueryRelaxation) -> str:
        """Ask for the next broader query and record it as an attempt."""
        if len(relaxation.attempts) < self.conversational_attempts:
            query = await self._conversational(relaxation)
        else:
            query = await self._aggressive(relaxation)
        relaxation.attempts.append(query)
        logger.info(
            f"[{relaxation.recipe_name}] Relaxed query #{len(relaxation.attempts)}: '{query}'"
        )
        return query

    async def _conversational(self, relaxation: QueryRelaxation) -> str:
        if not relaxation.messages:
            relaxation.messages = [
                Message.system(PROCESS_ORDER_SYSTEM_PROMPT),
                Message.user(
                    f"{build_process_order_prompt(relaxation.order)}\n\n"
                    f"{build_wider_query_request(relaxation.recipe_name)}"
                ),
            ]
        else:
            relaxation.messages.append(Message.user(build_failed_query_followup(relaxation.recipe_name)))

        text = await self.oracle.complete_text(relaxation.messages)
        relaxation.messages.append(Message.assistant(text))
        return _clean_query(text)

    async def _aggressive(self, relaxation: QueryRelaxation) -> str:
        text = await self.oracle.complete_text(
            [
                Message.system(GENERALIZE_QUERY_SYSTEM_PROMPT),
                Message.user(build_generalize_query_prompt(relaxation.recipe_name, relaxation.attempts)),
            ]
        )
        return _clean_query(text)
