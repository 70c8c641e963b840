"""
Critic Agent
质量门控：对照订单要求评估合成菜谱。
"""

from __future__ import annotations

from typing import Optional

from core.contracts import CookbookOrder, RecipeAnalysis, SynthesizedRecipe
from intelligence.oracle import ConversationSession, ReasoningOracle
from intelligence.prompts import (
    ANALYZE_RECIPE_FUNCTION,
    ANALYZE_RECIPE_SYSTEM_PROMPT,
    build_analyze_recipe_prompt,
    draft_json,
)


class RecipeAnalyzer:
    """Quality gate agent for synthesized recipes."""

    def __init__(self, *, oracle: Optional[ReasoningOracle] = None):
        self.oracle = oracle or ReasoningOracle()

    def open_session(self) -> ConversationSession:
        return self.oracle.create_session(ANALYZE_RECIPE_SYSTEM_PROMPT, ANALYZE_RECIPE_FUNCTION)

    async def analyze(
        self,
        session: ConversationSession,
        draft: SynthesizedRecipe,
        order: CookbookOrder,
        recipe_name: Optional[str],
    ) -> RecipeAnalysis:
        # later rounds only carry the revised draft; the order is already in context
        if session.turns == 0:
            content = build_analyze_recipe_prompt(draft, order, recipe_name)
        else:
            content = draft_json(draft)
        self.oracle.add_turn(session, content)
        return await self.oracle.get_pending_structured_output(session, RecipeAnalysis)
