"""
Synthesizer Agent
菜谱合成：依据候选菜谱与订单要求生成个性化菜谱，并按质检意见修订。
"""

from __future__ import annotations

from typing import List, Optional

from core.contracts import CookbookOrder, Recipe, RecipeAnalysis, SynthesizedRecipe
from intelligence.oracle import ConversationSession, ReasoningOracle
from intelligence.prompts import (
    SYNTHESIZE_RECIPE_FUNCTION,
    SYNTHESIZE_RECIPE_SYSTEM_PROMPT,
    build_revision_request,
    build_synthesize_recipe_prompt,
)


class RecipeSynthesizer:
    """Long-lived synthesizer participant; one session per recipe."""

    def __init__(self, *, oracle: Optional[ReasoningOracle] = None):
        self.oracle = oracle or ReasoningOracle()

    def open_session(self) -> ConversationSession:
        return self.oracle.create_session(SYNTHESIZE_RECIPE_SYSTEM_PROMPT, SYNTHESIZE_RECIPE_FUNCTION)

    async def draft(
        self,
        session: ConversationSession,
        recipe_name: str,
        recipes: List[Recipe],
        order: CookbookOrder,
    ) -> SynthesizedRecipe:
        self.oracle.add_turn(session, build_synthesize_recipe_prompt(recipe_name, recipes, order))
        return await self.oracle.get_pending_structured_output(session, SynthesizedRecipe)

    async def revise(self, session: ConversationSession, analysis: RecipeAnalysis) -> SynthesizedRecipe:
        self.oracle.add_turn(session, build_revision_request(analysis.model_dump_json(by_alias=True)))
        return await self.oracle.get_pending_structured_output(session, SynthesizedRecipe)
