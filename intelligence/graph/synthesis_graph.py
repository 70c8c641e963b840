"""
Synthesis Graph
LangGraph 合成-质检循环 - Draft / Analyze / Revise
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, TypedDict
import logging
import operator

from langgraph.graph import StateGraph, END, START

from config import get_recipe_settings
from core.cancellation import CancellationToken, check_cancelled
from core.contracts import CookbookOrder, Recipe, RecipeAnalysis, SynthesizedRecipe
from intelligence.agents import RecipeAnalyzer, RecipeSynthesizer
from intelligence.oracle import ConversationSession, ReasoningOracle
from utils.exceptions import LLMError, SynthesisError


logger = logging.getLogger(__name__)

DEFAULT_SUGGESTIONS = (
    "Please pay attention to what is desired from the cookbook order and synthesize another one."
)
DEFAULT_ANALYSIS = "The recipe is not suitable enough for the cookbook order."


class SynthesisPhase(str, Enum):
    """合成循环阶段"""
    DRAFTING = "drafting"                        # 生成初稿
    AWAITING_ANALYSIS = "awaiting_analysis"      # 等待质检
    REVISING = "revising"                        # 按意见修订
    PASSED = "passed"                            # 通过
    EXHAUSTED = "exhausted"                      # 轮次用尽


# 定义状态结构 (LangGraph 兼容)
class SynthesisState(TypedDict, total=False):
    """合成循环状态"""
    # 输入
    recipe_name: str
    recipes: List[Recipe]
    order: CookbookOrder

    # 会话
    synthesizer_session: ConversationSession
    analyzer_session: ConversationSession
    cancel_token: Optional[CancellationToken]

    # 控制
    phase: str
    round: int
    max_rounds: int
    quality_threshold: int

    # 输出
    draft: Optional[SynthesizedRecipe]
    analysis: Optional[RecipeAnalysis]
    rejected_drafts: Annotated[List[SynthesizedRecipe], operator.add]


@dataclass
class SynthesisOutcome:
    """合成结果"""
    recipe: SynthesizedRecipe
    rejected_drafts: List[SynthesizedRecipe] = field(default_factory=list)
    rounds: int = 0
    passed: bool = False


def with_default_feedback(analysis: RecipeAnalysis) -> RecipeAnalysis:
    """补全缺失的分析与建议"""
    return analysis.model_copy(
        update={
            "analysis": analysis.analysis or DEFAULT_ANALYSIS,
            "suggestions": analysis.suggestions or DEFAULT_SUGGESTIONS,
        }
    )


class SynthesisGraph:
    """
    合成-质检循环

    流程：
    1. Draft: 合成器生成初稿
    2. Analyze: 质检员打分
    3. 分数达标 -> Passed; 轮次用尽 -> Exhausted; 否则 Revise -> Analyze
    """

    def __init__(
        self,
        oracle: Optional[ReasoningOracle] = None,
        synthesizer: Optional[RecipeSynthesizer] = None,
        analyzer: Optional[RecipeAnalyzer] = None,
        max_rounds: Optional[int] = None,
        quality_threshold: Optional[int] = None,
    ):
        settings = get_recipe_settings()
        if synthesizer is None or analyzer is None:
            oracle = oracle or ReasoningOracle()
        self.synthesizer = synthesizer or RecipeSynthesizer(oracle=oracle)
        self.analyzer = analyzer or RecipeAnalyzer(oracle=oracle)
        self.max_rounds = max(1, int(max_rounds or settings.max_synthesis_rounds))
        self.quality_threshold = int(
            settings.quality_score_threshold if quality_threshold is None else quality_threshold
        )
        self.workflow = self._create_workflow()
        self.graph = self.workflow.compile()

    # ===== 节点函数 =====

    async def _draft_node(self, state: SynthesisState) -> Dict[str, Any]:
        check_cancelled(state.get("cancel_token"))
        name = state["recipe_name"]
        logger.info(f"[{name}] Synthesizing from {len(state['recipes'])} recipes")

        draft = await self.synthesizer.draft(
            state["synthesizer_session"], name, state["recipes"], state["order"]
        )
        return {
            "phase": SynthesisPhase.AWAITING_ANALYSIS.value,
            "round": 1,
            "draft": draft,
        }

    async def _analyze_node(self, state: SynthesisState) -> Dict[str, Any]:
        name = state["recipe_name"]
        draft = state["draft"]

        analysis = with_default_feedback(
            await self.analyzer.analyze(state["analyzer_session"], draft, state["order"], name)
        )
        draft.add_analysis(analysis)
        logger.info(f"[{name}] Round {state['round']}: quality score {analysis.quality_score}")

        if analysis.quality_score >= state["quality_threshold"]:
            return {"phase": SynthesisPhase.PASSED.value, "analysis": analysis}

        phase = SynthesisPhase.REVISING
        if state["round"] >= state["max_rounds"]:
            phase = SynthesisPhase.EXHAUSTED
        return {
            "phase": phase.value,
            "analysis": analysis,
            "rejected_drafts": [draft.model_copy(deep=True)],
        }

    async def _revise_node(self, state: SynthesisState) -> Dict[str, Any]:
        check_cancelled(state.get("cancel_token"))
        draft = await self.synthesizer.revise(state["synthesizer_session"], state["analysis"])
        return {
            "phase": SynthesisPhase.AWAITING_ANALYSIS.value,
            "round": state["round"] + 1,
            "draft": draft,
        }

    def _passed_node(self, state: SynthesisState) -> Dict[str, Any]:
        logger.info(f"[{state['recipe_name']}] Passed QA after {state['round']} rounds")
        return {}

    def _exhausted_node(self, state: SynthesisState) -> Dict[str, Any]:
        logger.warning(
            f"[{state['recipe_name']}] No draft reached {state['quality_threshold']} "
            f"after {state['round']} rounds, keeping the last one"
        )
        return {}

    # ===== 边函数 (条件路由) =====

    @staticmethod
    def _route_after_analysis(state: SynthesisState) -> Literal["passed", "exhausted", "revise"]:
        phase = state.get("phase")
        if phase == SynthesisPhase.PASSED.value:
            return "passed"
        if phase == SynthesisPhase.EXHAUSTED.value:
            return "exhausted"
        return "revise"

    # ===== 图构建 =====

    def _create_workflow(self) -> StateGraph:
        workflow = StateGraph(SynthesisState)

        workflow.add_node("draft", self._draft_node)
        workflow.add_node("analyze", self._analyze_node)
        workflow.add_node("revise", self._revise_node)
        workflow.add_node("passed", self._passed_node)
        workflow.add_node("exhausted", self._exhausted_node)

        workflow.add_edge(START, "draft")
        workflow.add_edge("draft", "analyze")
        workflow.add_conditional_edges(
            "analyze",
            self._route_after_analysis,
            {
                "passed": "passed",
                "exhausted": "exhausted",
                "revise": "revise",
            }
        )
        workflow.add_edge("revise", "analyze")
        workflow.add_edge("passed", END)
        workflow.add_edge("exhausted", END)

        return workflow

    async def run(
        self,
        recipe_name: str,
        recipes: List[Recipe],
        order: CookbookOrder,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SynthesisOutcome:
        """
        执行合成循环

        Raises:
            SynthesisError: 合成器或质检员无法给出有效结果
            OperationCancelledError: 取消信号
        """
        synthesizer_session = self.synthesizer.open_session()
        analyzer_session = self.analyzer.open_session()

        initial_state: SynthesisState = {
            "recipe_name": recipe_name,
            "recipes": recipes,
            "order": order,
            "synthesizer_session": synthesizer_session,
            "analyzer_session": analyzer_session,
            "cancel_token": cancel_token,
            "phase": SynthesisPhase.DRAFTING.value,
            "round": 0,
            "max_rounds": self.max_rounds,
            "quality_threshold": self.quality_threshold,
            "draft": None,
            "analysis": None,
            "rejected_drafts": [],
        }
        # draft + (analyze, revise) per round + terminal node
        config = {"recursion_limit": 2 * self.max_rounds + 4}

        try:
            final_state = await self.graph.ainvoke(initial_state, config)
        except LLMError as e:
            raise SynthesisError(
                f"Synthesis failed for '{recipe_name}': {e}",
                recipe_name=recipe_name,
            ) from e
        finally:
            await self.synthesizer.oracle.end_session(synthesizer_session)
            await self.analyzer.oracle.end_session(analyzer_session)

        return SynthesisOutcome(
            recipe=final_state["draft"],
            rejected_drafts=list(final_state.get("rejected_drafts", [])),
            rounds=final_state["round"],
            passed=final_state["phase"] == SynthesisPhase.PASSED.value,
        )
