"""
Intelligence Module
智能层 - LLM抽象 + 推理服务 + LangGraph编排 + 多Agent协作
"""
from .llm import (
    BaseLLM,
    OpenAILLM,
    AnthropicLLM,
    DeepSeekLLM,
    get_llm,
)
from .oracle import ConversationSession, ReasoningOracle
from .agents import (
    CleanerAgent,
    QueryRelaxationAgent,
    RecipeAnalyzer,
    RecipeIndexer,
    RecipeSynthesizer,
    RelevanceAgent,
)
from .graph import SynthesisGraph, SynthesisOutcome, SynthesisPhase

__all__ = [
    # LLM
    "BaseLLM",
    "OpenAILLM",
    "AnthropicLLM",
    "DeepSeekLLM",
    "get_llm",
    # Oracle
    "ConversationSession",
    "ReasoningOracle",
    # Agents
    "CleanerAgent",
    "QueryRelaxationAgent",
    "RecipeAnalyzer",
    "RecipeIndexer",
    "RecipeSynthesizer",
    "RelevanceAgent",
    # Graph
    "SynthesisGraph",
    "SynthesisOutcome",
    "SynthesisPhase",
]
