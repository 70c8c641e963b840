"""
Graph Module
LangGraph 编排
"""
from .synthesis_graph import (
    DEFAULT_ANALYSIS,
    DEFAULT_SUGGESTIONS,
    SynthesisGraph,
    SynthesisOutcome,
    SynthesisPhase,
    SynthesisState,
)

__all__ = [
    "DEFAULT_ANALYSIS",
    "DEFAULT_SUGGESTIONS",
    "SynthesisGraph",
    "SynthesisOutcome",
    "SynthesisPhase",
    "SynthesisState",
]
