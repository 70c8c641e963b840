"""
Agents Module
菜谱获取与合成的各个 Agent
"""
from .relevance_agent import RelevanceAgent
from .cleaner_agent import CleanerAgent
from .indexer_agent import RecipeIndexer, strip_boilerplate
from .query_agent import QueryRelaxation, QueryRelaxationAgent
from .synthesizer_agent import RecipeSynthesizer
from .critic_agent import RecipeAnalyzer

__all__ = [
    "RelevanceAgent",
    "CleanerAgent",
    "RecipeIndexer",
    "strip_boilerplate",
    "QueryRelaxation",
    "QueryRelaxationAgent",
    "RecipeSynthesizer",
    "RecipeAnalyzer",
]
