"""Tests for structured oracle calls and conversation sessions."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from core import RecipeAnalysis, RelevancyResult, UrlSelection
from intelligence.llm.base import BaseLLM, LLMResponse, Message, MessageRole, ToolCall
from intelligence.oracle import ReasoningOracle
from intelligence.prompts import ANALYZE_RECIPE_FUNCTION, RANK_RECIPE_FUNCTION, SELECT_TOP_RECIPES_FUNCTION
from utils.exceptions import LLMError, SchemaValidationError, TransientLLMError


class _ScriptedLLM(BaseLLM):
    """Returns queued tool-call arguments (or plain text) and records every request."""

    def __init__(self, replies: List[Any]):
        super().__init__(model="scripted")
        self.replies = list(replies)
        self.requests: List[Dict[str, Any]] = []

    @property
    def provider(self) -> str:
        return "fake"

    async def acomplete(
        self,
        messages: List[Message],
        tools: List[Dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        self.requests.append({"messages": list(messages), "tools": tools, **kwargs})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return LLMResponse(content=reply, model=self.model)
        name, arguments = reply
        call = ToolCall(id=f"call_{len(self.requests)}", name=name, arguments=arguments)
        return LLMResponse(content="", model=self.model, tool_calls=[call])


@pytest.mark.asyncio
async def test_submit_forces_the_declared_function():
    llm = _ScriptedLLM([("RankRecipe", {"score": 91, "reasoning": "exact match"})])
    oracle = ReasoningOracle(llm=llm)

    result = await oracle.submit("system", "user", RANK_RECIPE_FUNCTION, RelevancyResult)

    assert result.score == 91
    request = llm.requests[0]
    assert request["tools"] == [RANK_RECIPE_FUNCTION]
    assert request["tool_choice"] == {"type": "function", "function": {"name": "RankRecipe"}}
    assert [m.role for m in request["messages"]] == [MessageRole.SYSTEM, MessageRole.USER]


@pytest.mark.asyncio
async def test_missing_or_mismatched_function_call_is_a_schema_error():
    oracle = ReasoningOracle(llm=_ScriptedLLM([
        "I'd rather chat",
        ("SelectTopRecipes", {"selectedIndices": ["first", "second"]}),
    ]))

    with pytest.raises(SchemaValidationError) as missing:
        await oracle.submit("system", "user", RANK_RECIPE_FUNCTION, RelevancyResult)
    assert missing.value.function_name == "RankRecipe"

    with pytest.raises(SchemaValidationError):
        await oracle.submit("system", "user", SELECT_TOP_RECIPES_FUNCTION, UrlSelection)


@pytest.mark.asyncio
async def test_transient_errors_are_retried(monkeypatch):
    monkeypatch.setattr(ReasoningOracle._complete.retry, "sleep", _no_sleep)
    llm = _ScriptedLLM([
        TransientLLMError("rate limited", provider="fake"),
        ("RankRecipe", {"score": 40, "reasoning": "partial"}),
    ])
    oracle = ReasoningOracle(llm=llm)

    result = await oracle.submit("system", "user", RANK_RECIPE_FUNCTION, RelevancyResult)

    assert result.score == 40
    assert len(llm.requests) == 2


async def _no_sleep(_seconds):
    return None


@pytest.mark.asyncio
async def test_complete_text_strips_output():
    oracle = ReasoningOracle(llm=_ScriptedLLM(["  Chicken Curry \n"]))
    assert await oracle.complete_text([Message.user("hi")]) == "Chicken Curry"


@pytest.mark.asyncio
async def test_session_replies_to_pending_call_with_tool_message():
    analysis = {"qualityScore": 55, "analysis": "too spicy", "suggestions": "less chili"}
    llm = _ScriptedLLM([("AnalyzeRecipe", analysis), ("AnalyzeRecipe", {**analysis, "qualityScore": 88})])
    oracle = ReasoningOracle(llm=llm)
    session = oracle.create_session("analyze things", ANALYZE_RECIPE_FUNCTION)

    oracle.add_turn(session, "first draft")
    first = await oracle.get_pending_structured_output(session, RecipeAnalysis)
    oracle.add_turn(session, "second draft")
    second = await oracle.get_pending_structured_output(session, RecipeAnalysis)

    assert (first.quality_score, second.quality_score) == (55, 88)
    assert session.turns == 2

    roles = [m.role for m in llm.requests[1]["messages"]]
    assert roles == [MessageRole.SYSTEM, MessageRole.USER, MessageRole.ASSISTANT, MessageRole.TOOL]
    tool_message = llm.requests[1]["messages"][-1]
    assert tool_message.tool_call_id == "call_1"
    assert tool_message.content == "second draft"


@pytest.mark.asyncio
async def test_ended_session_rejects_new_turns():
    oracle = ReasoningOracle(llm=_ScriptedLLM([]))
    session = oracle.create_session("system", ANALYZE_RECIPE_FUNCTION)

    await oracle.end_session(session)
    await oracle.end_session(session)

    assert session.closed
    with pytest.raises(LLMError):
        oracle.add_turn(session, "late")
    with pytest.raises(LLMError):
        await oracle.get_pending_structured_output(session, RecipeAnalysis)
