"""
Reasoning Oracle
结构化函数调用 + 显式会话对象

Every structured request forces the model to call exactly one declared
function and validates the arguments against a pydantic model. Sessions are
plain objects owned by the caller; the oracle keeps no session table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from intelligence.llm import BaseLLM, LLMResponse, Message, ToolCall, forced_tool_choice, get_llm
from intelligence.prompts import function_name
from utils.exceptions import LLMError, SchemaValidationError, TransientLLMError


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class ConversationSession:
    """Message history for one long-lived participant (synthesizer or analyzer)."""

    system_prompt: str
    function: Dict[str, Any]
    session_id: str = field(default_factory=lambda: f"session_{uuid4().hex[:12]}")
    messages: List[Message] = field(default_factory=list)
    pending_tool_call: Optional[ToolCall] = None
    turns: int = 0
    closed: bool = False

    def __post_init__(self) -> None:
        if not self.messages:
            self.messages.append(Message.system(self.system_prompt))

    @property
    def function_name(self) -> str:
        return function_name(self.function)


def parse_function_result(
    response: LLMResponse,
    function: Dict[str, Any],
    result_type: Type[T],
) -> tuple:
    """Extract and validate the forced function call from a response.

    Returns:
        (tool_call, validated_result)
    """
    name = function_name(function)
    call = None
    for tool_call in response.tool_calls or []:
        if tool_call.name == name:
            call = tool_call
            break
    if call is None:
        raise SchemaValidationError(
            f"Oracle did not return a structured result for {name}",
            function_name=name,
            finish_reason=response.finish_reason,
        )
    try:
        result = result_type.model_validate(call.arguments)
    except ValidationError as e:
        raise SchemaValidationError(
            f"Structured result for {name} does not match {result_type.__name__}",
            function_name=name,
            errors=e.errors(include_url=False),
        ) from e
    return call, result


class ReasoningOracle:
    """
    推理服务 (Reasoning Oracle)

    - submit: 单次结构化调用
    - complete_text: 纯文本补全
    - create_session / add_turn / get_pending_structured_output / end_session: 多轮会话
    """

    def __init__(self, llm: Optional[BaseLLM] = None):
        self.llm = llm or get_llm()

    @retry(
        retry=retry_if_exception_type(TransientLLMError),
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=1, max=20),
        reraise=True,
    )
    async def _complete(
        self,
        messages: List[Message],
        function: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        if function is None:
            return await self.llm.acomplete(messages)
        return await self.llm.acomplete(
            messages,
            tools=[function],
            tool_choice=forced_tool_choice(function_name(function)),
        )

    async def submit(
        self,
        system_prompt: str,
        user_prompt: str,
        function: Dict[str, Any],
        result_type: Type[T],
    ) -> T:
        """单次结构化调用"""
        messages = [Message.system(system_prompt), Message.user(user_prompt)]
        response = await self._complete(messages, function)
        _, result = parse_function_result(response, function, result_type)
        return result

    async def complete_text(self, messages: List[Message]) -> str:
        """纯文本补全"""
        response = await self._complete(messages)
        return (response.content or "").strip()

    def create_session(self, system_prompt: str, function: Dict[str, Any]) -> ConversationSession:
        session = ConversationSession(system_prompt=system_prompt, function=function)
        logger.debug(f"[Oracle] Created {session.session_id} for {session.function_name}")
        return session

    def add_turn(self, session: ConversationSession, content: str) -> None:
        """
        追加一轮输入

        If the session's last structured output is still awaiting a reply, the
        content is delivered as that function call's output; otherwise it is a
        plain user message.
        """
        if session.closed:
            raise LLMError(f"Session {session.session_id} is closed", provider=self.llm.provider)
        if session.pending_tool_call is not None:
            call = session.pending_tool_call
            session.messages.append(Message.tool(content, tool_call_id=call.id, name=call.name))
            session.pending_tool_call = None
        else:
            session.messages.append(Message.user(content))

    async def get_pending_structured_output(
        self,
        session: ConversationSession,
        result_type: Type[T],
    ) -> T:
        """请求会话中下一个结构化结果"""
        if session.closed:
            raise LLMError(f"Session {session.session_id} is closed", provider=self.llm.provider)
        response = await self._complete(session.messages, session.function)
        call, result = parse_function_result(response, session.function, result_type)
        session.messages.append(Message.assistant(response.content or "", tool_calls=[call]))
        session.pending_tool_call = call
        session.turns += 1
        return result

    async def end_session(self, session: ConversationSession) -> None:
        if session.closed:
            return
        session.closed = True
        session.pending_tool_call = None
        logger.debug(f"[Oracle] Ended {session.session_id} after {session.turns} turns")
        session.messages.clear()

    async def aclose(self) -> None:
        await self.llm.aclose()
