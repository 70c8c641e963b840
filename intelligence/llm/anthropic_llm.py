"""
Anthropic LLM
支持 Claude 系列模型
"""
from typing import Any, List, Optional, Dict
import logging
import inspect

from utils.exceptions import ContentPolicyError, LLMError, TransientLLMError

from .base import BaseLLM, Message, MessageRole, LLMResponse, ToolCall


logger = logging.getLogger(__name__)


class AnthropicLLM(BaseLLM):
    """
    Anthropic Claude LLM 实现

    支持模型:
    - claude-3-5-sonnet-latest (推荐)
    - claude-3-5-haiku-latest
    """

    def __init__(
        self,
        model: str = "claude-3-5-sonnet-latest",
        api_key: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(model, temperature, max_tokens, timeout, **kwargs)
        self.api_key = api_key
        self._async_client = None

    @property
    def provider(self) -> str:
        return "anthropic"

    def _get_async_client(self):
        """获取异步客户端"""
        if self._async_client is None:
            from anthropic import AsyncAnthropic
            self._async_client = AsyncAnthropic(
                api_key=self.api_key,
                timeout=self.timeout,
            )
        return self._async_client

    def _convert_messages(self, messages: List[Message]) -> tuple:
        """
        转换消息格式 (Anthropic 格式不同)

        tool 响应作为 user 消息中的 tool_result 块发送,
        assistant 的工具调用作为 tool_use 块发送。

        Returns:
            (system_prompt, messages_list)
        """
        system_prompt = None
        converted: List[Dict[str, Any]] = []

        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                system_prompt = msg.content
            elif msg.role == MessageRole.TOOL:
                converted.append({
                    "role": "user",
                    "content": [{
                        "type": "tool_result",
                        "tool_use_id": msg.tool_call_id,
                        "content": msg.content,
                    }],
                })
            elif msg.role == MessageRole.ASSISTANT and msg.tool_calls:
                blocks: List[Dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    blocks.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tc.arguments,
                    })
                converted.append({"role": "assistant", "content": blocks})
            else:
                converted.append({
                    "role": msg.role.value,
                    "content": msg.content,
                })

        return system_prompt, converted

    def _convert_tools(self, tools: Optional[List[Dict]]) -> Optional[List[Dict]]:
        """将 OpenAI 格式工具转换为 Anthropic 格式"""
        if not tools:
            return None

        anthropic_tools = []
        for tool in tools:
            if tool.get("type") == "function":
                func = tool["function"]
                anthropic_tools.append({
                    "name": func["name"],
                    "description": func.get("description", ""),
                    "input_schema": func.get("parameters", {"type": "object", "properties": {}}),
                })

        return anthropic_tools if anthropic_tools else None

    def _convert_tool_choice(self, tool_choice: Any) -> Optional[Dict[str, Any]]:
        if isinstance(tool_choice, dict) and tool_choice.get("type") == "function":
            return {"type": "tool", "name": tool_choice["function"]["name"]}
        if tool_choice == "required":
            return {"type": "any"}
        if tool_choice == "auto":
            return {"type": "auto"}
        return None

    def _translate_error(self, exc: Exception) -> LLMError:
        import anthropic

        if isinstance(exc, (anthropic.RateLimitError, anthropic.APITimeoutError, anthropic.APIConnectionError)):
            return TransientLLMError(str(exc), provider=self.provider)
        if isinstance(exc, anthropic.InternalServerError):
            return TransientLLMError(str(exc), provider=self.provider)
        return LLMError(str(exc), provider=self.provider)

    async def acomplete(
        self,
        messages: List[Message],
        tools: Optional[List[Dict]] = None,
        **kwargs,
    ) -> LLMResponse:
        """异步生成响应"""
        import anthropic

        client = self._get_async_client()

        system_prompt, converted_messages = self._convert_messages(messages)

        # 构建请求参数
        request_params = {
            "model": self.model,
            "messages": converted_messages,
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }

        if system_prompt:
            request_params["system"] = system_prompt

        anthropic_tools = self._convert_tools(tools)
        if anthropic_tools:
            request_params["tools"] = anthropic_tools
            tool_choice = self._convert_tool_choice(kwargs.get("tool_choice"))
            if tool_choice:
                request_params["tool_choice"] = tool_choice

        try:
            response = await client.messages.create(**request_params)
        except anthropic.AnthropicError as e:
            raise self._translate_error(e) from e

        if response.stop_reason == "refusal":
            raise ContentPolicyError("Model refused the request", provider=self.provider)

        content = ""
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=block.input,
                ))

        return LLMResponse(
            content=content,
            model=response.model,
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            },
            tool_calls=tool_calls if tool_calls else None,
            finish_reason=response.stop_reason,
            raw_response=response,
        )

    async def aclose(self) -> None:
        client = self._async_client
        if client is None:
            return
        try:
            close_fn = getattr(client, "close", None)
            if callable(close_fn):
                maybe_awaitable = close_fn()
                if inspect.isawaitable(maybe_awaitable):
                    await maybe_awaitable
        except Exception as e:
            logger.debug(f"Failed to close {self.provider} client: {e}")
        self._async_client = None
