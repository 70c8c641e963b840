"""
OpenAI LLM
支持 GPT-4o, GPT-4o-mini 等模型
"""
from typing import List, Optional, Dict
import json
import logging
import inspect

from utils.exceptions import ContentPolicyError, LLMError, SchemaValidationError, TransientLLMError

from .base import BaseLLM, Message, LLMResponse, ToolCall


logger = logging.getLogger(__name__)

CONTENT_POLICY_CODES = {"content_policy_violation", "content_filter"}


class OpenAILLM(BaseLLM):
    """
    OpenAI LLM 实现

    支持模型:
    - gpt-4o (推荐)
    - gpt-4o-mini (经济)
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(model, temperature, max_tokens, timeout, **kwargs)
        self.api_key = api_key
        self.base_url = base_url
        self._async_client = None

    @property
    def provider(self) -> str:
        return "openai"

    def _get_async_client(self):
        """获取异步客户端"""
        if self._async_client is None:
            from openai import AsyncOpenAI
            self._async_client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._async_client

    def _translate_error(self, exc: Exception) -> LLMError:
        """将 SDK 异常映射到统一的错误分类"""
        import openai

        if isinstance(exc, (openai.RateLimitError, openai.APITimeoutError, openai.APIConnectionError)):
            return TransientLLMError(str(exc), provider=self.provider)
        if isinstance(exc, openai.InternalServerError):
            return TransientLLMError(str(exc), provider=self.provider)
        if isinstance(exc, openai.BadRequestError):
            code = getattr(exc, "code", None) or ""
            if code in CONTENT_POLICY_CODES or "content_policy" in str(exc):
                return ContentPolicyError(str(exc), provider=self.provider)
        return LLMError(str(exc), provider=self.provider)

    def _parse_tool_calls(self, message) -> Optional[List[ToolCall]]:
        raw_calls = getattr(message, "tool_calls", None)
        if not raw_calls:
            return None
        tool_calls = []
        for tc in raw_calls:
            try:
                arguments = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError as e:
                raise SchemaValidationError(
                    f"Function arguments are not valid JSON: {e}",
                    function_name=tc.function.name,
                    provider=self.provider,
                ) from e
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=arguments))
        return tool_calls

    async def acomplete(
        self,
        messages: List[Message],
        tools: Optional[List[Dict]] = None,
        **kwargs,
    ) -> LLMResponse:
        """异步生成响应"""
        import openai

        client = self._get_async_client()

        # 构建请求参数
        request_params = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }

        if tools:
            request_params["tools"] = tools
            request_params["tool_choice"] = kwargs.get("tool_choice", "auto")

        try:
            response = await client.chat.completions.create(**request_params)
        except openai.OpenAIError as e:
            raise self._translate_error(e) from e

        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise ContentPolicyError("Response blocked by content filter", provider=self.provider)

        content = self._message_content(choice.message)
        usage = response.usage

        return LLMResponse(
            content=content,
            model=response.model,
            usage={
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
                "total_tokens": usage.total_tokens if usage else 0,
            },
            tool_calls=self._parse_tool_calls(choice.message),
            finish_reason=choice.finish_reason,
            raw_response=response,
        )

    def _message_content(self, message) -> str:
        refusal = getattr(message, "refusal", None)
        if refusal:
            raise ContentPolicyError(f"Model refused: {refusal}", provider=self.provider)
        return message.content or ""

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
