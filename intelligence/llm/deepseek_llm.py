"""
DeepSeek LLM
支持 DeepSeek-V3 等模型 (OpenAI 兼容接口)
"""
from typing import Optional

from .openai_llm import OpenAILLM


class DeepSeekLLM(OpenAILLM):
    """
    DeepSeek LLM 实现

    使用 OpenAI 兼容接口, 支持 function calling

    支持模型:
    - deepseek-chat (DeepSeek-V3, 推荐)
    """

    DEFAULT_BASE_URL = "https://api.deepseek.com"

    def __init__(
        self,
        model: str = "deepseek-chat",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        timeout: float = 120.0,  # DeepSeek 可能需要更长时间
        **kwargs,
    ):
        super().__init__(
            model=model,
            api_key=api_key,
            base_url=base_url or self.DEFAULT_BASE_URL,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            **kwargs,
        )

    @property
    def provider(self) -> str:
        return "deepseek"

    def _message_content(self, message) -> str:
        content = super()._message_content(message)
        # DeepSeek-R1 可能包含推理过程
        reasoning_content = getattr(message, "reasoning_content", None) or ""
        if reasoning_content:
            content = f"<reasoning>\n{reasoning_content}\n</reasoning>\n\n{content}"
        return content
