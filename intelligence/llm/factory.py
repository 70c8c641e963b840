"""
LLM Factory
根据 LLM_* 配置创建推理服务使用的模型客户端
"""
from typing import Dict, Optional
import logging

from .base import BaseLLM
from .openai_llm import OpenAILLM
from .anthropic_llm import AnthropicLLM
from .deepseek_llm import DeepSeekLLM


logger = logging.getLogger(__name__)


# provider -> (客户端类, 默认模型)
PROVIDERS: Dict[str, tuple] = {
    "openai": (OpenAILLM, "gpt-4o-mini"),
    "anthropic": (AnthropicLLM, "claude-3-5-sonnet-latest"),
    "deepseek": (DeepSeekLLM, "deepseek-chat"),
}


def _api_key_for(provider: str, settings) -> Optional[str]:
    return getattr(settings, f"{provider}_api_key", None)


def get_llm(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs,
) -> BaseLLM:
    """
    创建 LLM 客户端

    Explicit arguments win over ``LLM_*`` settings. Structured calls need
    function calling, so only providers with tool support are listed.

    Args:
        provider: openai, anthropic 或 deepseek
        model: 模型名称 (默认取配置或供应商默认模型)
        **kwargs: api_key, base_url, temperature, max_tokens, timeout

    Raises:
        ValueError: 未知供应商
    """
    from config import get_llm_settings

    settings = get_llm_settings()
    provider = (provider or settings.provider).strip().lower()
    if provider not in PROVIDERS:
        raise ValueError(f"Unsupported LLM provider: {provider} (expected one of {sorted(PROVIDERS)})")

    llm_class, default_model = PROVIDERS[provider]
    model = model or settings.model_name or default_model
    api_key = kwargs.pop("api_key", None) or _api_key_for(provider, settings)

    kwargs.setdefault("temperature", settings.temperature)
    kwargs.setdefault("max_tokens", settings.max_tokens)
    kwargs.setdefault("timeout", settings.timeout)
    if llm_class is AnthropicLLM:
        kwargs.pop("base_url", None)

    logger.debug(f"Creating LLM provider={provider} model={model}")
    return llm_class(model=model, api_key=api_key, **kwargs)
