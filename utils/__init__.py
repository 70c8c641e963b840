"""
Utils Module
通用工具函数
"""
from .logger import setup_logger, get_logger
from .exceptions import (
    CookbookError,
    ConfigurationError,
    ScraperError,
    StorageError,
    LLMError,
    TransientLLMError,
    SchemaValidationError,
    ContentPolicyError,
    NoRecipeError,
    SynthesisError,
    OperationCancelledError,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "CookbookError",
    "ConfigurationError",
    "ScraperError",
    "StorageError",
    "LLMError",
    "TransientLLMError",
    "SchemaValidationError",
    "ContentPolicyError",
    "NoRecipeError",
    "SynthesisError",
    "OperationCancelledError",
]
