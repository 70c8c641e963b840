"""
Custom Exceptions
自定义异常类
"""
from typing import List, Optional


class CookbookError(Exception):
    """菜谱工厂基础异常类"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(CookbookError):
    """配置错误"""
    pass


class ScraperError(CookbookError):
    """抓取器错误"""

    def __init__(self, message: str, source: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.source = source


class StorageError(CookbookError):
    """存储错误"""
    pass


class LLMError(CookbookError):
    """LLM 调用错误"""

    def __init__(self, message: str, provider: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.provider = provider


class TransientLLMError(LLMError):
    """可重试的 LLM 错误 (限流/超时/连接中断)"""
    pass


class SchemaValidationError(LLMError):
    """LLM 输出不符合声明的函数结构"""

    def __init__(self, message: str, function_name: str = None, **kwargs):
        super().__init__(message, **kwargs)
        self.function_name = function_name


class ContentPolicyError(LLMError):
    """上游内容策略拒绝"""
    pass


class NoRecipeError(CookbookError):
    """查询放宽耗尽后仍未找到可用菜谱"""

    def __init__(self, previous_attempts: Optional[List[str]] = None, message: str = None):
        self.previous_attempts = list(previous_attempts or [])
        super().__init__(
            message or "No recipes found after exhausting search query attempts",
            {"previous_attempts": self.previous_attempts},
        )


class SynthesisError(CookbookError):
    """合成-分析循环不可恢复的错误"""

    def __init__(self, message: str, recipe_name: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.recipe_name = recipe_name


class OperationCancelledError(CookbookError):
    """协作式取消"""

    def __init__(self, message: str = "Operation cancelled", **kwargs):
        super().__init__(message, kwargs)
