"""
Base Scraper
所有抓取器的抽象基类
"""
from abc import ABC, abstractmethod
from typing import Callable, Generic, List, Optional, TypeVar
import asyncio

from config import get_settings
from core.cancellation import CancellationToken
from utils.logger import get_scraper_logger


logger = get_scraper_logger()

T = TypeVar("T")  # 泛型返回类型
R = TypeVar("R")


class BaseScraper(ABC, Generic[T]):
    """
    抓取器抽象基类
    所有具体抓取器都需要继承此类并实现抽象方法
    """

    def __init__(self):
        self.settings = get_settings()

    @property
    @abstractmethod
    def name(self) -> str:
        """返回抓取器名称"""
        pass

    @abstractmethod
    async def scrape(
        self,
        query: str,
        target_site: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[T]:
        """
        抓取接口

        Args:
            query: 搜索关键词
            target_site: 仅抓取指定站点 (可选)
            cancel_token: 协作式取消信号

        Returns:
            抓取结果列表
        """
        pass

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()

    async def close(self):
        """清理资源"""
        return None

    async def _run_blocking(self, func: Callable[..., R], *args, **kwargs) -> R:
        """在线程池中执行阻塞函数"""
        return await asyncio.to_thread(func, *args, **kwargs)

    def _log_search(self, query: str, count: int):
        """记录搜索日志"""
        logger.info(f"[{self.name}] Search '{query}' returned {count} results")

    def _log_error(self, message: str, error: Exception):
        """记录错误日志"""
        logger.error(f"[{self.name}] {message}: {error}")
