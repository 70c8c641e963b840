"""
Logger Configuration
统一日志配置: 组件日志器挂在 cookbook_factory 根日志器下
"""
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FORMAT_SIMPLE = "%(message)s"

LOG_DIR = Path(__file__).parent.parent / "logs"

ROOT_LOGGER_NAME = "cookbook_factory"


def _level_from_env(default: int = logging.INFO) -> int:
    name = os.getenv("COOKBOOK_LOG_LEVEL", "").strip().upper()
    value = logging.getLevelName(name) if name else default
    return value if isinstance(value, int) else default


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Optional[int] = None,
    log_file: Optional[str] = None,
    use_rich: bool = True,
) -> logging.Logger:
    """
    设置日志记录器

    Handlers are attached once; component loggers below ``name`` propagate
    to it instead of carrying their own.

    Args:
        name: 日志记录器名称
        level: 日志级别 (默认读取 COOKBOOK_LOG_LEVEL, 否则 INFO)
        log_file: 日志文件名, 写入 logs/ 目录 (可选)
        use_rich: 是否使用 Rich 美化输出
    """
    logger = logging.getLogger(name)
    level = _level_from_env() if level is None else level
    logger.setLevel(level)

    if logger.handlers:
        return logger

    if use_rich:
        console_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_DIR / log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """
    获取组件日志器

    The root logger is configured on first use.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        setup_logger(ROOT_LOGGER_NAME)
    if not component:
        return root
    return root.getChild(component)


def get_scraper_logger() -> logging.Logger:
    """抓取器日志器"""
    return get_logger("scrapers")


def get_storage_logger() -> logging.Logger:
    """存储日志器"""
    return get_logger("storage")


def get_order_logger() -> logging.Logger:
    """订单日志器"""
    return get_logger("orders")
