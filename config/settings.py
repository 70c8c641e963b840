"""
Settings Configuration
使用 Pydantic 进行配置验证和管理
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


DEFAULT_SITE_SELECTORS_PATH = str(Path(__file__).parent / "site_selectors.json")


class WebscraperSettings(BaseSettings):
    """网页抓取配置"""
    max_num_recipes_per_site: int = Field(default=3, description="每个站点最多抓取的菜谱数")
    max_parallel_sites: int = Field(default=5, description="并发站点数上限")
    max_parallel_pages: int = Field(default=2, description="每个站点并发页面数上限")
    max_wait_time_ms: int = Field(default=10000, description="动态渲染等待时间(毫秒)")
    request_timeout: int = Field(default=30, description="请求超时时间(秒)")
    site_selectors_path: str = Field(
        default=DEFAULT_SITE_SELECTORS_PATH,
        description="站点选择器配置文件",
    )
    headless: bool = Field(default=True, description="浏览器无头模式")

    class Config:
        env_prefix = "WEBSCRAPER_"


class RecipeSettings(BaseSettings):
    """菜谱检索与合成配置"""
    recipes_to_return_per_retrieval: int = Field(default=5, description="每次检索返回的菜谱数")
    acceptable_score_threshold: int = Field(default=80, description="可接受的相关度分数")
    quality_score_threshold: int = Field(default=80, description="合成质量门槛")
    max_new_recipe_name_attempts: int = Field(default=6, description="查询放宽最大尝试次数")
    max_parallel_tasks: int = Field(default=5, description="排序/清洗并发上限")
    max_synthesis_rounds: int = Field(default=8, description="合成-分析循环最大轮数")
    output_directory: str = Field(default="./data/recipes", description="菜谱存储目录")

    class Config:
        env_prefix = "RECIPE_"


class OrderSettings(BaseSettings):
    """订单处理配置"""
    max_parallel_tasks: int = Field(default=5, description="订单内菜谱并发上限")
    max_sample_recipes: int = Field(default=3, description="样本模式下的菜谱数")
    output_directory: str = Field(default="./data/orders", description="订单存储目录")

    class Config:
        env_prefix = "ORDER_"


class LLMSettings(BaseSettings):
    """LLM 配置"""
    provider: str = Field(default="openai", description="LLM提供商: openai, anthropic, deepseek")
    model_name: Optional[str] = Field(default=None, description="模型名称(不填则使用默认)")
    temperature: float = Field(default=0.7, description="生成温度")
    max_tokens: int = Field(default=4096, description="最大生成token数")
    timeout: float = Field(default=60.0, description="请求超时时间(秒)")

    # API Keys
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API Key")
    deepseek_api_key: Optional[str] = Field(default=None, description="DeepSeek API Key")

    class Config:
        env_prefix = "LLM_"


class Settings(BaseSettings):
    """主配置类 - 聚合所有子配置"""

    webscraper: WebscraperSettings = Field(default_factory=WebscraperSettings)
    recipe: RecipeSettings = Field(default_factory=RecipeSettings)
    order: OrderSettings = Field(default_factory=OrderSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """从指定的 .env 文件加载配置"""
        if env_path is None:
            # 默认查找 config/.env
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            webscraper=WebscraperSettings(),
            recipe=RecipeSettings(),
            order=OrderSettings(),
            llm=LLMSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings.load_from_env_file()


# 便捷访问
def get_webscraper_settings() -> WebscraperSettings:
    return get_settings().webscraper


def get_recipe_settings() -> RecipeSettings:
    return get_settings().recipe


def get_order_settings() -> OrderSettings:
    return get_settings().order


def get_llm_settings() -> LLMSettings:
    return get_settings().llm
