"""
Site Selector Configuration
站点选择器配置: 模板继承与合并
"""
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from core.contracts import SiteSelectors
from utils.exceptions import ConfigurationError
from utils.logger import get_scraper_logger


logger = get_scraper_logger()

REQUIRED_SELECTORS = ("search_page", "search_results", "ingredients", "directions")


def resolve_site(
    site: str,
    site_config: Dict[str, Any],
    templates: Dict[str, Dict[str, Any]],
) -> Dict[str, Any]:
    """合并模板字段与站点覆盖字段"""
    template_name = site_config.get("use_template")
    merged: Dict[str, Any] = {}
    if template_name:
        if template_name not in templates:
            raise ConfigurationError(
                f"Template {template_name} not found for site {site}",
                {"site": site, "template": template_name},
            )
        merged.update(templates[template_name])
    merged.update({k: v for k, v in site_config.items() if k != "use_template"})
    merged.setdefault("base_url", f"https://{site}.com")
    merged["base_url"] = str(merged["base_url"]).rstrip("/")
    merged["site"] = site
    return merged


def load_site_selectors(
    data: Union[Dict[str, Any], str, Path, None] = None,
) -> Dict[str, SiteSelectors]:
    """
    加载站点选择器

    Args:
        data: 已解析的配置字典, 或配置文件路径 (默认使用设置中的路径)

    Returns:
        站点名 -> 展平后的选择器记录. 缺少必需选择器的站点被跳过.
    """
    if data is None or isinstance(data, (str, Path)):
        if data is None:
            from config import get_webscraper_settings
            data = get_webscraper_settings().site_selectors_path
        path = Path(data)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load site selectors from {path}: {e}") from e

    templates = data.get("templates") or {}
    sites = data.get("sites") or {}

    resolved: Dict[str, SiteSelectors] = {}
    for site, site_config in sites.items():
        merged = resolve_site(site, site_config or {}, templates)
        missing = [key for key in REQUIRED_SELECTORS if not merged.get(key)]
        if missing:
            logger.warning(f"[SiteConfig] Skipping site '{site}': missing selectors {missing}")
            continue
        try:
            resolved[site] = SiteSelectors(**merged)
        except ValidationError as e:
            logger.warning(f"[SiteConfig] Skipping site '{site}': invalid config ({e.error_count()} errors)")

    logger.info(f"[SiteConfig] Loaded {len(resolved)} sites ({len(templates)} templates)")
    return resolved


class SiteSelectorRegistry:
    """一次加载, 多次使用"""

    def __init__(self, source: Union[Dict[str, Any], str, Path, None] = None):
        self._source = source
        self._sites: Optional[Dict[str, SiteSelectors]] = None

    @property
    def sites(self) -> Dict[str, SiteSelectors]:
        if self._sites is None:
            self._sites = load_site_selectors(self._source)
        return self._sites

    def get(self, site: str) -> Optional[SiteSelectors]:
        return self.sites.get(site)
