"""
目录设置加载器 - 读取 config/catalog_settings.yaml（兼容JSON）

职责：
- 解析设置文件（YAML/JSON）并与默认值合并
- 文件缺失时返回默认设置
- 提供文件型设置数据源，供命令行/工作簿数据源使用

使用方式：
    settings = load_settings("config/catalog_settings.yaml")
    settings.items_per_page  # 15
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from ..interfaces import ISettingsSource, SettingsError
from ..models import CatalogSettings, merge_settings

logger = logging.getLogger(__name__)


class FileSettingsSource(ISettingsSource):
    """文件型设置数据源"""

    def __init__(self, settings_path: str | Path):
        self.settings_path = Path(settings_path)

    def get_settings(self) -> dict[str, Any]:
        """读取设置文件（不合并默认值）"""
        if not self.settings_path.exists():
            logger.info(f"设置文件不存在，使用默认设置: {self.settings_path}")
            return {}

        try:
            with open(self.settings_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SettingsError(f"设置文件解析失败: {self.settings_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise SettingsError(f"设置文件格式错误（应为映射）: {self.settings_path}")

        # 兼容 {"settings": {...}} 包装
        if isinstance(data.get("settings"), dict):
            data = data["settings"]
        return data


def load_settings(settings_path: str | Path | None = None) -> CatalogSettings:
    """加载目录设置并合并默认值"""
    if settings_path is None:
        return CatalogSettings()
    return merge_settings(FileSettingsSource(settings_path).get_settings())


def save_settings(settings: CatalogSettings, settings_path: str | Path) -> Path:
    """保存目录设置（camelCase 键名，与设置存储一致）"""
    path = Path(settings_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(
            settings.model_dump(by_alias=True),
            f,
            allow_unicode=True,
            sort_keys=False,
        )
    return path
