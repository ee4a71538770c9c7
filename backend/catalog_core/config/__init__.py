"""
配置层 - 加载运行期配置与目录设置

职责：
- 加载 config/catalog_runtime.yaml（运行期参数）
- 加载 config/catalog_settings.yaml（目录设置，合并默认值）
- 提供类型安全的配置访问接口
"""

from .runtime_config import MM_TO_PX, RuntimeConfig, get_config, reload_config
from .settings_loader import FileSettingsSource, load_settings, save_settings

__all__ = [
    "MM_TO_PX",
    "RuntimeConfig",
    "get_config",
    "reload_config",
    "FileSettingsSource",
    "load_settings",
    "save_settings",
]
