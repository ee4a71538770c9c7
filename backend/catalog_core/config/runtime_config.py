"""
运行期配置 - 读取 config/catalog_runtime.yaml

职责：
- 加载页面尺寸/导出倍率/字体/存储地址等运行参数
- 提供环境变量覆盖机制
- 类型安全的配置访问
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

# 96 DPI 下 1mm ≈ 3.7795px
MM_TO_PX = 3.7795


class PageConfig(BaseModel):
    """页面尺寸配置（纵向，固定物理尺寸）"""

    width_mm: float = 210.0
    height_mm: float = 297.0
    mm_to_px: float = MM_TO_PX

    @property
    def width_px(self) -> int:
        return round(self.width_mm * self.mm_to_px)

    @property
    def height_px(self) -> int:
        return round(self.height_mm * self.mm_to_px)


class ExportConfig(BaseModel):
    """导出配置"""

    capture_scale: int = 4
    # 经验校准值，换栅格化后端时需要重新标定
    font_shrink_factor: float = 0.85
    export_line_height: float = 1.0
    export_letter_spacing_px: float = -0.2
    default_quality: float = 0.9
    pdf_filename: str = "catalogo.pdf"
    png_filename_pattern: str = "catalogo_p{page}.png"
    background_color: str = "#ffffff"


class AssetConfig(BaseModel):
    """图片资源配置"""

    timeout_sec: float = 15.0
    uploads_dir: Path | None = None


class StorageConfig(BaseModel):
    """存储协作方配置"""

    api_base_url: str = "http://localhost:3000/api"
    uploads_url: str = "http://localhost:3000/uploads"
    all_products_limit: int = 9999
    timeout_sec: float = 30.0


class FontConfig(BaseModel):
    """字体配置（为空时按 DejaVu → Pillow 默认字体 顺序回退）"""

    regular: str | None = None
    bold: str | None = None
    italic: str | None = None


class LabelConfig(BaseModel):
    """页面固定文案"""

    page_label: str = "Página {page}"
    no_image: str = "Sem Imagem"
    default_watermark_text: str = "CATÁLOGO"


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = False


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 基础路径
    base_dir: Path = Path(".")
    storage_dir: Path = Path("storage")
    output_dir: Path = Path("storage/exports")
    settings_path: Path = Path("config/catalog_settings.yaml")

    # 各子配置
    page: PageConfig = Field(default_factory=PageConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    assets: AssetConfig = Field(default_factory=AssetConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    fonts: FontConfig = Field(default_factory=FontConfig)
    labels: LabelConfig = Field(default_factory=LabelConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "CATALOG_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        runtime_opts = data.get("runtime_options", {})

        config = cls(
            page=PageConfig(**cls._extract(runtime_opts, "page")),
            export=ExportConfig(**cls._extract(runtime_opts, "export")),
            assets=AssetConfig(**cls._extract(runtime_opts, "assets")),
            storage=StorageConfig(**cls._extract(runtime_opts, "storage")),
            fonts=FontConfig(**cls._extract(runtime_opts, "fonts")),
            labels=LabelConfig(**cls._extract(runtime_opts, "labels")),
            logging=LoggingConfig(**cls._extract(runtime_opts, "logging")),
        )

        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置"""
        section = data.get(key) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对路径配置为绝对路径（基于配置文件所在目录）"""
        if self.assets.uploads_dir and not self.assets.uploads_dir.is_absolute():
            self.assets.uploads_dir = (base_dir / self.assets.uploads_dir).resolve()
        for name in ("regular", "bold", "italic"):
            font_path = getattr(self.fonts, name)
            if font_path and not Path(font_path).is_absolute():
                candidate = base_dir / font_path
                if candidate.exists():
                    setattr(self.fonts, name, str(candidate.resolve()))

    def get_log_file(self) -> Path:
        """获取日志文件路径"""
        return self.storage_dir / "logs" / "export.log"

    def ensure_dirs(self) -> None:
        """确保必要目录存在"""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)


# 全局配置实例
_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        default_path = Path("config/catalog_runtime.yaml")
        _config = RuntimeConfig.from_yaml(default_path)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or "config/catalog_runtime.yaml"
    _config = RuntimeConfig.from_yaml(path)
    return _config
