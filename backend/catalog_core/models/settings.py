"""
目录设置模型 - 页面/网格/页眉页脚/卡片/水印的扁平配置聚合

对应设置存储中的 JSON 负载（camelCase 键名）。
不变量：每个字段都有默认值；部分字段的负载与默认值合并后必须总是可排版。
设置存储中可能存在过期或被外部编辑的数据，非法值一律回退到默认值而不是报错。
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

HorizontalAlign = Literal["left", "center", "right"]
VerticalAlign = Literal["start", "center", "end"]
CardStyleVariant = Literal["classic", "modern", "minimal"]
WatermarkType = Literal["logo", "text"]

# 设置界面中的取值范围
GRID_COLS_RANGE = (1, 10)
GRID_ROWS_RANGE = (1, 20)


def _clamp(value: float, low: float, high: float | None = None) -> float:
    if value < low:
        return low
    if high is not None and value > high:
        return high
    return value


class CatalogSettings(BaseModel):
    """目录设置（全部字段有默认值）"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # === 页面边距（mm） ===
    page_margin_top: float = 10
    page_margin_bottom: float = 10
    page_margin_left: float = 10
    page_margin_right: float = 10

    # === 网格 ===
    grid_cols: int = 3
    grid_rows: int = 5
    grid_gap: float = 8  # mm

    # === 页眉 ===
    header_text: str = "Catálogo de Produtos"
    header_align: HorizontalAlign = "center"
    header_text_size: float = 16
    header_text_color: str = "#333333"
    header_logo_data: str | None = None

    # === 页脚 ===
    footer_text: str = "Tecnologia e inovação"
    footer_align: HorizontalAlign = "center"
    show_page_numbers: bool = True

    # === 卡片 ===
    show_product_id: bool = True
    card_style: CardStyleVariant = "classic"
    card_border_width: float = 1
    card_border_color: str = "#e5e7eb"
    card_border_radius: float = 4

    card_img_bg: str = "#ffffff"
    card_id_bg: str = "#0284c7"
    card_desc_bg: str = "#f9fafb"
    card_id_text_color: str = "#ffffff"
    card_desc_text_color: str = "#1f2937"

    card_id_font_size: float = 10
    card_id_align_horiz: HorizontalAlign = "center"
    card_id_align_vert: VerticalAlign = "center"
    card_desc_font_size: float = 10
    card_desc_align_horiz: HorizontalAlign = "center"
    card_desc_align_vert: VerticalAlign = "center"

    # === 水印 ===
    watermark_enabled: bool = False
    watermark_type: WatermarkType = "logo"
    watermark_text: str = "CONFIDENCIAL"
    watermark_logo_data: str | None = None
    watermark_opacity: float = 0.1
    watermark_size_mm: float = 40

    @field_validator("*", mode="wrap")
    @classmethod
    def _fallback_to_default(cls, value: Any, handler, info: ValidationInfo) -> Any:
        """非法值回退到字段默认值"""
        try:
            return handler(value)
        except ValidationError:
            default = cls.model_fields[info.field_name].get_default(call_default_factory=True)
            logger.debug(f"设置项 {info.field_name} 取值非法({value!r})，回退默认值 {default!r}")
            return default

    @field_validator("grid_cols", mode="after")
    @classmethod
    def _clamp_cols(cls, value: int) -> int:
        return int(_clamp(value, *GRID_COLS_RANGE))

    @field_validator("grid_rows", mode="after")
    @classmethod
    def _clamp_rows(cls, value: int) -> int:
        return int(_clamp(value, *GRID_ROWS_RANGE))

    @field_validator(
        "page_margin_top",
        "page_margin_bottom",
        "page_margin_left",
        "page_margin_right",
        "grid_gap",
        "card_border_width",
        "card_border_radius",
        mode="after",
    )
    @classmethod
    def _non_negative(cls, value: float) -> float:
        return _clamp(value, 0)

    @field_validator(
        "header_text_size",
        "card_id_font_size",
        "card_desc_font_size",
        "watermark_size_mm",
        mode="after",
    )
    @classmethod
    def _at_least_one(cls, value: float) -> float:
        return _clamp(value, 1)

    @field_validator("watermark_opacity", mode="after")
    @classmethod
    def _clamp_opacity(cls, value: float) -> float:
        return _clamp(value, 0.0, 1.0)

    @property
    def items_per_page(self) -> int:
        """每页条数 = 列数 × 行数（全系统唯一分页口径）"""
        return self.grid_cols * self.grid_rows

    def merged(self, changes: dict[str, Any]) -> CatalogSettings:
        """在当前设置上叠加修改（同样经过校验与回退）"""
        aliases = {field.alias: name for name, field in CatalogSettings.model_fields.items()}
        data = self.model_dump()
        for key, value in changes.items():
            data[aliases.get(key, key)] = value
        return CatalogSettings.model_validate(data)


def merge_settings(partial: dict[str, Any] | CatalogSettings | None = None) -> CatalogSettings:
    """将部分设置合并到默认值之上"""
    if partial is None:
        return CatalogSettings()
    if isinstance(partial, CatalogSettings):
        return partial
    return CatalogSettings.model_validate(partial)
