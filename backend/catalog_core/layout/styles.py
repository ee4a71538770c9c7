"""
样式解析器 - 目录设置 → 卡片/编号格/描述格的具体样式值

职责：
1. 卡片容器样式（背景/边框/圆角/变体阴影）
2. 编号格与描述格样式（背景/文字颜色/字号/水平对齐/垂直对齐）
3. 页眉页脚文字样式

纯函数，无状态，无错误分支：设置存储中的过期数据一律回退到安全默认值。

测试要点：
- test_alignment_mapping: 水平/垂直对齐映射，未知值回退center
- test_modern_shadow: 仅modern变体有阴影
- test_invalid_color_fallback: 非法颜色回退默认色
"""

from __future__ import annotations

from typing import Literal

from PIL import ImageColor
from pydantic import BaseModel, ConfigDict

from ..models import CatalogSettings

TextAlign = Literal["left", "center", "right"]
BoxAlign = Literal["flex-start", "center", "flex-end"]

_TEXT_ALIGN: dict[str, TextAlign] = {"left": "left", "center": "center", "right": "right"}
_BOX_ALIGN: dict[str, BoxAlign] = {"start": "flex-start", "center": "center", "end": "flex-end"}


class Shadow(BaseModel):
    """阴影（CSS box-shadow 语义）"""
    model_config = ConfigDict(frozen=True)

    offset_x: float = 0
    offset_y: float = 4
    blur: float = 6
    spread: float = -1
    color: tuple[int, int, int, int] = (0, 0, 0, 26)  # rgba(0,0,0,0.1)


class CardStyle(BaseModel):
    """卡片容器样式"""
    model_config = ConfigDict(frozen=True)

    variant: str
    background: str
    border_width: float
    border_color: str
    border_radius: float
    shadow: Shadow | None = None


class TextCellStyle(BaseModel):
    """信息条文字格样式"""
    model_config = ConfigDict(frozen=True)

    background: str
    color: str
    font_size: float
    text_align: TextAlign
    box_align: BoxAlign
    line_height: float = 1.1
    letter_spacing: float = 0.0
    padding_x: float = 2.0


class HeaderStyle(BaseModel):
    """页眉文字样式"""
    model_config = ConfigDict(frozen=True)

    color: str
    font_size: float
    text_align: TextAlign
    bold: bool = True


class FooterStyle(BaseModel):
    """页脚文字样式"""
    model_config = ConfigDict(frozen=True)

    color: str = "#6b7280"
    font_size: float = 12
    text_align: TextAlign = "center"
    border_color: str = "#e5e7eb"


class ResolvedStyles(BaseModel):
    """解析后的整页样式"""
    model_config = ConfigDict(frozen=True)

    card: CardStyle
    id_cell: TextCellStyle
    desc_cell: TextCellStyle
    header: HeaderStyle
    footer: FooterStyle


def map_text_align(value: str) -> TextAlign:
    """水平对齐 left|center|right → text-align，未知值为center"""
    return _TEXT_ALIGN.get(value, "center")


def map_box_align(value: str) -> BoxAlign:
    """垂直对齐 start|center|end → 交叉轴对齐，未知值为center"""
    return _BOX_ALIGN.get(value, "center")


def safe_color(value: str | None, default: str) -> str:
    """颜色值无法解析时回退默认色"""
    if not value:
        return default
    try:
        ImageColor.getrgb(value)
    except ValueError:
        return default
    return value


def _default(field_name: str) -> str:
    return CatalogSettings.model_fields[field_name].default


class StyleResolver:
    """样式解析器"""

    def resolve(self, settings: CatalogSettings) -> ResolvedStyles:
        """解析整页样式"""
        return ResolvedStyles(
            card=self.resolve_card(settings),
            id_cell=self.resolve_id_cell(settings),
            desc_cell=self.resolve_desc_cell(settings),
            header=self.resolve_header(settings),
            footer=FooterStyle(
                text_align=map_text_align(settings.footer_align),
            ),
        )

    def resolve_card(self, settings: CatalogSettings) -> CardStyle:
        variant = settings.card_style if settings.card_style in ("classic", "modern", "minimal") else "classic"
        return CardStyle(
            variant=variant,
            background=self._color(settings, "card_img_bg"),
            border_width=settings.card_border_width,
            border_color=self._color(settings, "card_border_color"),
            border_radius=settings.card_border_radius,
            shadow=Shadow() if variant == "modern" else None,
        )

    def resolve_id_cell(self, settings: CatalogSettings) -> TextCellStyle:
        return TextCellStyle(
            background=self._color(settings, "card_id_bg"),
            color=self._color(settings, "card_id_text_color"),
            font_size=settings.card_id_font_size,
            text_align=map_text_align(settings.card_id_align_horiz),
            box_align=map_box_align(settings.card_id_align_vert),
        )

    def resolve_desc_cell(self, settings: CatalogSettings) -> TextCellStyle:
        return TextCellStyle(
            background=self._color(settings, "card_desc_bg"),
            color=self._color(settings, "card_desc_text_color"),
            font_size=settings.card_desc_font_size,
            text_align=map_text_align(settings.card_desc_align_horiz),
            box_align=map_box_align(settings.card_desc_align_vert),
        )

    def resolve_header(self, settings: CatalogSettings) -> HeaderStyle:
        return HeaderStyle(
            color=self._color(settings, "header_text_color"),
            font_size=settings.header_text_size,
            text_align=map_text_align(settings.header_align),
        )

    @staticmethod
    def _color(settings: CatalogSettings, field_name: str) -> str:
        return safe_color(getattr(settings, field_name), _default(field_name))
