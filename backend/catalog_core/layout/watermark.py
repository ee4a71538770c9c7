"""
水印生成器 - 水印设置 → 可平铺的背景图描述

职责：
1. 文字模式：生成 300×300 的 -45° 斜向文字徽章（固定内部字号，不受卡片字号影响），
   以自包含的 SVG data URI 返回，整页平铺
2. 徽标模式：使用水印徽标（未设置时回退页眉徽标），按 watermarkSizeMm 换算像素平铺
3. 统一透明度；层级位于页面背景之上、所有卡片与文字之下
4. 水印关闭时不产生任何描述

测试要点：
- test_disabled_watermark: 关闭时返回None
- test_text_badge_svg: SVG 内含转义后的文字与 -45° 旋转
- test_logo_fallback_to_header: 徽标回退
- test_logo_tile_size: mm → px 换算
"""

from __future__ import annotations

import logging
from typing import Literal
from urllib.parse import quote
from xml.sax.saxutils import escape

from pydantic import BaseModel, ConfigDict

from ..config import MM_TO_PX
from ..models import CatalogSettings

logger = logging.getLogger(__name__)

TEXT_TILE_SIZE = 300
TEXT_BADGE_FONT_SIZE = 24
TEXT_BADGE_ANGLE = -45.0
TEXT_BADGE_COLOR = "#9ca3af"
TEXT_BADGE_OPACITY = 0.5

# 层级：页面背景 < 水印 < 内容
WATERMARK_Z_INDEX = 0
CONTENT_Z_INDEX = 10


class TextBadge(BaseModel):
    """文字徽章参数（与SVG内容一致，供栅格化器直接绘制）"""
    model_config = ConfigDict(frozen=True)

    text: str
    size: int = TEXT_TILE_SIZE
    font_size: float = TEXT_BADGE_FONT_SIZE
    angle: float = TEXT_BADGE_ANGLE
    color: str = TEXT_BADGE_COLOR
    opacity: float = TEXT_BADGE_OPACITY
    bold: bool = True


class WatermarkSpec(BaseModel):
    """水印背景图描述"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["text", "logo"]
    image_uri: str
    tile_width_px: float
    tile_height_px: float | None = None  # None 表示按图片宽高比自适应
    opacity: float
    repeat: Literal["repeat"] = "repeat"
    position: Literal["center"] = "center"
    z_index: int = WATERMARK_Z_INDEX
    badge: TextBadge | None = None


def build_text_badge_svg(text: str) -> str:
    """生成文字徽章的 SVG data URI"""
    svg = (
        f'<svg width="{TEXT_TILE_SIZE}" height="{TEXT_TILE_SIZE}" xmlns="http://www.w3.org/2000/svg">'
        f"<style>.text {{ fill: {TEXT_BADGE_COLOR}; font-size: {TEXT_BADGE_FONT_SIZE}px; "
        f"font-family: Arial, sans-serif; font-weight: bold; opacity: {TEXT_BADGE_OPACITY}; }}</style>"
        f'<text x="50%" y="50%" transform="rotate({TEXT_BADGE_ANGLE:g} {TEXT_TILE_SIZE // 2} {TEXT_TILE_SIZE // 2})" '
        f'text-anchor="middle" class="text">{escape(text)}</text>'
        "</svg>"
    )
    return f"data:image/svg+xml,{quote(svg)}"


class WatermarkGenerator:
    """水印生成器"""

    def __init__(self, mm_to_px: float = MM_TO_PX, default_text: str = "CATÁLOGO"):
        self.mm_to_px = mm_to_px
        self.default_text = default_text

    def generate(self, settings: CatalogSettings) -> WatermarkSpec | None:
        """生成水印描述（关闭或无可用图片时返回None）"""
        if not settings.watermark_enabled:
            return None

        if settings.watermark_type == "text":
            text = settings.watermark_text or self.default_text
            return WatermarkSpec(
                kind="text",
                image_uri=build_text_badge_svg(text),
                tile_width_px=TEXT_TILE_SIZE,
                tile_height_px=TEXT_TILE_SIZE,
                opacity=settings.watermark_opacity,
                badge=TextBadge(text=text),
            )

        logo = settings.watermark_logo_data or settings.header_logo_data
        if not logo:
            logger.debug("水印为徽标模式但未设置任何徽标，跳过水印")
            return None

        return WatermarkSpec(
            kind="logo",
            image_uri=logo,
            tile_width_px=settings.watermark_size_mm * self.mm_to_px,
            opacity=settings.watermark_opacity,
        )
