"""
排版模块 - 样式解析/水印/页面结构

子模块：
- styles: 样式解析（设置 → 具体样式值）
- watermark: 水印生成（文字徽章/徽标平铺）
- engine: 排版引擎（页眉/网格/页脚几何与卡片分配）
"""

from .styles import ResolvedStyles, StyleResolver, map_box_align, map_text_align
from .watermark import WatermarkGenerator, WatermarkSpec
from .engine import (
    Box,
    CardCell,
    EmptySlot,
    FooterRegion,
    GridRegion,
    HeaderRegion,
    LayoutEngine,
    PageLayout,
    TextCell,
)

__all__ = [
    "StyleResolver",
    "ResolvedStyles",
    "map_text_align",
    "map_box_align",
    "WatermarkGenerator",
    "WatermarkSpec",
    "LayoutEngine",
    "PageLayout",
    "Box",
    "HeaderRegion",
    "FooterRegion",
    "GridRegion",
    "CardCell",
    "EmptySlot",
    "TextCell",
]
