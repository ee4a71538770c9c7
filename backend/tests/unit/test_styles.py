"""
样式解析与水印生成单元测试
"""

from urllib.parse import unquote

import pytest

from catalog_core.config import MM_TO_PX
from catalog_core.layout import StyleResolver, WatermarkGenerator, map_box_align, map_text_align
from catalog_core.layout.styles import safe_color
from catalog_core.layout.watermark import CONTENT_Z_INDEX, WATERMARK_Z_INDEX
from catalog_core.models import CatalogSettings


class TestStyleResolver:
    """样式解析测试"""

    @pytest.mark.parametrize(
        "value,expected",
        [("left", "left"), ("center", "center"), ("right", "right"), ("justify", "center"), ("", "center")],
    )
    def test_text_align_mapping(self, value, expected):
        assert map_text_align(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [("start", "flex-start"), ("center", "center"), ("end", "flex-end"), ("top", "center")],
    )
    def test_box_align_mapping(self, value, expected):
        assert map_box_align(value) == expected

    def test_id_and_desc_cells(self):
        """测试编号格与描述格样式"""
        settings = CatalogSettings(
            card_id_font_size=14,
            card_id_align_horiz="left",
            card_id_align_vert="end",
            card_desc_text_color="#123456",
        )
        styles = StyleResolver().resolve(settings)
        assert styles.id_cell.font_size == 14
        assert styles.id_cell.text_align == "left"
        assert styles.id_cell.box_align == "flex-end"
        assert styles.id_cell.background == "#0284c7"
        assert styles.desc_cell.color == "#123456"

    def test_modern_shadow_only(self):
        """测试仅 modern 变体有阴影"""
        resolver = StyleResolver()
        assert resolver.resolve_card(CatalogSettings(card_style="modern")).shadow is not None
        assert resolver.resolve_card(CatalogSettings(card_style="classic")).shadow is None
        assert resolver.resolve_card(CatalogSettings(card_style="minimal")).shadow is None

    def test_invalid_color_fallback(self):
        """测试非法颜色回退默认色"""
        settings = CatalogSettings(card_id_bg="not-a-color", card_border_color="")
        card = StyleResolver().resolve_card(settings)
        assert card.border_color == "#e5e7eb"
        assert StyleResolver().resolve_id_cell(settings).background == "#0284c7"
        assert safe_color("#abc", "#000000") == "#abc"

    def test_idempotent(self, default_settings):
        """测试幂等"""
        resolver = StyleResolver()
        assert resolver.resolve(default_settings) == resolver.resolve(default_settings)


class TestWatermarkGenerator:
    """水印生成测试"""

    def test_disabled_watermark(self, default_settings):
        """测试关闭时不产生描述"""
        assert WatermarkGenerator().generate(default_settings) is None

    def test_text_badge(self):
        """测试文字徽章"""
        settings = CatalogSettings(watermark_enabled=True, watermark_type="text", watermark_text="A&B <Ltda>")
        spec = WatermarkGenerator().generate(settings)
        assert spec.kind == "text"
        assert spec.tile_width_px == 300
        assert spec.tile_height_px == 300
        assert spec.badge.text == "A&B <Ltda>"
        assert spec.badge.font_size == 24
        svg = unquote(spec.image_uri.split(",", 1)[1])
        assert svg.startswith("<svg")
        assert "A&amp;B &lt;Ltda&gt;" in svg
        assert "rotate(-45 150 150)" in svg

    def test_text_badge_independent_of_card_fonts(self):
        a = WatermarkGenerator().generate(CatalogSettings(watermark_enabled=True, watermark_type="text"))
        b = WatermarkGenerator().generate(CatalogSettings(
            watermark_enabled=True, watermark_type="text", card_desc_font_size=30,
        ))
        assert a == b

    def test_empty_text_uses_default(self):
        settings = CatalogSettings(watermark_enabled=True, watermark_type="text", watermark_text="")
        assert WatermarkGenerator(default_text="CATÁLOGO").generate(settings).badge.text == "CATÁLOGO"

    def test_logo_tile_size(self, png_data_uri):
        """测试徽标尺寸 mm → px"""
        settings = CatalogSettings(
            watermark_enabled=True,
            watermark_logo_data=png_data_uri,
            watermark_size_mm=50,
            watermark_opacity=0.3,
        )
        spec = WatermarkGenerator().generate(settings)
        assert spec.kind == "logo"
        assert spec.image_uri == png_data_uri
        assert spec.tile_width_px == pytest.approx(50 * MM_TO_PX)
        assert spec.tile_height_px is None
        assert spec.opacity == 0.3

    def test_logo_fallback_to_header(self, png_data_uri):
        """测试徽标回退到页眉徽标"""
        settings = CatalogSettings(watermark_enabled=True, header_logo_data=png_data_uri)
        assert WatermarkGenerator().generate(settings).image_uri == png_data_uri

    def test_logo_mode_without_any_logo(self):
        settings = CatalogSettings(watermark_enabled=True, watermark_type="logo")
        assert WatermarkGenerator().generate(settings) is None

    def test_z_order(self, png_data_uri):
        """测试水印层级低于内容"""
        settings = CatalogSettings(watermark_enabled=True, header_logo_data=png_data_uri)
        spec = WatermarkGenerator().generate(settings)
        assert spec.z_index == WATERMARK_Z_INDEX < CONTENT_Z_INDEX
