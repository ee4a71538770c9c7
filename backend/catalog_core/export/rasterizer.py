"""
场景栅格化器 - Scene → 位图（Pillow）

职责：
1. 按整数过采样倍率绘制：输出尺寸严格为 (宽px×倍率, 高px×倍率)
2. 矩形（填充/实线或虚线边框/圆角/阴影/透明度）
3. 文字（自动换行、字间距、行高、水平/垂直对齐，超出格子裁切）
4. 图片（等比适配，加载失败时显示占位文字）
5. 水印平铺（文字徽章 -45° 或徽标，统一透明度，位于内容之下）
6. 交互预览 render_preview：同一布局按缩放倍率绘制，不经过导出修正

测试要点：
- test_bitmap_size_exact: 794×1123 ×4 → 3176×4492
- test_watermark_below_content: 水印不覆盖卡片
- test_broken_image_placeholder: 图片失败不报错
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from PIL import Image, ImageColor, ImageDraw, ImageFilter, ImageFont

from ..config.runtime_config import FontConfig
from ..interfaces import CaptureError, IRasterizer
from ..layout import PageLayout
from ..layout.styles import Shadow
from .surface import Scene, SceneNode, build_scene

logger = logging.getLogger(__name__)

# 未配置字体时按顺序尝试
_DEFAULT_FONT_FILES = {
    "regular": "DejaVuSans.ttf",
    "bold": "DejaVuSans-Bold.ttf",
    "italic": "DejaVuSans-Oblique.ttf",
}

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


@lru_cache(maxsize=256)
def _load_font(path: str | None, fallback_file: str, size: int) -> Font:
    for candidate in (path, fallback_file):
        if not candidate:
            continue
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            logger.debug(f"字体不可用: {candidate}")
    logger.debug(f"字体回退到 Pillow 默认字体 ({size}px)")
    return ImageFont.load_default(size=size)


def _rgba(color: Any, default: tuple[int, int, int, int] = (0, 0, 0, 255)) -> tuple[int, int, int, int]:
    if color is None:
        return default
    if isinstance(color, tuple):
        return color if len(color) == 4 else (*color, 255)
    try:
        return ImageColor.getcolor(color, "RGBA")
    except ValueError:
        return default


def _apply_opacity(layer: Image.Image, opacity: float) -> Image.Image:
    if opacity >= 1:
        return layer
    alpha = layer.getchannel("A").point(lambda a: int(a * max(0.0, opacity)))
    layer.putalpha(alpha)
    return layer


def _composite(canvas: Image.Image, layer: Image.Image, x: int, y: int) -> None:
    """叠加图层（超出画布的部分裁掉）"""
    left, top = max(0, -x), max(0, -y)
    right = min(layer.width, canvas.width - x)
    bottom = min(layer.height, canvas.height - y)
    if right <= left or bottom <= top:
        return
    if (left, top, right, bottom) != (0, 0, layer.width, layer.height):
        layer = layer.crop((left, top, right, bottom))
    canvas.alpha_composite(layer, (x + left, y + top))


class SceneRasterizer(IRasterizer):
    """基于 Pillow 的场景栅格化器"""

    def __init__(self, fonts: FontConfig | None = None):
        self.fonts = fonts or FontConfig()

    def font(self, size: float, bold: bool = False, italic: bool = False) -> Font:
        role = "bold" if bold else "italic" if italic else "regular"
        return _load_font(getattr(self.fonts, role), _DEFAULT_FONT_FILES[role], max(1, round(size)))

    def rasterize(
        self,
        scene: Scene,
        scale: float,
        assets: dict[str, Image.Image | None],
    ) -> Image.Image:
        if scale <= 0:
            raise CaptureError(f"栅格化倍率必须为正数: {scale}")

        size = (round(scene.width_px * scale), round(scene.height_px * scale))
        try:
            canvas = Image.new("RGBA", size, _rgba(scene.background, (255, 255, 255, 255)))
            for node in scene.ordered():
                self._draw_node(canvas, node, scale, assets)
            return canvas.convert("RGB")
        except (OSError, ValueError, MemoryError) as e:
            raise CaptureError(f"第{scene.page_number}页栅格化失败: {e}") from e

    # ------------------------------------------------------------------
    # 节点绘制
    # ------------------------------------------------------------------

    def _draw_node(self, canvas: Image.Image, node: SceneNode, scale: float, assets) -> None:
        if node.kind == "tile":
            self._draw_tile(canvas, node, scale, assets)
            return

        x0, y0 = round(node.box.x * scale), round(node.box.y * scale)
        x1, y1 = round(node.box.right * scale), round(node.box.bottom * scale)
        width, height = x1 - x0, y1 - y0
        if width <= 0 or height <= 0:
            return

        shadow = node.style.get("shadow")
        if shadow is not None:
            self._draw_shadow(canvas, (x0, y0, width, height), shadow, node.style.get("radius", 0), scale)

        layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        if node.kind == "rect":
            self._draw_rect(layer, node.style, scale)
        elif node.kind == "text":
            self._draw_text(layer, node.text or "", node.style, scale)
        elif node.kind == "image":
            image = assets.get(node.image_ref) if node.image_ref else None
            if image is not None:
                self._draw_image(layer, image, node.style)
            elif node.style.get("placeholder"):
                self._draw_text(layer, node.style["placeholder"], {
                    "color": node.style.get("color"),
                    "font_size": node.style.get("font_size", 10),
                    "text_align": "center",
                    "box_align": "center",
                }, scale)

        _composite(canvas, _apply_opacity(layer, node.style.get("opacity", 1.0)), x0, y0)

    def _draw_rect(self, layer: Image.Image, style: dict, scale: float) -> None:
        draw = ImageDraw.Draw(layer)
        w, h = layer.size
        radius = round(style.get("radius", 0) * scale)
        border = round(style.get("border_width", 0) * scale)
        fill = _rgba(style["fill"]) if style.get("fill") else None
        outline = _rgba(style.get("border_color")) if border > 0 else None

        if style.get("border_style") == "dashed" and border > 0:
            if fill:
                draw.rounded_rectangle((0, 0, w - 1, h - 1), radius=radius, fill=fill)
            self._draw_dashed_border(draw, w, h, border, outline)
            return

        draw.rounded_rectangle(
            (0, 0, w - 1, h - 1),
            radius=radius,
            fill=fill,
            outline=outline,
            width=border,
        )

    @staticmethod
    def _draw_dashed_border(draw: ImageDraw.ImageDraw, w: int, h: int, border: int, color) -> None:
        dash = max(2, border * 3)
        for x in range(0, w, dash * 2):
            end = min(x + dash, w) - 1
            draw.rectangle((x, 0, end, border - 1), fill=color)
            draw.rectangle((x, h - border, end, h - 1), fill=color)
        for y in range(0, h, dash * 2):
            end = min(y + dash, h) - 1
            draw.rectangle((0, y, border - 1, end), fill=color)
            draw.rectangle((w - border, y, w - 1, end), fill=color)

    @staticmethod
    def _draw_shadow(canvas: Image.Image, rect, shadow: Shadow, radius: float, scale: float) -> None:
        x, y, w, h = rect
        blur = max(1, round(shadow.blur * scale))
        spread = round(shadow.spread * scale)
        pad = blur * 2
        sw, sh = w + 2 * spread, h + 2 * spread
        if sw <= 0 or sh <= 0:
            return
        layer = Image.new("RGBA", (sw + 2 * pad, sh + 2 * pad), (0, 0, 0, 0))
        ImageDraw.Draw(layer).rounded_rectangle(
            (pad, pad, pad + sw - 1, pad + sh - 1),
            radius=round(radius * scale),
            fill=_rgba(shadow.color),
        )
        layer = layer.filter(ImageFilter.GaussianBlur(blur / 2))
        _composite(
            canvas,
            layer,
            x - spread - pad + round(shadow.offset_x * scale),
            y - spread - pad + round(shadow.offset_y * scale),
        )

    def _draw_image(self, layer: Image.Image, image: Image.Image, style: dict) -> None:
        w, h = layer.size
        ratio = min(w / image.width, h / image.height)
        fit_w, fit_h = max(1, round(image.width * ratio)), max(1, round(image.height * ratio))
        fitted = image.resize((fit_w, fit_h), Image.Resampling.LANCZOS)
        x = 0 if style.get("align") == "left" else (w - fit_w) // 2
        _composite(layer, fitted.convert("RGBA"), x, (h - fit_h) // 2)

    # ------------------------------------------------------------------
    # 文字
    # ------------------------------------------------------------------

    def _draw_text(self, layer: Image.Image, text: str, style: dict, scale: float) -> None:
        w, h = layer.size
        draw = ImageDraw.Draw(layer)

        if style.get("background"):
            draw.rectangle((0, 0, w - 1, h - 1), fill=_rgba(style["background"]))
        border_right = round(style.get("border_right_width", 0) * scale)
        if border_right > 0:
            draw.rectangle((w - border_right, 0, w - 1, h - 1), fill=_rgba(style.get("border_color")))

        if not text:
            return

        font_px = style.get("font_size", 10) * scale
        font = self.font(font_px, bold=style.get("bold", False), italic=style.get("italic", False))
        spacing = style.get("letter_spacing", 0.0) * scale
        pad_x = (style.get("padding_x", 0.0) + style.get("margin", 0.0)) * scale
        pad_y = (style.get("padding_y", 0.0) + style.get("margin", 0.0)) * scale
        max_w = max(1.0, w - border_right - 2 * pad_x)

        if style.get("wrap", True):
            lines = self._wrap(text, font, max_w, spacing)
        else:
            lines = [text]

        line_h = font_px * style.get("line_height", 1.2)
        total_h = line_h * len(lines)
        box_align = style.get("box_align", "center")
        if box_align == "flex-start":
            top = pad_y
        elif box_align == "flex-end":
            top = h - pad_y - total_h
        else:
            top = (h - total_h) / 2

        fill = _rgba(style.get("color"))
        text_align = style.get("text_align", "center")
        for i, line in enumerate(lines):
            line_w = self._measure(line, font, spacing)
            if text_align == "left":
                x = pad_x
            elif text_align == "right":
                x = w - border_right - pad_x - line_w
            else:
                x = pad_x + (max_w - line_w) / 2
            y = top + i * line_h + line_h / 2
            self._draw_line(draw, x, y, line, font, fill, spacing)

    @staticmethod
    def _measure(text: str, font: Font, spacing: float) -> float:
        if not text:
            return 0.0
        if spacing == 0:
            return font.getlength(text)
        return sum(font.getlength(ch) for ch in text) + spacing * (len(text) - 1)

    def _draw_line(self, draw, x: float, y: float, text: str, font: Font, fill, spacing: float) -> None:
        if spacing == 0:
            draw.text((x, y), text, font=font, fill=fill, anchor="lm")
            return
        cur_x = x
        for ch in text:
            draw.text((cur_x, y), ch, font=font, fill=fill, anchor="lm")
            cur_x += font.getlength(ch) + spacing

    def _wrap(self, text: str, font: Font, max_w: float, spacing: float) -> list[str]:
        lines: list[str] = []
        for para in text.split("\n"):
            words = para.split()
            if not words:
                lines.append("")
                continue
            cur = words[0]
            for word in words[1:]:
                test = f"{cur} {word}"
                if self._measure(test, font, spacing) <= max_w:
                    cur = test
                else:
                    lines.extend(self._wrap_chars(cur, font, max_w, spacing))
                    cur = word
            lines.extend(self._wrap_chars(cur, font, max_w, spacing))
        return lines

    def _wrap_chars(self, text: str, font: Font, max_w: float, spacing: float) -> list[str]:
        """单词本身超宽时按字符断开"""
        if self._measure(text, font, spacing) <= max_w:
            return [text]
        lines, cur = [], ""
        for ch in text:
            test = cur + ch
            if cur and self._measure(test, font, spacing) > max_w:
                lines.append(cur)
                cur = ch
            else:
                cur = test
        if cur:
            lines.append(cur)
        return lines

    # ------------------------------------------------------------------
    # 水印
    # ------------------------------------------------------------------

    def _draw_tile(self, canvas: Image.Image, node: SceneNode, scale: float, assets) -> None:
        tile = self._watermark_tile(node, scale, assets)
        if tile is None:
            return

        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        tw, th = tile.size
        # background-position: center + repeat
        start_x = (canvas.width - tw) // 2 % tw - tw
        start_y = (canvas.height - th) // 2 % th - th
        for y in range(start_y, canvas.height, th):
            for x in range(start_x, canvas.width, tw):
                _composite(layer, tile, x, y)

        canvas.alpha_composite(_apply_opacity(layer, node.style.get("opacity", 1.0)))

    def _watermark_tile(self, node: SceneNode, scale: float, assets) -> Image.Image | None:
        badge = node.style.get("badge")
        if badge is not None:
            size = max(1, round(badge.size * scale))
            tile = Image.new("RGBA", (size, size), (0, 0, 0, 0))
            color = _rgba(badge.color)
            color = (*color[:3], round(255 * badge.opacity))
            font = self.font(badge.font_size * scale, bold=badge.bold)
            ImageDraw.Draw(tile).text((size / 2, size / 2), badge.text, font=font, fill=color, anchor="mm")
            # SVG rotate(-45) 为逆时针；PIL rotate 正角度为逆时针
            return tile.rotate(-badge.angle, resample=Image.Resampling.BICUBIC)

        image = assets.get(node.image_ref) if node.image_ref else None
        if image is None:
            return None
        tile_w = max(1, round(node.style["tile_width"] * scale))
        if node.style.get("tile_height"):
            tile_h = max(1, round(node.style["tile_height"] * scale))
        else:
            tile_h = max(1, round(image.height * tile_w / image.width))
        return image.convert("RGBA").resize((tile_w, tile_h), Image.Resampling.LANCZOS)


def render_preview(
    layout: PageLayout,
    zoom: float = 1.0,
    assets: dict[str, Image.Image | None] | None = None,
    rasterizer: IRasterizer | None = None,
) -> Image.Image:
    """交互预览：按缩放倍率绘制，不做导出修正"""
    scene = build_scene(layout)
    return (rasterizer or SceneRasterizer()).rasterize(scene, zoom, assets or {})
