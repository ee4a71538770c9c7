"""
排版引擎 - (单页产品, 目录设置) → 页面结构描述

职责：
1. 页眉区域（徽标+文字，高度固定预留，与内容无关）
2. 内容网格：严格 列×行，统一间距；按行优先填充卡片，剩余格为虚线空位
   （空位不挤压相邻格，网格始终保持矩形）
3. 页脚区域：页码（可关闭）+ 页脚文字
4. 卡片：图片区（等比适配居中，无图时占位文字）+ 信息条
   信息条显示编号时按 30%/70% 分给编号/描述，否则描述占 100%

所有几何量以 96 DPI 下的页面像素表示，与交互预览的缩放无关。
纯函数：相同设置与相同产品切片必然得到相同结构描述。

测试要点：
- test_grid_is_rectangular: items + 空位 == 列×行
- test_info_strip_split: 30%/70% 与 100%
- test_row_major_order: 行优先
- test_idempotent: 幂等
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ..config import MM_TO_PX, RuntimeConfig
from ..models import CatalogSettings, Page
from .styles import CardStyle, FooterStyle, HeaderStyle, StyleResolver, TextCellStyle
from .watermark import CONTENT_Z_INDEX, WatermarkGenerator, WatermarkSpec

# 版式常量（页面像素）
HEADER_HEIGHT_MM = 25
HEADER_GAP_PX = 8
HEADER_PADDING_BOTTOM_PX = 8
HEADER_BORDER_PX = 2
HEADER_TEXT_PADDING_PX = 16
LOGO_HEIGHT_MM = 20
LOGO_MAX_WIDTH_PX = 150

FOOTER_HEIGHT_MM = 15
FOOTER_GAP_PX = 8
FOOTER_BORDER_PX = 1
FOOTER_LABEL_WIDTH_PX = 80
FOOTER_TEXT_PADDING_PX = 16

INFO_STRIP_HEIGHT_PX = 45
INFO_BORDER_PX = 1
IMAGE_PADDING_PX = 4
ID_FRACTION = 0.3

RULE_COLOR = "#e5e7eb"
EMPTY_SLOT_OPACITY = 0.3
EMPTY_SLOT_RADIUS_PX = 4


class Box(BaseModel):
    """矩形（页面像素）"""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def inset(self, dx: float, dy: float | None = None) -> Box:
        dy = dx if dy is None else dy
        return Box(
            x=self.x + dx,
            y=self.y + dy,
            width=max(0.0, self.width - 2 * dx),
            height=max(0.0, self.height - 2 * dy),
        )


class HeaderRegion(BaseModel):
    """页眉区域"""
    model_config = ConfigDict(frozen=True)

    box: Box
    text: str
    text_box: Box
    style: HeaderStyle
    logo: str | None = None
    logo_box: Box | None = None
    border_bottom_px: float = HEADER_BORDER_PX
    border_color: str = RULE_COLOR


class FooterRegion(BaseModel):
    """页脚区域"""
    model_config = ConfigDict(frozen=True)

    box: Box
    text: str
    text_box: Box
    style: FooterStyle
    page_label: str | None = None
    page_label_box: Box | None = None
    border_top_px: float = FOOTER_BORDER_PX


class TextCell(BaseModel):
    """信息条文字格"""
    model_config = ConfigDict(frozen=True)

    role: Literal["id", "description"]
    box: Box
    text: str
    fraction: float
    style: TextCellStyle
    border_right_px: float = 0


class CardCell(BaseModel):
    """产品卡片格"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["card"] = "card"
    index: int
    row: int
    col: int
    box: Box
    z_index: int = CONTENT_Z_INDEX
    product_id: str
    style: CardStyle
    image_box: Box
    image: str | None = None
    placeholder: str  # 无图或图片加载失败时显示
    info_box: Box
    info_border_color: str
    id_cell: TextCell | None = None
    desc_cell: TextCell


class EmptySlot(BaseModel):
    """空位（虚线、低透明度）"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["empty"] = "empty"
    index: int
    row: int
    col: int
    box: Box
    z_index: int = CONTENT_Z_INDEX
    border_style: Literal["dashed"] = "dashed"
    border_color: str = RULE_COLOR
    border_radius: float = EMPTY_SLOT_RADIUS_PX
    opacity: float = EMPTY_SLOT_OPACITY


GridCell = Annotated[Union[CardCell, EmptySlot], Field(discriminator="kind")]


class GridRegion(BaseModel):
    """内容网格"""
    model_config = ConfigDict(frozen=True)

    box: Box
    columns: int
    rows: int
    gap_px: float
    cell_width: float
    cell_height: float
    cells: list[GridCell]

    @property
    def cards(self) -> list[CardCell]:
        return [c for c in self.cells if isinstance(c, CardCell)]

    @property
    def empty_slots(self) -> list[EmptySlot]:
        return [c for c in self.cells if isinstance(c, EmptySlot)]


class PageLayout(BaseModel):
    """页面结构描述"""
    model_config = ConfigDict(frozen=True)

    page_number: int
    width_px: int
    height_px: int
    background: str = "#ffffff"
    content_box: Box
    watermark: WatermarkSpec | None = None
    header: HeaderRegion
    grid: GridRegion
    footer: FooterRegion

    def image_refs(self) -> list[str]:
        """页面中嵌入的全部图片引用（去重，保持出现顺序）"""
        refs: list[str] = []
        if self.watermark and self.watermark.kind == "logo":
            refs.append(self.watermark.image_uri)
        if self.header.logo:
            refs.append(self.header.logo)
        for card in self.grid.cards:
            if card.image:
                refs.append(card.image)
        return list(dict.fromkeys(refs))


class LayoutEngine:
    """排版引擎"""

    def __init__(
        self,
        page_width_px: int = 794,
        page_height_px: int = 1123,
        mm_to_px: float = MM_TO_PX,
        page_label: str = "Página {page}",
        no_image_text: str = "Sem Imagem",
        background: str = "#ffffff",
        style_resolver: StyleResolver | None = None,
        watermark_generator: WatermarkGenerator | None = None,
    ):
        self.page_width_px = page_width_px
        self.page_height_px = page_height_px
        self.mm_to_px = mm_to_px
        self.page_label = page_label
        self.no_image_text = no_image_text
        self.background = background
        self.style_resolver = style_resolver or StyleResolver()
        self.watermark_generator = watermark_generator or WatermarkGenerator(mm_to_px)

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> LayoutEngine:
        return cls(
            page_width_px=config.page.width_px,
            page_height_px=config.page.height_px,
            mm_to_px=config.page.mm_to_px,
            page_label=config.labels.page_label,
            no_image_text=config.labels.no_image,
            background=config.export.background_color,
            watermark_generator=WatermarkGenerator(
                config.page.mm_to_px, config.labels.default_watermark_text
            ),
        )

    def mm(self, value: float) -> float:
        return value * self.mm_to_px

    def layout(self, page: Page, settings: CatalogSettings) -> PageLayout:
        """生成单页结构描述"""
        items_per_page = settings.items_per_page
        if len(page.items) > items_per_page:
            raise ValueError(
                f"第{page.page_number}页产品数({len(page.items)})超过每页条数({items_per_page})"
            )

        styles = self.style_resolver.resolve(settings)

        content = Box(
            x=self.mm(settings.page_margin_left),
            y=self.mm(settings.page_margin_top),
            width=max(0.0, self.page_width_px - self.mm(settings.page_margin_left + settings.page_margin_right)),
            height=max(0.0, self.page_height_px - self.mm(settings.page_margin_top + settings.page_margin_bottom)),
        )

        header = self._layout_header(content, settings, styles.header)
        footer = self._layout_footer(content, settings, page.page_number, styles.footer)

        grid_top = header.box.bottom + HEADER_GAP_PX
        grid_bottom = footer.box.y - FOOTER_GAP_PX
        grid_box = Box(
            x=content.x,
            y=grid_top,
            width=content.width,
            height=max(0.0, grid_bottom - grid_top),
        )
        grid = self._layout_grid(grid_box, page, settings, styles)

        return PageLayout(
            page_number=page.page_number,
            width_px=self.page_width_px,
            height_px=self.page_height_px,
            background=self.background,
            content_box=content,
            watermark=self.watermark_generator.generate(settings),
            header=header,
            grid=grid,
            footer=footer,
        )

    def _layout_header(
        self, content: Box, settings: CatalogSettings, style: HeaderStyle
    ) -> HeaderRegion:
        height = min(self.mm(HEADER_HEIGHT_MM), content.height)
        box = Box(x=content.x, y=content.y, width=content.width, height=height)
        inner_height = max(0.0, height - HEADER_PADDING_BOTTOM_PX - HEADER_BORDER_PX)

        logo_box = None
        text_x = box.x
        if settings.header_logo_data:
            logo_height = min(self.mm(LOGO_HEIGHT_MM), inner_height)
            logo_box = Box(
                x=box.x,
                y=box.y + (inner_height - logo_height) / 2,
                width=min(LOGO_MAX_WIDTH_PX, box.width),
                height=logo_height,
            )
            text_x = logo_box.right

        text_box = Box(
            x=text_x + HEADER_TEXT_PADDING_PX,
            y=box.y,
            width=max(0.0, box.right - text_x - 2 * HEADER_TEXT_PADDING_PX),
            height=inner_height,
        )
        return HeaderRegion(
            box=box,
            text=settings.header_text,
            text_box=text_box,
            style=style,
            logo=settings.header_logo_data,
            logo_box=logo_box,
        )

    def _layout_footer(
        self,
        content: Box,
        settings: CatalogSettings,
        page_number: int,
        style: FooterStyle,
    ) -> FooterRegion:
        height = min(self.mm(FOOTER_HEIGHT_MM), content.height)
        box = Box(x=content.x, y=content.bottom - height, width=content.width, height=height)

        label = None
        label_box = None
        label_width = 0.0
        if settings.show_page_numbers:
            label = self.page_label.format(page=page_number)
            label_width = min(FOOTER_LABEL_WIDTH_PX, box.width)
            label_box = Box(x=box.x, y=box.y, width=label_width, height=height)

        text_box = Box(
            x=box.x + label_width + FOOTER_TEXT_PADDING_PX,
            y=box.y,
            width=max(0.0, box.width - label_width - 2 * FOOTER_TEXT_PADDING_PX),
            height=height,
        )
        return FooterRegion(
            box=box,
            text=settings.footer_text,
            text_box=text_box,
            style=style,
            page_label=label,
            page_label_box=label_box,
        )

    def _layout_grid(self, grid_box: Box, page: Page, settings: CatalogSettings, styles) -> GridRegion:
        cols, rows = settings.grid_cols, settings.grid_rows
        gap = self.mm(settings.grid_gap)
        cell_width = max(0.0, (grid_box.width - gap * (cols - 1)) / cols)
        cell_height = max(0.0, (grid_box.height - gap * (rows - 1)) / rows)

        cells: list[CardCell | EmptySlot] = []
        for index in range(cols * rows):
            row, col = divmod(index, cols)
            box = Box(
                x=grid_box.x + col * (cell_width + gap),
                y=grid_box.y + row * (cell_height + gap),
                width=cell_width,
                height=cell_height,
            )
            if index < len(page.items):
                cells.append(self._layout_card(index, row, col, box, page.items[index], settings, styles))
            else:
                cells.append(EmptySlot(index=index, row=row, col=col, box=box))

        return GridRegion(
            box=grid_box,
            columns=cols,
            rows=rows,
            gap_px=gap,
            cell_width=cell_width,
            cell_height=cell_height,
            cells=cells,
        )

    def _layout_card(self, index, row, col, box: Box, product, settings: CatalogSettings, styles) -> CardCell:
        card_style: CardStyle = styles.card
        inner = box.inset(card_style.border_width)

        info_height = min(INFO_STRIP_HEIGHT_PX, inner.height)
        image_area = Box(x=inner.x, y=inner.y, width=inner.width, height=inner.height - info_height)
        info_box = Box(x=inner.x, y=image_area.bottom, width=inner.width, height=info_height)
        # 信息条顶部 1px 分隔线
        strip = Box(
            x=info_box.x,
            y=info_box.y + INFO_BORDER_PX,
            width=info_box.width,
            height=max(0.0, info_box.height - INFO_BORDER_PX),
        )

        id_cell = None
        desc_fraction = 1.0
        desc_x = strip.x
        if settings.show_product_id:
            desc_fraction = 1.0 - ID_FRACTION
            id_width = strip.width * ID_FRACTION
            id_cell = TextCell(
                role="id",
                box=Box(x=strip.x, y=strip.y, width=id_width, height=strip.height),
                text=product.id,
                fraction=ID_FRACTION,
                style=styles.id_cell,
                border_right_px=INFO_BORDER_PX,
            )
            desc_x = strip.x + id_width

        desc_cell = TextCell(
            role="description",
            box=Box(x=desc_x, y=strip.y, width=strip.width * desc_fraction, height=strip.height),
            text=product.description,
            fraction=desc_fraction,
            style=styles.desc_cell,
        )

        return CardCell(
            index=index,
            row=row,
            col=col,
            box=box,
            product_id=product.id,
            style=card_style,
            image_box=image_area.inset(IMAGE_PADDING_PX),
            image=product.image,
            placeholder=self.no_image_text,
            info_box=info_box,
            info_border_color=card_style.border_color,
            id_cell=id_cell,
            desc_cell=desc_cell,
        )
