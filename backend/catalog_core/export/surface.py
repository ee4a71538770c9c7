"""
离屏渲染表面 - 页面结构描述 → 可栅格化的场景

职责：
1. 把 PageLayout 物化为按层级排序的绘制列表（Scene）
2. 表面尺寸严格等于目标物理页面像素尺寸，不缩放、不变换
3. 单一所有者：acquire → render → snapshot → release，占用期间再次获取直接报错
4. snapshot 返回深拷贝，导出修正只作用于副本

层级：页面背景 < 水印 < 内容

测试要点：
- test_surface_single_owner: 重复获取报错
- test_snapshot_isolated: 修改快照不影响表面
- test_scene_z_order: 水印节点位于所有内容节点之前
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal

from ..interfaces import RenderError
from ..layout import Box, CardCell, EmptySlot, PageLayout, TextCell
from ..layout.engine import FOOTER_BORDER_PX, INFO_BORDER_PX, RULE_COLOR
from ..layout.watermark import CONTENT_Z_INDEX, WATERMARK_Z_INDEX

logger = logging.getLogger(__name__)

# 信息条文字格的类名（导出修正按类名定位）
TEXT_CONTAINER_CLASS = "product-text-container"
TEXT_SPAN_CLASS = "product-text-span"

FOOTER_FONT_SIZE = 12
PLACEHOLDER_FONT_SIZE = 10
PLACEHOLDER_COLOR = "#d1d5db"

NodeKind = Literal["rect", "text", "image", "tile"]


@dataclass
class SceneNode:
    """场景节点"""
    kind: NodeKind
    box: Box
    role: str
    z_index: int = CONTENT_Z_INDEX
    classes: set[str] = field(default_factory=set)
    style: dict[str, Any] = field(default_factory=dict)
    text: str | None = None
    image_ref: str | None = None


@dataclass
class Scene:
    """单页场景（绘制列表）"""
    page_number: int
    width_px: int
    height_px: int
    background: str = "#ffffff"
    nodes: list[SceneNode] = field(default_factory=list)

    def ordered(self) -> list[SceneNode]:
        """按层级排序（同层保持插入顺序）"""
        return sorted(self.nodes, key=lambda n: n.z_index)

    def image_refs(self) -> list[str]:
        refs = [n.image_ref for n in self.nodes if n.image_ref]
        return list(dict.fromkeys(refs))

    def with_role(self, role: str) -> list[SceneNode]:
        return [n for n in self.nodes if n.role == role]

    def with_class(self, class_name: str) -> list[SceneNode]:
        return [n for n in self.nodes if class_name in n.classes]


def build_scene(layout: PageLayout) -> Scene:
    """把页面结构描述物化为场景"""
    scene = Scene(
        page_number=layout.page_number,
        width_px=layout.width_px,
        height_px=layout.height_px,
        background=layout.background,
    )
    nodes = scene.nodes
    page_box = Box(x=0, y=0, width=layout.width_px, height=layout.height_px)

    # 水印
    wm = layout.watermark
    if wm is not None:
        nodes.append(SceneNode(
            kind="tile",
            box=page_box,
            role="watermark",
            z_index=WATERMARK_Z_INDEX,
            image_ref=wm.image_uri if wm.kind == "logo" else None,
            style={
                "opacity": wm.opacity,
                "tile_width": wm.tile_width_px,
                "tile_height": wm.tile_height_px,
                "badge": wm.badge,
            },
        ))

    # 页眉
    header = layout.header
    if header.logo and header.logo_box is not None:
        nodes.append(SceneNode(
            kind="image",
            box=header.logo_box,
            role="header-logo",
            image_ref=header.logo,
            style={"fit": "contain", "align": "left"},
        ))
    nodes.append(SceneNode(
        kind="text",
        box=header.text_box,
        role="header-text",
        text=header.text,
        style={
            "color": header.style.color,
            "font_size": header.style.font_size,
            "bold": header.style.bold,
            "text_align": header.style.text_align,
            "box_align": "center",
            "line_height": 1.2,
        },
    ))
    nodes.append(SceneNode(
        kind="rect",
        box=Box(
            x=header.box.x,
            y=header.box.bottom - header.border_bottom_px,
            width=header.box.width,
            height=header.border_bottom_px,
        ),
        role="header-border",
        style={"fill": header.border_color},
    ))

    # 网格
    for cell in layout.grid.cells:
        if isinstance(cell, CardCell):
            nodes.extend(_card_nodes(cell))
        elif isinstance(cell, EmptySlot):
            nodes.append(SceneNode(
                kind="rect",
                box=cell.box,
                role="empty-slot",
                z_index=cell.z_index,
                style={
                    "border_width": 1,
                    "border_color": cell.border_color,
                    "border_style": cell.border_style,
                    "radius": cell.border_radius,
                    "opacity": cell.opacity,
                },
            ))

    # 页脚
    footer = layout.footer
    nodes.append(SceneNode(
        kind="rect",
        box=Box(x=footer.box.x, y=footer.box.y, width=footer.box.width, height=FOOTER_BORDER_PX),
        role="footer-border",
        style={"fill": footer.style.border_color},
    ))
    if footer.page_label and footer.page_label_box is not None:
        nodes.append(SceneNode(
            kind="text",
            box=footer.page_label_box,
            role="page-label",
            text=footer.page_label,
            style={
                "color": footer.style.color,
                "font_size": FOOTER_FONT_SIZE,
                "bold": True,
                "text_align": "left",
                "box_align": "center",
                "wrap": False,
            },
        ))
    nodes.append(SceneNode(
        kind="text",
        box=footer.text_box,
        role="footer-text",
        text=footer.text,
        style={
            "color": footer.style.color,
            "font_size": FOOTER_FONT_SIZE,
            "italic": True,
            "text_align": footer.style.text_align,
            "box_align": "center",
        },
    ))

    return scene


def _card_nodes(cell: CardCell) -> list[SceneNode]:
    style = cell.style
    nodes = [SceneNode(
        kind="rect",
        box=cell.box,
        role="card",
        z_index=cell.z_index,
        style={
            "fill": style.background,
            "border_width": style.border_width,
            "border_color": style.border_color,
            "border_style": "solid",
            "radius": style.border_radius,
            "shadow": style.shadow,
        },
    )]

    if cell.image:
        nodes.append(SceneNode(
            kind="image",
            box=cell.image_box,
            role="card-image",
            z_index=cell.z_index,
            image_ref=cell.image,
            style={
                "fit": "contain",
                "align": "center",
                "placeholder": cell.placeholder,
                "color": PLACEHOLDER_COLOR,
                "font_size": PLACEHOLDER_FONT_SIZE,
            },
        ))
    else:
        nodes.append(SceneNode(
            kind="text",
            box=cell.image_box,
            role="image-placeholder",
            z_index=cell.z_index,
            text=cell.placeholder,
            style={
                "color": PLACEHOLDER_COLOR,
                "font_size": PLACEHOLDER_FONT_SIZE,
                "text_align": "center",
                "box_align": "center",
            },
        ))

    nodes.append(SceneNode(
        kind="rect",
        box=Box(x=cell.info_box.x, y=cell.info_box.y, width=cell.info_box.width, height=INFO_BORDER_PX),
        role="info-border",
        z_index=cell.z_index,
        style={"fill": cell.info_border_color},
    ))

    if cell.id_cell is not None:
        nodes.append(_text_cell_node(cell.id_cell, cell.z_index, border_color=cell.info_border_color))
    nodes.append(_text_cell_node(cell.desc_cell, cell.z_index, border_color=cell.info_border_color))
    return nodes


def _text_cell_node(text_cell: TextCell, z_index: int, border_color: str = RULE_COLOR) -> SceneNode:
    s = text_cell.style
    return SceneNode(
        kind="text",
        box=text_cell.box,
        role=f"{text_cell.role}-cell",
        z_index=z_index,
        classes={TEXT_CONTAINER_CLASS, TEXT_SPAN_CLASS},
        text=text_cell.text,
        style={
            "background": s.background,
            "color": s.color,
            "font_size": s.font_size,
            "bold": text_cell.role == "id",
            "text_align": s.text_align,
            "box_align": s.box_align,
            "line_height": s.line_height,
            "letter_spacing": s.letter_spacing,
            "padding_x": s.padding_x,
            "padding_y": 0.0,
            "margin": 0.0,
            "border_right_width": text_cell.border_right_px,
            "border_color": border_color,
        },
    )


class RenderSurface:
    """离屏渲染表面（整个进程内只复用一个）"""

    def __init__(self, width_px: int, height_px: int):
        self.width_px = width_px
        self.height_px = height_px
        self._owner: str | None = None
        self._scene: Scene | None = None

    @property
    def is_busy(self) -> bool:
        return self._owner is not None

    @property
    def scene(self) -> Scene | None:
        return self._scene

    def acquire(self, owner: str) -> RenderSurface:
        if self._owner is not None:
            raise RenderError(f"渲染表面已被占用: {self._owner}")
        self._owner = owner
        return self

    def release(self) -> None:
        self._owner = None
        self._scene = None

    @contextmanager
    def hold(self, owner: str) -> Iterator[RenderSurface]:
        """在 with 块内独占表面"""
        self.acquire(owner)
        try:
            yield self
        finally:
            self.release()

    def render(self, layout: PageLayout) -> Scene:
        """将页面结构写入表面（替换上一页内容）"""
        if self._owner is None:
            raise RenderError("渲染前必须先获取表面")
        if (layout.width_px, layout.height_px) != (self.width_px, self.height_px):
            raise RenderError(
                f"页面尺寸({layout.width_px}×{layout.height_px})与表面尺寸"
                f"({self.width_px}×{self.height_px})不一致"
            )
        self._scene = build_scene(layout)
        logger.debug(f"第{layout.page_number}页已渲染到离屏表面，节点数 {len(self._scene.nodes)}")
        return self._scene

    def snapshot(self) -> Scene:
        """当前场景的深拷贝"""
        if self._scene is None:
            raise RenderError("表面尚未渲染任何页面")
        return copy.deepcopy(self._scene)
