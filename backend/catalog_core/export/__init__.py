"""
导出模块 - 页范围解析/离屏渲染/栅格化/PDF与PNG组装

子模块：
- page_range: 页范围解析
- surface: 离屏渲染表面与场景
- assets: 图片资源屏障
- fidelity: 栅格化保真修正
- rasterizer: Pillow 栅格化器与交互预览
- assembler: PDF 累积文档 / PNG 逐页文件
- pipeline: 导出流水线状态机
"""

from .assembler import PdfAssembler, PngEmitter
from .assets import AssetLoader
from .fidelity import FidelityCorrection
from .page_range import PageRangeResolver, parse_custom_range, resolve_page_range
from .pipeline import ExportPipeline
from .rasterizer import SceneRasterizer, render_preview
from .surface import RenderSurface, Scene, SceneNode, build_scene

__all__ = [
    "PageRangeResolver",
    "parse_custom_range",
    "resolve_page_range",
    "RenderSurface",
    "Scene",
    "SceneNode",
    "build_scene",
    "AssetLoader",
    "FidelityCorrection",
    "SceneRasterizer",
    "render_preview",
    "PdfAssembler",
    "PngEmitter",
    "ExportPipeline",
]
