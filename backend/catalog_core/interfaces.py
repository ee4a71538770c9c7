"""
模块接口契约 - 定义各模块的抽象接口

设计原则：
1. 模块间通过接口通信，不直接依赖具体实现
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from catalog_core.interfaces import IProductSource

    class MyProductSource(IProductSource):
        def list_all_products(self) -> list[Product]:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from PIL import Image

    from .export.surface import Scene
    from .models import ExportJob, Product, ProductsPage


# ============================================================================
# 存储协作方接口
# ============================================================================

class IProductSource(ABC):
    """产品数据源接口 - 由存储协作方实现"""

    @abstractmethod
    def list_products(
        self,
        page: int = 1,
        page_size: int = 15,
        search: str = "",
        category: str = "",
        sort_field: str = "createdAt",
        sort_order: str = "DESC",
    ) -> ProductsPage:
        """
        分页查询产品

        Args:
            page: 页码（从1开始）
            page_size: 每页条数（= 网格列数 × 行数）
            search: 按编号/描述模糊搜索
            category: 分类过滤（空串或"all"表示不过滤）
            sort_field: 排序字段
            sort_order: ASC / DESC

        Returns:
            当前页产品及分页信息
        """
        ...

    @abstractmethod
    def list_all_products(self) -> list[Product]:
        """
        获取完整产品列表（不分页）

        Raises:
            DataFetchError: 获取失败
        """
        ...


class ISettingsSource(ABC):
    """目录设置数据源接口"""

    @abstractmethod
    def get_settings(self) -> dict[str, Any]:
        """
        获取持久化的目录设置（可能只有部分字段）

        调用方必须通过 merge_settings 合并默认值后再使用
        """
        ...


# ============================================================================
# 导出模块接口
# ============================================================================

class IRasterizer(ABC):
    """栅格化器接口 - 将场景绘制为位图"""

    @abstractmethod
    def rasterize(
        self,
        scene: Scene,
        scale: float,
        assets: dict[str, Image.Image | None],
    ) -> Image.Image:
        """
        按固定倍率栅格化场景

        Args:
            scene: 离屏表面的场景快照
            scale: 过采样倍率
            assets: 图片引用 → 已加载图片（加载失败为None）

        Returns:
            尺寸严格为 (页面宽px × scale, 页面高px × scale) 的位图
        """
        ...


class IArtifactWriter(ABC):
    """导出产物写入器接口（PDF累积文档 / PNG逐页文件）"""

    @abstractmethod
    def add_page(self, page_number: int, bitmap: Image.Image) -> Path | None:
        """追加一页，逐页落盘时返回文件路径"""
        ...

    @abstractmethod
    def finalize(self) -> list[Path]:
        """完成写入，返回本次新产生的文件"""
        ...

    @abstractmethod
    def discard(self) -> None:
        """丢弃未落盘的中间状态"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class CatalogError(Exception):
    """基础异常"""
    pass


class InvalidStateTransitionError(CatalogError):
    """非法状态迁移"""
    pass


class SettingsError(CatalogError):
    """设置文件读取错误"""
    pass


class DataFetchError(CatalogError):
    """数据获取错误（存储协作方不可用等）"""
    pass


class AssetError(CatalogError):
    """图片资源加载错误（不会中断导出）"""
    pass


class RenderError(CatalogError):
    """离屏渲染错误"""
    pass


class CaptureError(CatalogError):
    """栅格化错误"""
    pass


class ExportError(CatalogError):
    """导出错误（携带失败的导出任务）"""

    def __init__(self, message: str, job: ExportJob | None = None):
        super().__init__(message)
        self.job = job


class ExportBusyError(CatalogError):
    """已有导出在进行中"""
    pass


class ExportCancelledError(CatalogError):
    """导出被取消"""
    pass
