"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- Product / ProductsPage: 产品与分页结果（存储协作方提供）
- CatalogSettings: 目录设置（合并默认值后使用）
- Page: 按每页条数切片后的单页数据
- ExportRequest / ExportJob: 导出请求与运行期导出任务
"""

from .export import (
    ExportFormat,
    ExportJob,
    ExportProgress,
    ExportRange,
    ExportRequest,
    ExportState,
)
from .page import Page, compute_total_pages, slice_page
from .product import Product, ProductsPage
from .settings import CatalogSettings, merge_settings

__all__ = [
    "Product",
    "ProductsPage",
    "CatalogSettings",
    "merge_settings",
    "Page",
    "compute_total_pages",
    "slice_page",
    "ExportFormat",
    "ExportRange",
    "ExportRequest",
    "ExportState",
    "ExportProgress",
    "ExportJob",
]
