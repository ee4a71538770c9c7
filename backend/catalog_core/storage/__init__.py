"""
存储协作方适配 - 产品与设置的数据源实现

- http_source: 目录 REST API（httpx）
- workbook_source: Excel 工作簿（openpyxl）
"""

from .http_source import HttpCatalogSource
from .workbook_source import WorkbookCatalogSource, write_workbook

__all__ = [
    "HttpCatalogSource",
    "WorkbookCatalogSource",
    "write_workbook",
]
