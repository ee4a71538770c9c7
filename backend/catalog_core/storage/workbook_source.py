"""
Excel 数据源 - 从 .xlsx 第一个工作表读取产品

职责：
1. 表头兼容：ID/id/Código、DESCRIÇÃO/descricao/Nome、CATEGORIA/categoria、IMAGEM/imagem
2. 缺少编号或描述的行跳过
3. 搜索（编号/描述子串，不区分大小写）、分类过滤、排序、分页
4. write_workbook: 导出为同样表头的工作簿（表名 Produtos）

工作簿在首次访问时加载并缓存；行顺序视为创建顺序。

测试要点：
- test_header_aliases: 表头别名
- test_skip_incomplete_rows: 跳过不完整行
- test_pagination: 分页口径与总页数
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

from openpyxl import Workbook, load_workbook

from ..interfaces import DataFetchError, IProductSource
from ..models import Product, ProductsPage, compute_total_pages

logger = logging.getLogger(__name__)

ID_HEADERS = ("ID", "id", "Código")
DESCRIPTION_HEADERS = ("DESCRIÇÃO", "descricao", "Nome")
CATEGORY_HEADERS = ("CATEGORIA", "categoria")
IMAGE_HEADERS = ("IMAGEM", "imagem")

_SORT_KEYS = {
    "id": lambda e: e[1].id.lower(),
    "description": lambda e: e[1].description.lower(),
    "category": lambda e: (e[1].category or "").lower(),
    "createdAt": lambda e: e[0],
}


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _first(row: dict[str, Any], headers: Iterable[str]) -> str:
    for header in headers:
        text = _cell_text(row.get(header))
        if text:
            return text
    return ""


class WorkbookCatalogSource(IProductSource):
    """Excel 工作簿数据源"""

    def __init__(self, workbook_path: str | Path):
        self.workbook_path = Path(workbook_path)
        self._products: list[Product] | None = None

    def _load(self) -> list[Product]:
        if self._products is not None:
            return self._products

        if not self.workbook_path.exists():
            raise DataFetchError(f"工作簿不存在: {self.workbook_path}")
        try:
            wb = load_workbook(self.workbook_path, read_only=True, data_only=True)
        except Exception as e:
            raise DataFetchError(f"无法读取工作簿 {self.workbook_path}: {e}") from e

        try:
            ws = wb.worksheets[0]
            rows = ws.iter_rows(values_only=True)
            header_row = next(rows, None)
            if header_row is None:
                self._products = []
                return self._products
            headers = [_cell_text(h) for h in header_row]

            products: list[Product] = []
            skipped = 0
            for values in rows:
                row = dict(zip(headers, values))
                product_id = _first(row, ID_HEADERS)
                description = _first(row, DESCRIPTION_HEADERS)
                if not product_id or not description:
                    skipped += 1
                    continue
                products.append(Product(
                    id=product_id,
                    description=description,
                    category=_first(row, CATEGORY_HEADERS) or None,
                    image=_first(row, IMAGE_HEADERS) or None,
                ))
        finally:
            wb.close()

        logger.info(f"工作簿已加载: {self.workbook_path.name}, 产品 {len(products)} 条, 跳过 {skipped} 行")
        self._products = products
        return products

    def reload(self) -> None:
        self._products = None

    def list_categories(self) -> list[str]:
        return sorted({p.category for p in self._load() if p.category})

    def list_products(
        self,
        page: int = 1,
        page_size: int = 15,
        search: str = "",
        category: str = "",
        sort_field: str = "createdAt",
        sort_order: str = "DESC",
    ) -> ProductsPage:
        entries = list(enumerate(self._load()))

        needle = search.strip().lower()
        if needle:
            entries = [
                e for e in entries
                if needle in e[1].id.lower() or needle in e[1].description.lower()
            ]
        if category and category != "all":
            entries = [e for e in entries if e[1].category == category]

        key = _SORT_KEYS.get(sort_field, _SORT_KEYS["createdAt"])
        entries.sort(key=key, reverse=sort_order.upper() == "DESC")

        total_count = len(entries)
        page = max(1, page)
        start = (page - 1) * page_size
        return ProductsPage(
            items=[p for _, p in entries[start:start + page_size]],
            total_count=total_count,
            current_page=page,
            total_pages=compute_total_pages(total_count, page_size),
            page_size=page_size,
        )

    def list_all_products(self) -> list[Product]:
        # 与 REST 服务一致：最新的在前
        return list(reversed(self._load()))


def write_workbook(products: Iterable[Product], path: str | Path, sheet_title: str = "Produtos") -> Path:
    """导出产品到工作簿"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title
    ws.append(["ID", "DESCRIÇÃO", "CATEGORIA", "IMAGEM"])
    for p in products:
        ws.append([p.id, p.description, p.category or "", p.image or ""])
    wb.save(path)
    return path
