"""
页面模型 - 由完整产品列表按每页条数切片得到（不持久化）
"""

from __future__ import annotations

import math
from typing import Sequence

from pydantic import BaseModel, Field

from .product import Product


class Page(BaseModel):
    """单页数据"""

    page_number: int = Field(..., ge=1)
    items: list[Product] = Field(default_factory=list)

    def empty_slots(self, items_per_page: int) -> int:
        """空位数量（items + 空位 == 每页条数）"""
        return max(0, items_per_page - len(self.items))


def compute_total_pages(total_count: int, items_per_page: int) -> int:
    """总页数，至少为1（无数据时也有一页）"""
    if items_per_page < 1:
        raise ValueError(f"每页条数必须>=1: {items_per_page}")
    return max(1, math.ceil(max(0, total_count) / items_per_page))


def slice_page(
    products: Sequence[Product],
    page_number: int,
    items_per_page: int,
) -> Page:
    """按页码切片：items = all[(n-1)*ipp : n*ipp]"""
    if items_per_page < 1:
        raise ValueError(f"每页条数必须>=1: {items_per_page}")
    start = (page_number - 1) * items_per_page
    end = start + items_per_page
    return Page(page_number=page_number, items=list(products[start:end]))
