"""
HTTP 数据源 - 目录 REST API 的同步客户端

接口：
- GET {api_base_url}/products?page&limit&search&category&sortField&sortOrder
  → {products, totalCount, currentPage, totalPages, limit}
- GET {api_base_url}/categories → [str]
- GET {api_base_url}/settings → 部分设置 JSON

存储的图片名映射为 {uploads_url}/{imageName}。
连接失败或非 2xx 一律抛 DataFetchError（不回退到演示数据）。
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..interfaces import DataFetchError, IProductSource, ISettingsSource
from ..models import Product, ProductsPage

logger = logging.getLogger(__name__)


class HttpCatalogSource(IProductSource, ISettingsSource):
    """目录 REST API 数据源"""

    def __init__(
        self,
        api_base_url: str = "http://localhost:3000/api",
        uploads_url: str = "http://localhost:3000/uploads",
        timeout_sec: float = 30.0,
        all_products_limit: int = 9999,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.uploads_url = uploads_url.rstrip("/")
        self.all_products_limit = all_products_limit
        self._client = httpx.Client(
            base_url=self.api_base_url,
            timeout=timeout_sec,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_config(cls, config, transport: httpx.BaseTransport | None = None) -> HttpCatalogSource:
        storage = config.storage
        return cls(
            api_base_url=storage.api_base_url,
            uploads_url=storage.uploads_url,
            timeout_sec=storage.timeout_sec,
            all_products_limit=storage.all_products_limit,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpCatalogSource:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _get_object(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        data = self._get(path, params)
        if not isinstance(data, dict):
            raise DataFetchError(f"目录服务返回格式错误 {path}: {type(data).__name__}")
        return data

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise DataFetchError(
                f"请求失败 {e.request.url}: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DataFetchError(f"无法连接目录服务 {self.api_base_url}: {e}") from e
        except ValueError as e:
            raise DataFetchError(f"目录服务返回了无法解析的响应: {path}") from e

    def image_url(self, image_name: str | None) -> str | None:
        if not image_name:
            return None
        return f"{self.uploads_url}/{image_name}"

    def _to_product(self, row: dict[str, Any]) -> Product:
        try:
            return Product(
                id=str(row["id"]),
                description=row.get("description") or "",
                category=row.get("category") or None,
                image=self.image_url(row.get("imageName")),
                created_at=row.get("createdAt"),
            )
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise DataFetchError(f"产品数据格式错误: {row!r}") from e

    def list_products(
        self,
        page: int = 1,
        page_size: int = 15,
        search: str = "",
        category: str = "",
        sort_field: str = "createdAt",
        sort_order: str = "DESC",
    ) -> ProductsPage:
        data = self._get_object("/products", params={
            "page": page,
            "limit": page_size,
            "search": search,
            "category": "" if category == "all" else category,
            "sortField": sort_field,
            "sortOrder": sort_order,
        })
        items = [self._to_product(row) for row in data.get("products", [])]
        return ProductsPage(
            items=items,
            total_count=data.get("totalCount", len(items)),
            current_page=data.get("currentPage", page),
            total_pages=max(1, data.get("totalPages") or 1),
            page_size=data.get("limit", page_size),
        )

    def list_all_products(self) -> list[Product]:
        data = self._get_object("/products", params={"limit": self.all_products_limit})
        products = [self._to_product(row) for row in data.get("products", [])]
        logger.debug(f"完整产品列表: {len(products)} 条")
        return products

    def list_categories(self) -> list[str]:
        data = self._get("/categories") or []
        if not isinstance(data, list):
            raise DataFetchError(f"分类数据格式错误: {type(data).__name__}")
        return [str(c) for c in data]

    def get_settings(self) -> dict[str, Any]:
        data = self._get("/settings")
        # 部分数据库驱动把 JSON 列原样返回为字符串
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError as e:
                raise DataFetchError("设置数据不是合法 JSON") from e
        if not isinstance(data, dict):
            raise DataFetchError(f"设置数据格式错误: {type(data).__name__}")
        return data
