"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(default_settings, make_products):
        products = make_products(20)
        assert default_settings.items_per_page == 15
"""

from __future__ import annotations

import base64
from io import BytesIO
from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

from catalog_core.config import RuntimeConfig
from catalog_core.config.runtime_config import AssetConfig, ExportConfig
from catalog_core.interfaces import DataFetchError, IProductSource
from catalog_core.models import CatalogSettings, Product, ProductsPage, compute_total_pages


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture
def runtime_config(tmp_path: Path) -> RuntimeConfig:
    """运行期配置（输出到临时目录，倍率1以加快测试）"""
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    return RuntimeConfig(
        storage_dir=tmp_path / "storage",
        output_dir=tmp_path / "exports",
        export=ExportConfig(capture_scale=1),
        assets=AssetConfig(uploads_dir=uploads),
    )


@pytest.fixture
def default_settings() -> CatalogSettings:
    """默认目录设置（3×5）"""
    return CatalogSettings()


@pytest.fixture
def small_settings() -> CatalogSettings:
    """2×2 网格，每页4条"""
    return CatalogSettings(grid_cols=2, grid_rows=2)


# ============================================================================
# 数据 Fixtures
# ============================================================================

@pytest.fixture
def make_products() -> Callable[..., list[Product]]:
    """产品工厂"""

    def _make(count: int, image: str | None = None, category: str | None = None) -> list[Product]:
        return [
            Product(
                id=f"P{i:03d}",
                description=f"Produto de teste {i}",
                category=category,
                image=image,
            )
            for i in range(1, count + 1)
        ]

    return _make


class InMemoryProductSource(IProductSource):
    """内存数据源（记录调用次数，可模拟失败）"""

    def __init__(self, products: list[Product], fail: bool = False):
        self.products = products
        self.fail = fail
        self.list_all_calls = 0

    def list_products(
        self,
        page: int = 1,
        page_size: int = 15,
        search: str = "",
        category: str = "",
        sort_field: str = "createdAt",
        sort_order: str = "DESC",
    ) -> ProductsPage:
        start = (page - 1) * page_size
        return ProductsPage(
            items=self.products[start:start + page_size],
            total_count=len(self.products),
            current_page=page,
            total_pages=compute_total_pages(len(self.products), page_size),
            page_size=page_size,
        )

    def list_all_products(self) -> list[Product]:
        self.list_all_calls += 1
        if self.fail:
            raise DataFetchError("存储服务不可用")
        return list(self.products)


@pytest.fixture
def source_factory() -> type[InMemoryProductSource]:
    return InMemoryProductSource


@pytest.fixture
def memory_source(make_products) -> InMemoryProductSource:
    """10条产品的内存数据源"""
    return InMemoryProductSource(make_products(10))


# ============================================================================
# 图片 Fixtures
# ============================================================================

def _png_bytes(size: tuple[int, int] = (40, 20), color: str = "red") -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return _png_bytes()


@pytest.fixture
def png_data_uri(png_bytes: bytes) -> str:
    """40×20 红色 PNG 的 data URI"""
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def image_file(runtime_config: RuntimeConfig) -> Path:
    """uploads 目录下的图片文件"""
    path = runtime_config.assets.uploads_dir / "produto.png"
    path.write_bytes(_png_bytes((30, 60), "blue"))
    return path
