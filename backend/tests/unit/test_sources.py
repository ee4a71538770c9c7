"""
数据源单元测试（REST API / Excel 工作簿）
"""

import json

import httpx
import pytest
from openpyxl import Workbook

from catalog_core.interfaces import DataFetchError
from catalog_core.models import Product
from catalog_core.storage import HttpCatalogSource, WorkbookCatalogSource, write_workbook


def _api_rows(count: int) -> list[dict]:
    return [
        {
            "id": f"A{i:02d}",
            "description": f"Item {i}",
            "category": "Ferragens" if i % 2 else None,
            "imageName": f"img-{i}.jpg" if i != 2 else None,
            "createdAt": "2024-03-01T10:00:00Z",
        }
        for i in range(1, count + 1)
    ]


@pytest.fixture
def requests_seen():
    return []


@pytest.fixture
def api(requests_seen):
    """MockTransport 模拟的目录服务"""

    def handler(request: httpx.Request) -> httpx.Response:
        requests_seen.append(request)
        path = request.url.path
        if path == "/api/products":
            limit = int(request.url.params.get("limit", 15))
            rows = _api_rows(3)
            return httpx.Response(200, json={
                "products": rows[:limit],
                "totalCount": 3,
                "currentPage": int(request.url.params.get("page", 1)),
                "totalPages": 1,
                "limit": limit,
            })
        if path == "/api/categories":
            return httpx.Response(200, json=["Ferragens", "Elétrica"])
        if path == "/api/settings":
            return httpx.Response(200, json=json.dumps({"gridCols": 4, "footerText": "Rodapé"}))
        return httpx.Response(500, json={"error": "boom"})

    source = HttpCatalogSource(
        api_base_url="http://catalogo.local/api",
        uploads_url="http://catalogo.local/uploads/",
        transport=httpx.MockTransport(handler),
    )
    yield source
    source.close()


class TestHttpCatalogSource:
    """REST 数据源测试"""

    def test_list_products(self, api):
        """测试行映射与图片 URL"""
        page = api.list_products(page=1, page_size=15)
        assert page.total_count == 3
        assert page.total_pages == 1
        first, second = page.items[:2]
        assert first.id == "A01"
        assert first.image == "http://catalogo.local/uploads/img-1.jpg"
        assert first.category == "Ferragens"
        assert first.created_at is not None
        assert second.image is None
        assert second.category is None

    def test_category_all_cleared(self, api, requests_seen):
        api.list_products(category="all", search="parafuso")
        params = requests_seen[-1].url.params
        assert params["category"] == ""
        assert params["search"] == "parafuso"
        assert params["sortOrder"] == "DESC"

    def test_list_all_uses_limit(self, api, requests_seen):
        """测试完整列表以大 limit 一次取回"""
        products = api.list_all_products()
        assert len(products) == 3
        assert requests_seen[-1].url.params["limit"] == "9999"

    def test_categories(self, api):
        assert api.list_categories() == ["Ferragens", "Elétrica"]

    def test_settings_json_string(self, api):
        """测试设置以 JSON 字符串返回时解码"""
        assert api.get_settings() == {"gridCols": 4, "footerText": "Rodapé"}

    def test_http_error(self):
        source = HttpCatalogSource(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        with pytest.raises(DataFetchError):
            source.list_all_products()

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("recusado", request=request)

        with HttpCatalogSource(transport=httpx.MockTransport(handler)) as source:
            with pytest.raises(DataFetchError):
                source.list_products()

    def test_settings_not_object(self):
        source = HttpCatalogSource(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=[1, 2])))
        with pytest.raises(DataFetchError):
            source.get_settings()

    def test_unexpected_payload_shape(self):
        """测试返回非对象 JSON 时报 DataFetchError"""

        def handler(request):
            if request.url.path.endswith("/categories"):
                return httpx.Response(200, json={"a": 1})
            if request.url.params.get("page") == "1":
                return httpx.Response(200, json={"products": [["A01", "Item"]]})
            return httpx.Response(200, json=[{"id": "A01"}])

        with HttpCatalogSource(transport=httpx.MockTransport(handler)) as source:
            with pytest.raises(DataFetchError):
                source.list_all_products()
            with pytest.raises(DataFetchError):
                source.list_products(page=1)
            with pytest.raises(DataFetchError):
                source.list_categories()

    def test_from_config(self, runtime_config):
        source = HttpCatalogSource.from_config(runtime_config)
        assert source.api_base_url == runtime_config.storage.api_base_url.rstrip("/")
        assert source.image_url("x.png").endswith("/x.png")
        assert source.image_url("") is None
        source.close()


@pytest.fixture
def workbook_path(tmp_path):
    """使用葡语别名表头的工作簿，含不完整行"""
    wb = Workbook()
    ws = wb.active
    ws.append(["Código", "Nome", "categoria", "IMAGEM"])
    ws.append([101, "Parafuso sextavado", "Ferragens", "p101.jpg"])
    ws.append(["102", "Tomada dupla", "Elétrica", None])
    ws.append([None, "Sem código", "Ferragens", None])
    ws.append(["104", None, "Ferragens", None])
    ws.append(["105", "Arruela lisa", "Ferragens", None])
    path = tmp_path / "produtos.xlsx"
    wb.save(path)
    return path


class TestWorkbookCatalogSource:
    """Excel 数据源测试"""

    def test_header_aliases(self, workbook_path):
        """测试表头别名"""
        products = WorkbookCatalogSource(workbook_path).list_products(sort_order="ASC").items
        assert [p.id for p in products] == ["101", "102", "105"]
        assert products[0].description == "Parafuso sextavado"
        assert products[0].category == "Ferragens"
        assert products[0].image == "p101.jpg"
        assert products[1].image is None

    def test_skip_incomplete_rows(self, workbook_path):
        """测试缺编号或描述的行被跳过"""
        assert len(WorkbookCatalogSource(workbook_path).list_all_products()) == 3

    def test_newest_first(self, workbook_path):
        source = WorkbookCatalogSource(workbook_path)
        assert [p.id for p in source.list_all_products()] == ["105", "102", "101"]
        assert [p.id for p in source.list_products().items] == ["105", "102", "101"]

    def test_search_and_category(self, workbook_path):
        source = WorkbookCatalogSource(workbook_path)
        assert [p.id for p in source.list_products(search="TOMADA").items] == ["102"]
        assert [p.id for p in source.list_products(search="10", category="Ferragens").items] == ["105", "101"]
        assert len(source.list_products(category="all").items) == 3
        assert source.list_categories() == ["Elétrica", "Ferragens"]

    def test_pagination(self, workbook_path):
        """测试分页口径与总页数"""
        page = WorkbookCatalogSource(workbook_path).list_products(page=2, page_size=2, sort_order="ASC")
        assert [p.id for p in page.items] == ["105"]
        assert page.total_count == 3
        assert page.total_pages == 2
        assert page.current_page == 2

    def test_sort_by_description(self, workbook_path):
        page = WorkbookCatalogSource(workbook_path).list_products(sort_field="description", sort_order="ASC")
        assert [p.description for p in page.items] == ["Arruela lisa", "Parafuso sextavado", "Tomada dupla"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataFetchError):
            WorkbookCatalogSource(tmp_path / "nao-existe.xlsx").list_all_products()

    def test_reload(self, workbook_path):
        source = WorkbookCatalogSource(workbook_path)
        assert len(source.list_all_products()) == 3
        write_workbook([Product(id="Z1", description="Novo")], workbook_path)
        assert len(source.list_all_products()) == 3
        source.reload()
        assert [p.id for p in source.list_all_products()] == ["Z1"]


class TestWriteWorkbook:
    """工作簿导出测试"""

    def test_write_then_read(self, tmp_path, make_products):
        products = make_products(4, image="foto.png", category="Ferragens")
        path = write_workbook(products, tmp_path / "out" / "export.xlsx")
        assert path.exists()
        source = WorkbookCatalogSource(path)
        assert source.list_products(sort_order="ASC").items == products
