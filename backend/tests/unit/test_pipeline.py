"""
导出流水线单元测试

每个模块完成后必须运行：pytest backend/tests/unit/test_pipeline.py -v
"""

import pytest
from PIL import Image

from catalog_core.export import ExportPipeline, SceneRasterizer
from catalog_core.interfaces import CaptureError, ExportBusyError, ExportError
from catalog_core.models import (
    ExportFormat,
    ExportRange,
    ExportRequest,
    ExportState,
)
from pdf_page_count import count_pdf_pages, page_sizes_mm


class FailingRasterizer(SceneRasterizer):
    """第 N 页栅格化失败"""

    def __init__(self, fail_on_page: int):
        super().__init__()
        self.fail_on_page = fail_on_page

    def rasterize(self, scene, scale, assets):
        if scene.page_number == self.fail_on_page:
            raise CaptureError(f"第{scene.page_number}页栅格化失败")
        return super().rasterize(scene, scale, assets)


class RecordingRasterizer(SceneRasterizer):
    """记录每页收到的场景与倍率"""

    def __init__(self):
        super().__init__()
        self.calls = []

    def rasterize(self, scene, scale, assets):
        self.calls.append((scene, scale, dict(assets)))
        return Image.new("RGB", (round(scene.width_px * scale), round(scene.height_px * scale)), "white")


@pytest.fixture
def pipeline(runtime_config, memory_source) -> ExportPipeline:
    return ExportPipeline(product_source=memory_source, config=runtime_config)


class TestExportPipeline:
    """导出流水线测试"""

    def test_export_all_pdf(self, pipeline, memory_source, small_settings, runtime_config):
        """测试 10 条 / 每页4条 → PDF 3页"""
        job = pipeline.run(
            ExportRequest(format=ExportFormat.PDF, range_mode=ExportRange.ALL),
            small_settings,
            current_page=1,
            total_pages=3,
            current_products=memory_source.products[:4],
        )
        assert job.state == ExportState.DONE
        assert job.pages == [1, 2, 3]
        assert job.artifacts == [runtime_config.output_dir / "catalogo.pdf"]
        assert count_pdf_pages(job.artifacts[0]) == 3
        assert page_sizes_mm(job.artifacts[0])[0] == (210.0, 297.0)
        assert job.percent == 100
        assert memory_source.list_all_calls == 1

    def test_export_png_files(self, pipeline, memory_source, small_settings, tmp_path):
        """测试 PNG 按页命名"""
        out = tmp_path / "png"
        job = pipeline.run(
            ExportRequest(format=ExportFormat.PNG, range_mode=ExportRange.ALL),
            small_settings,
            current_page=1,
            total_pages=3,
            output_dir=out,
        )
        assert [p.name for p in job.artifacts] == ["catalogo_p1.png", "catalogo_p2.png", "catalogo_p3.png"]
        with Image.open(job.artifacts[0]) as img:
            assert img.size == (794, 1123)

    def test_state_sequence(self, pipeline, memory_source, small_settings):
        """测试状态推进顺序"""
        job = pipeline.run(
            ExportRequest(range_mode=ExportRange.CUSTOM, custom_range="1-2"),
            small_settings,
            current_page=1,
            total_pages=3,
        )
        per_page = [
            ExportState.RENDERING_PAGE,
            ExportState.WAITING_FOR_ASSETS,
            ExportState.CAPTURING,
            ExportState.ASSEMBLING,
        ]
        assert job.state_history == [
            ExportState.IDLE,
            ExportState.RESOLVING_PAGES,
            ExportState.FETCHING_FULL_DATA,
            *per_page,
            *per_page,
            ExportState.FINALIZING,
            ExportState.DONE,
        ]

    def test_fetch_condition_current_page(self, pipeline, memory_source, small_settings, runtime_config):
        """测试仅导出当前页时不访问数据源"""
        recorder = RecordingRasterizer()
        pipeline.rasterizer = recorder
        current = memory_source.products[4:8]
        job = pipeline.run(
            ExportRequest(range_mode=ExportRange.CURRENT),
            small_settings,
            current_page=2,
            total_pages=3,
            current_products=current,
        )
        assert job.succeeded
        assert memory_source.list_all_calls == 0
        assert ExportState.FETCHING_FULL_DATA not in job.state_history
        scene = recorder.calls[0][0]
        assert scene.page_number == 2
        texts = [n.text for n in scene.with_role("id-cell")]
        assert texts == [p.id for p in current]

    def test_fetch_condition_other_page(self, pipeline, memory_source, small_settings):
        """测试唯一一页不是当前页时获取完整数据"""
        recorder = RecordingRasterizer()
        pipeline.rasterizer = recorder
        pipeline.run(
            ExportRequest(range_mode=ExportRange.CUSTOM, custom_range="3"),
            small_settings,
            current_page=1,
            total_pages=3,
            current_products=memory_source.products[:4],
        )
        assert memory_source.list_all_calls == 1
        scene = recorder.calls[0][0]
        assert [n.text for n in scene.with_role("id-cell")] == ["P009", "P010"]
        assert len(scene.with_role("empty-slot")) == 2

    def test_capture_uses_corrected_copy(self, pipeline, small_settings, memory_source, runtime_config):
        """测试捕获使用修正后的副本，倍率取配置"""
        recorder = RecordingRasterizer()
        pipeline.rasterizer = recorder
        pipeline.run(
            ExportRequest(), small_settings, current_page=1, total_pages=3,
            current_products=memory_source.products[:4],
        )
        scene, scale, _ = recorder.calls[0]
        assert scale == runtime_config.export.capture_scale
        cell = scene.with_role("description-cell")[0]
        assert cell.style["font_size"] == pytest.approx(small_settings.card_desc_font_size * 0.85)
        assert cell.style["padding_x"] == 0.0

    def test_assets_settled_before_capture(self, pipeline, source_factory, make_products, small_settings, png_data_uri):
        """测试捕获前图片已落定（失败的为None）"""
        products = make_products(2, image=png_data_uri) + make_products(1, image="nao-existe.png")
        recorder = RecordingRasterizer()
        pipeline.rasterizer = recorder
        pipeline.run(ExportRequest(), small_settings, current_page=1, total_pages=1, current_products=products)
        _, _, assets = recorder.calls[0]
        assert assets[png_data_uri] is not None
        assert assets["nao-existe.png"] is None

    def test_bad_image_ref_does_not_fail_export(self, pipeline, make_products, small_settings, runtime_config):
        """测试非法图片引用只显示占位并记录告警，导出照常完成"""
        products = make_products(1, image="http://[::1/x.png") + make_products(1, image="bad\x00name.png")
        job = pipeline.run(ExportRequest(), small_settings, current_page=1, total_pages=1, current_products=products)
        assert job.state == ExportState.DONE
        assert count_pdf_pages(runtime_config.output_dir / "catalogo.pdf") == 1
        assert job.flags == ["图片加载失败: http://[::1/x.png", "图片加载失败: bad\x00name.png"]

    def test_fetch_failure(self, runtime_config, source_factory, make_products, small_settings):
        """测试数据源失败 → FAILED，无 PDF"""
        pipeline = ExportPipeline(product_source=source_factory(make_products(10), fail=True), config=runtime_config)
        with pytest.raises(ExportError) as exc_info:
            pipeline.run(ExportRequest(range_mode=ExportRange.ALL), small_settings, current_page=1, total_pages=3)
        job = exc_info.value.job
        assert job.state == ExportState.FAILED
        assert "存储服务不可用" in job.error
        assert not (runtime_config.output_dir / "catalogo.pdf").exists()
        assert not pipeline.is_busy

    def test_capture_failure_discards_pdf(self, pipeline, small_settings, runtime_config):
        pipeline.rasterizer = FailingRasterizer(fail_on_page=2)
        with pytest.raises(ExportError):
            pipeline.run(ExportRequest(range_mode=ExportRange.ALL), small_settings, current_page=1, total_pages=3)
        assert not (runtime_config.output_dir / "catalogo.pdf").exists()

    def test_capture_failure_keeps_png(self, pipeline, small_settings, tmp_path):
        """测试已写出的 PNG 保留"""
        pipeline.rasterizer = FailingRasterizer(fail_on_page=3)
        out = tmp_path / "png"
        with pytest.raises(ExportError) as exc_info:
            pipeline.run(
                ExportRequest(format=ExportFormat.PNG, range_mode=ExportRange.ALL),
                small_settings,
                current_page=1,
                total_pages=3,
                output_dir=out,
            )
        job = exc_info.value.job
        assert job.progress.completed == 2
        assert sorted(p.name for p in out.iterdir()) == ["catalogo_p1.png", "catalogo_p2.png"]
        assert len(job.artifacts) == 2
        # 表面已释放，可再次导出
        assert not pipeline.surface.is_busy

    def test_cancel_between_pages(self, pipeline, small_settings, runtime_config):
        """测试取消在页与页之间生效"""

        def on_progress(job):
            if job.progress.completed == 1:
                pipeline.cancel()

        job = pipeline.run(
            ExportRequest(range_mode=ExportRange.ALL),
            small_settings,
            current_page=1,
            total_pages=3,
            on_progress=on_progress,
        )
        assert job.state == ExportState.CANCELLED
        assert job.progress.completed == 1
        assert not (runtime_config.output_dir / "catalogo.pdf").exists()

    def test_busy_rejected(self, pipeline, small_settings):
        """测试导出进行中再次调用被拒绝"""
        nested_errors = []

        def on_progress(job):
            if job.state == ExportState.RESOLVING_PAGES:
                try:
                    pipeline.run(ExportRequest(), small_settings, current_page=1, total_pages=1)
                except ExportBusyError as e:
                    nested_errors.append(e)

        job = pipeline.run(
            ExportRequest(),
            small_settings,
            current_page=1,
            total_pages=3,
            on_progress=on_progress,
        )
        assert job.succeeded
        assert len(nested_errors) == 1

    def test_progress_callback(self, pipeline, small_settings):
        """测试每页完成后回调进度"""
        seen = []

        def on_progress(job):
            if job.state == ExportState.ASSEMBLING and job.progress.completed:
                seen.append(job.percent)

        pipeline.run(ExportRequest(range_mode=ExportRange.ALL), small_settings, current_page=1, total_pages=3,
                     on_progress=on_progress)
        assert sorted(set(seen)) == [33, 67, 100]

    def test_custom_range_fallback(self, pipeline, memory_source, small_settings):
        """测试无效自定义范围回退到当前页"""
        job = pipeline.run(
            ExportRequest(range_mode=ExportRange.CUSTOM, custom_range="7,0,-1"),
            small_settings,
            current_page=2,
            total_pages=3,
            current_products=memory_source.products[4:8],
        )
        assert job.pages == [2]
        assert job.succeeded
