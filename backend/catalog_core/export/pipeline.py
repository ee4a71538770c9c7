"""
导出流水线 - 编排页范围解析/数据获取/逐页渲染/捕获/组装

职责：
1. 按状态机推进导出任务（非法迁移直接报错）
2. 需要时获取完整产品列表（多页导出，或唯一一页不是当前页）
3. 逐页严格串行：渲染到唯一的离屏表面 → 等待图片落定 → 副本修正 → 栅格化 → 组装
4. 每页完成后回调进度
5. 失败：中止剩余页，丢弃 PDF 中间状态，已写出的 PNG 保留，抛出单一 ExportError
6. 取消：页与页之间生效，结束于 CANCELLED
7. 不可重入：导出进行中再次调用抛 ExportBusyError

测试要点：
- test_export_all_pdf: 3页 → PDF 3页
- test_export_png_files: catalogo_p1..3.png
- test_fetch_condition: 仅当前页时不访问数据源
- test_fetch_failure: 数据源失败 → FAILED，无 PDF
- test_capture_failure_keeps_png: 已写出的 PNG 保留
- test_cancel_between_pages: CANCELLED
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Sequence

from ..config import RuntimeConfig, get_config
from ..interfaces import (
    DataFetchError,
    ExportBusyError,
    ExportCancelledError,
    ExportError,
    IArtifactWriter,
    IProductSource,
    IRasterizer,
)
from ..layout import LayoutEngine
from ..models import (
    CatalogSettings,
    ExportFormat,
    ExportJob,
    ExportRequest,
    ExportState,
    Page,
    Product,
    slice_page,
)
from .assembler import PdfAssembler, PngEmitter
from .assets import AssetLoader, short_ref
from .fidelity import FidelityCorrection
from .page_range import PageRangeResolver
from .rasterizer import SceneRasterizer
from .surface import RenderSurface

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ExportJob], None]


class ExportPipeline:
    """导出流水线"""

    def __init__(
        self,
        product_source: IProductSource | None = None,
        config: RuntimeConfig | None = None,
        layout_engine: LayoutEngine | None = None,
        rasterizer: IRasterizer | None = None,
        asset_loader: AssetLoader | None = None,
        page_resolver: PageRangeResolver | None = None,
        capture_scale: float | None = None,
    ):
        self.config = config or get_config()
        self.product_source = product_source
        self.layout_engine = layout_engine or LayoutEngine.from_config(self.config)
        self.rasterizer = rasterizer or SceneRasterizer(self.config.fonts)
        self.asset_loader = asset_loader or AssetLoader(
            timeout_sec=self.config.assets.timeout_sec,
            uploads_dir=self.config.assets.uploads_dir,
        )
        self.page_resolver = page_resolver or PageRangeResolver()
        self.capture_scale = capture_scale or self.config.export.capture_scale
        self.correction = FidelityCorrection.from_config(self.config.export)

        # 唯一的离屏表面，尺寸为目标物理页面像素
        self.surface = RenderSurface(
            self.layout_engine.page_width_px,
            self.layout_engine.page_height_px,
        )
        self.current_job: ExportJob | None = None
        self._busy = False

    @property
    def is_busy(self) -> bool:
        return self._busy

    def cancel(self) -> None:
        """请求取消当前导出（下一页开始前生效）"""
        if self.current_job is not None:
            self.current_job.request_cancel()

    def run(
        self,
        request: ExportRequest,
        settings: CatalogSettings,
        current_page: int,
        total_pages: int,
        current_products: Sequence[Product] = (),
        output_dir: Path | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExportJob:
        """
        执行一次导出

        Args:
            request: 导出请求（格式/质量/范围）
            settings: 合并默认值后的目录设置
            current_page: 当前查看的页码
            total_pages: 当前总页数
            current_products: 当前页已加载的产品（仅导出当前页时使用）
            output_dir: 产物目录（默认 config.output_dir）
            on_progress: 每次状态变化与每页完成后回调

        Returns:
            DONE 或 CANCELLED 状态的导出任务

        Raises:
            ExportBusyError: 已有导出在进行中
            ExportError: 导出失败（携带 FAILED 状态的任务）
        """
        if self._busy:
            raise ExportBusyError("已有导出任务在进行中，请等待完成")

        self._busy = True
        job = ExportJob(request=request)
        self.current_job = job
        writer = self._make_writer(request, Path(output_dir or self.config.output_dir))
        logger.info(
            f"[{job.job_id}] 导出开始: 格式={request.format.value}, "
            f"范围={request.range_mode.value}, 自定义={request.custom_range!r}"
        )

        try:
            self._execute(job, settings, current_page, total_pages, current_products, writer, on_progress)
            return job

        except ExportCancelledError:
            writer.discard()
            self._transition(job, ExportState.CANCELLED, on_progress)
            logger.info(f"[{job.job_id}] 导出已取消，已完成 {job.progress.completed}/{job.progress.total} 页")
            return job

        except Exception as e:
            logger.exception(f"[{job.job_id}] 导出失败")
            writer.discard()
            message = f"导出失败: {e}"
            job.mark_failed(message)
            if on_progress:
                on_progress(job)
            raise ExportError(message, job=job) from e

        finally:
            self._busy = False

    def _execute(
        self,
        job: ExportJob,
        settings: CatalogSettings,
        current_page: int,
        total_pages: int,
        current_products: Sequence[Product],
        writer: IArtifactWriter,
        on_progress: ProgressCallback | None,
    ) -> None:
        request = job.request
        items_per_page = settings.items_per_page

        # 1. 页范围
        self._transition(job, ExportState.RESOLVING_PAGES, on_progress)
        pages = self.page_resolver.resolve(request.range_mode, request.custom_range, total_pages, current_page)
        job.set_pages(pages)
        logger.info(f"[{job.job_id}] 导出页码: {pages}")
        self._check_cancel(job)

        # 2. 完整数据（当前页数据只反映当前视图，不能用于其他页）
        all_products: list[Product] | None = None
        if len(pages) > 1 or pages[0] != current_page:
            self._transition(job, ExportState.FETCHING_FULL_DATA, on_progress)
            all_products = self._fetch_all_products()
            logger.info(f"[{job.job_id}] 已获取完整产品列表: {len(all_products)} 条")
            self._check_cancel(job)

        # 3. 逐页
        with self.surface.hold(job.job_id):
            try:
                for index, page_number in enumerate(pages):
                    if index > 0:
                        self._check_cancel(job)

                    self._transition(job, ExportState.RENDERING_PAGE, on_progress)
                    if all_products is None:
                        page = Page(page_number=page_number, items=list(current_products)[:items_per_page])
                    else:
                        page = slice_page(all_products, page_number, items_per_page)
                    layout = self.layout_engine.layout(page, settings)
                    scene = self.surface.render(layout)

                    self._transition(job, ExportState.WAITING_FOR_ASSETS, on_progress)
                    assets = self.asset_loader.settle(scene.image_refs())
                    for ref, image in assets.items():
                        if image is None:
                            job.add_flag(f"图片加载失败: {short_ref(ref)}")

                    self._transition(job, ExportState.CAPTURING, on_progress)
                    corrected = self.correction.apply(self.surface.snapshot())
                    bitmap = self.rasterizer.rasterize(corrected, self.capture_scale, assets)

                    self._transition(job, ExportState.ASSEMBLING, on_progress)
                    path = writer.add_page(page_number, bitmap)
                    if path is not None:
                        job.artifacts.append(path)
                    del bitmap

                    job.advance(page_number)
                    logger.info(f"[{job.job_id}] 第{page_number}页完成 ({job.percent}%)")
                    if on_progress:
                        on_progress(job)
            finally:
                self.asset_loader.close()

        # 4. 完成
        self._transition(job, ExportState.FINALIZING, on_progress)
        for path in writer.finalize():
            if path not in job.artifacts:
                job.artifacts.append(path)
        self._transition(job, ExportState.DONE, on_progress)
        logger.info(f"[{job.job_id}] 导出完成: {[str(p) for p in job.artifacts]}")

    def _fetch_all_products(self) -> list[Product]:
        if self.product_source is None:
            raise DataFetchError("未配置产品数据源，无法获取完整产品列表")
        return list(self.product_source.list_all_products())

    def _make_writer(self, request: ExportRequest, output_dir: Path) -> IArtifactWriter:
        export_cfg = self.config.export
        if request.format == ExportFormat.PNG:
            return PngEmitter(output_dir, export_cfg.png_filename_pattern)
        return PdfAssembler(
            output_dir / export_cfg.pdf_filename,
            quality=request.quality,
            page_size_mm=(self.config.page.width_mm, self.config.page.height_mm),
        )

    @staticmethod
    def _check_cancel(job: ExportJob) -> None:
        if job.cancel_requested:
            raise ExportCancelledError(f"导出任务 {job.job_id} 已取消")

    @staticmethod
    def _transition(job: ExportJob, state: ExportState, on_progress: ProgressCallback | None) -> None:
        logger.info(f"[{job.job_id}] 状态: {job.state.value} → {state.value}")
        job.transition(state)
        if on_progress:
            on_progress(job)
