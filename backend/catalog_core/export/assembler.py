"""
导出产物写入器 - PDF 累积文档 / PNG 逐页文件

职责：
1. PdfAssembler: 第一页打开文档，之后逐页追加（从不替换已有页）；
   每页为按质量压缩的 JPEG 帧，铺满一张固定尺寸的纵向页面；
   整个文档只在内存中累积，finalize 时一次性落盘，discard 直接丢弃
2. PngEmitter: 每页立即写出一个文件（文件名带页码），位图随即释放；
   已写出的文件不回收

测试要点：
- test_pdf_page_count: 页数与追加次数一致（pdfplumber 校验）
- test_pdf_discard: 丢弃后不产生文件
- test_png_named_by_page: catalogo_p{n}.png
"""

from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path

from PIL import Image
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..interfaces import ExportError, IArtifactWriter

logger = logging.getLogger(__name__)


class PdfAssembler(IArtifactWriter):
    """PDF 累积文档"""

    def __init__(
        self,
        output_path: Path,
        quality: float = 0.9,
        page_size_mm: tuple[float, float] = (210.0, 297.0),
        title: str = "Catálogo",
    ):
        self.output_path = Path(output_path)
        self.quality = quality
        self.page_size = (page_size_mm[0] * mm, page_size_mm[1] * mm)
        self.title = title
        self._buffer: BytesIO | None = None
        self._canvas: canvas.Canvas | None = None
        self.page_numbers: list[int] = []

    def _open(self) -> None:
        self._buffer = BytesIO()
        self._canvas = canvas.Canvas(self._buffer, pagesize=self.page_size)
        self._canvas.setTitle(self.title)
        self.page_numbers = []

    def add_page(self, page_number: int, bitmap: Image.Image) -> Path | None:
        if self._canvas is None:
            self._open()

        frame = BytesIO()
        bitmap.convert("RGB").save(frame, format="JPEG", quality=round(self.quality * 100))
        frame.seek(0)

        width, height = self.page_size
        self._canvas.drawImage(ImageReader(frame), 0, 0, width=width, height=height)
        self._canvas.showPage()
        self.page_numbers.append(page_number)
        logger.debug(f"PDF 追加第{page_number}页（共{len(self.page_numbers)}页）")
        return None

    def finalize(self) -> list[Path]:
        if self._canvas is None or not self.page_numbers:
            raise ExportError("PDF 文档中没有任何页面")

        self._canvas.save()
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_path.write_bytes(self._buffer.getvalue())
        logger.info(f"PDF 已保存: {self.output_path} ({len(self.page_numbers)}页)")

        self._canvas = None
        self._buffer = None
        return [self.output_path]

    def discard(self) -> None:
        if self._canvas is not None:
            logger.info(f"丢弃未完成的 PDF 文档（已累积{len(self.page_numbers)}页）")
        self._canvas = None
        self._buffer = None
        self.page_numbers = []


class PngEmitter(IArtifactWriter):
    """PNG 逐页文件"""

    def __init__(self, output_dir: Path, filename_pattern: str = "catalogo_p{page}.png"):
        self.output_dir = Path(output_dir)
        self.filename_pattern = filename_pattern
        self.written: list[Path] = []

    def add_page(self, page_number: int, bitmap: Image.Image) -> Path | None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / self.filename_pattern.format(page=page_number)
        bitmap.save(path, format="PNG")
        self.written.append(path)
        logger.info(f"PNG 已保存: {path}")
        return path

    def finalize(self) -> list[Path]:
        return list(self.written)

    def discard(self) -> None:
        # 每页都是独立产物，已写出的文件保留
        pass
