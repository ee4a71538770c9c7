"""
命令行入口 - catalog-export

示例：
  catalog-export --workbook produtos.xlsx --range all --out storage/exports
  catalog-export --api http://localhost:3000/api --format png --range custom --pages "1-3,5"
  catalog-export --workbook produtos.xlsx --settings config/catalog_settings.yaml --current 2
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import RuntimeConfig, get_config, load_settings, reload_config
from .export import ExportPipeline
from .interfaces import CatalogError, ExportError
from .models import ExportFormat, ExportJob, ExportRange, ExportRequest, merge_settings
from .storage import HttpCatalogSource, WorkbookCatalogSource

logger = logging.getLogger(__name__)


def setup_logging(config: RuntimeConfig, verbose: bool = False) -> None:
    """按运行期配置初始化根日志"""
    level = logging.DEBUG if verbose else getattr(logging, config.logging.log_level.upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.logging.log_to_file:
        log_file = config.get_log_file()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="catalog-export", description="导出产品目录为 PDF/PNG")
    source = ap.add_mutually_exclusive_group(required=True)
    source.add_argument("--workbook", help="产品工作簿 (.xlsx)")
    source.add_argument("--api", help="目录 REST API 地址，如 http://localhost:3000/api")
    ap.add_argument("--settings", help="目录设置文件 (YAML/JSON)；使用 --api 时默认读取服务端设置")
    ap.add_argument("--format", choices=[f.value for f in ExportFormat], default=ExportFormat.PDF.value)
    ap.add_argument("--range", dest="range_mode", choices=[r.value for r in ExportRange], default=ExportRange.ALL.value)
    ap.add_argument("--pages", default="", help='自定义页范围，如 "1-3,5"')
    ap.add_argument("--current", type=int, default=1, help="当前页（current 模式及回退使用）")
    ap.add_argument("--quality", type=float, default=None, help="PDF 帧质量 0.1-1.0")
    ap.add_argument("--scale", type=float, default=None, help="栅格化倍率（默认取配置）")
    ap.add_argument("--out", default=None, help="输出目录")
    ap.add_argument("--config", default=None, help="运行期配置 catalog_runtime.yaml")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap


def _progress_printer():
    printed: set[int] = set()

    def _print(job: ExportJob) -> None:
        done = job.progress.completed
        if done and done not in printed:
            printed.add(done)
            print(f"  [{job.percent:3d}%] 第{job.progress.page_number}页", file=sys.stderr)

    return _print


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = reload_config(args.config) if args.config else get_config()
    setup_logging(config, args.verbose)

    if args.api:
        config.storage.api_base_url = args.api
        source = HttpCatalogSource.from_config(config)
    else:
        source = WorkbookCatalogSource(args.workbook)

    try:
        if args.settings:
            settings = load_settings(args.settings)
        elif isinstance(source, HttpCatalogSource):
            settings = merge_settings(source.get_settings())
        else:
            settings = load_settings(config.settings_path)

        ipp = settings.items_per_page
        current = source.list_products(page=max(1, args.current), page_size=ipp)

        request = ExportRequest(
            format=ExportFormat(args.format),
            quality=args.quality if args.quality is not None else config.export.default_quality,
            range_mode=ExportRange(args.range_mode),
            custom_range=args.pages,
        )
        pipeline = ExportPipeline(product_source=source, config=config, capture_scale=args.scale)
        job = pipeline.run(
            request,
            settings,
            current_page=current.current_page,
            total_pages=current.total_pages,
            current_products=current.items,
            output_dir=Path(args.out) if args.out else None,
            on_progress=_progress_printer(),
        )
    except ExportError as e:
        print(str(e), file=sys.stderr)
        return 1
    except CatalogError as e:
        logger.error(f"导出前准备失败: {e}")
        print(str(e), file=sys.stderr)
        return 1
    finally:
        if isinstance(source, HttpCatalogSource):
            source.close()

    if not job.succeeded:
        print(f"导出未完成: {job.state.value}", file=sys.stderr)
        return 1
    for path in job.artifacts:
        print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
