"""
PDF页数统计（pdfplumber，适用于导出后的 catalogo.pdf 计页与页面尺寸检查）。

示例：
  python tools/pdf_page_count.py --pdf storage/exports/catalogo.pdf
  python tools/pdf_page_count.py --pdf storage/exports/catalogo.pdf --sizes
"""

from __future__ import annotations

import argparse
from pathlib import Path

import pdfplumber

PT_TO_MM = 25.4 / 72


def count_pdf_pages(path: Path) -> int:
    with pdfplumber.open(str(path)) as pdf:
        return len(pdf.pages)


def page_sizes_mm(path: Path) -> list[tuple[float, float]]:
    with pdfplumber.open(str(path)) as pdf:
        return [(round(p.width * PT_TO_MM, 1), round(p.height * PT_TO_MM, 1)) for p in pdf.pages]


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--pdf", required=True)
    ap.add_argument("--sizes", action="store_true", help="同时输出每页尺寸(mm)")
    args = ap.parse_args()
    path = Path(args.pdf)
    print(count_pdf_pages(path))
    if args.sizes:
        for i, (w, h) in enumerate(page_sizes_mm(path), start=1):
            print(f"  p{i}: {w} x {h} mm")


if __name__ == "__main__":
    main()
