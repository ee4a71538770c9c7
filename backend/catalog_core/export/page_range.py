"""
页范围解析器 - (模式, 自定义范围文本, 总页数) → 升序去重页码列表

职责：
1. current: 当前查看页
2. all: 1..总页数
3. custom: 逗号分隔，每项为整数或 A-B 闭区间；非法项静默跳过，
   越界页码直接丢弃（不夹紧），结果去重升序
4. 结果为空时回退到当前页（导出永远不会是零页）

测试要点：
- test_custom_ranges: "1-3,5" → [1,2,3,5]
- test_empty_fallback: "" → [当前页]
- test_out_of_band_dropped: "7,0,-1" → [当前页]
"""

from __future__ import annotations

import logging
import re

from ..models import ExportRange

logger = logging.getLogger(__name__)

_SINGLE_RE = re.compile(r"^[+-]?\d+$")
_RANGE_RE = re.compile(r"^(\d+)\s*-\s*(\d+)$")


def parse_custom_range(text: str, total_pages: int) -> list[int]:
    """解析自定义范围文本（不含回退）"""
    pages: set[int] = set()
    for raw in (text or "").split(","):
        token = raw.strip()
        if not token:
            continue

        match = _RANGE_RE.match(token)
        if match:
            start, end = int(match.group(1)), int(match.group(2))
            # 反向区间 (5-3) 不产生任何页
            pages.update(range(max(start, 1), min(end, total_pages) + 1))
            continue

        if _SINGLE_RE.match(token):
            number = int(token)
            if 1 <= number <= total_pages:
                pages.add(number)
            continue

        logger.debug(f"跳过无法识别的页范围项: {token!r}")

    return sorted(pages)


class PageRangeResolver:
    """页范围解析器"""

    def resolve(
        self,
        mode: ExportRange | str,
        custom_range: str,
        total_pages: int,
        current_page: int,
    ) -> list[int]:
        total_pages = max(1, total_pages)
        current = min(max(1, current_page), total_pages)
        mode = ExportRange(mode)

        if mode == ExportRange.ALL:
            return list(range(1, total_pages + 1))

        if mode == ExportRange.CUSTOM:
            pages = parse_custom_range(custom_range, total_pages)
            if pages:
                return pages
            logger.info(f"自定义页范围 {custom_range!r} 未解析出有效页码，回退到当前页 {current}")

        return [current]


def resolve_page_range(
    mode: ExportRange | str,
    custom_range: str,
    total_pages: int,
    current_page: int,
) -> list[int]:
    """便捷函数：解析导出页范围"""
    return PageRangeResolver().resolve(mode, custom_range, total_pages, current_page)
