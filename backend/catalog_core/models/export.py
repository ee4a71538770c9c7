"""
导出模型 - 导出请求与导出任务状态机

导出任务只在一次导出调用期间存在，完成或失败后即丢弃，不持久化。

状态图：
    IDLE → RESOLVING_PAGES → (FETCHING_FULL_DATA)? → RENDERING_PAGE[i]
         → WAITING_FOR_ASSETS[i] → CAPTURING[i] → ASSEMBLING[i] → (循环 i)
         → FINALIZING → DONE
    任意非终态 → FAILED；页与页之间 → CANCELLED
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..interfaces import InvalidStateTransitionError


class ExportFormat(str, Enum):
    """导出格式"""
    PDF = "pdf"
    PNG = "png"


class ExportRange(str, Enum):
    """导出页范围模式"""
    CURRENT = "current"
    ALL = "all"
    CUSTOM = "custom"


class ExportState(str, Enum):
    """导出流水线状态"""
    IDLE = "idle"
    RESOLVING_PAGES = "resolving_pages"
    FETCHING_FULL_DATA = "fetching_full_data"
    RENDERING_PAGE = "rendering_page"
    WAITING_FOR_ASSETS = "waiting_for_assets"
    CAPTURING = "capturing"
    ASSEMBLING = "assembling"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: ExportState) -> bool:
        return target in _EXPORT_TRANSITIONS.get(self, set())

    def is_terminal(self) -> bool:
        return len(_EXPORT_TRANSITIONS.get(self, set())) == 0


_EXPORT_TRANSITIONS: dict[ExportState, set[ExportState]] = {
    ExportState.IDLE: {ExportState.RESOLVING_PAGES, ExportState.FAILED},
    ExportState.RESOLVING_PAGES: {
        ExportState.FETCHING_FULL_DATA,
        ExportState.RENDERING_PAGE,
        ExportState.FAILED,
        ExportState.CANCELLED,
    },
    ExportState.FETCHING_FULL_DATA: {
        ExportState.RENDERING_PAGE,
        ExportState.FAILED,
        ExportState.CANCELLED,
    },
    ExportState.RENDERING_PAGE: {ExportState.WAITING_FOR_ASSETS, ExportState.FAILED},
    ExportState.WAITING_FOR_ASSETS: {ExportState.CAPTURING, ExportState.FAILED},
    ExportState.CAPTURING: {ExportState.ASSEMBLING, ExportState.FAILED},
    ExportState.ASSEMBLING: {
        ExportState.RENDERING_PAGE,
        ExportState.FINALIZING,
        ExportState.FAILED,
        ExportState.CANCELLED,
    },
    ExportState.FINALIZING: {ExportState.DONE, ExportState.FAILED},
    ExportState.DONE: set(),
    ExportState.FAILED: set(),
    ExportState.CANCELLED: set(),
}


class ExportRequest(BaseModel):
    """导出请求（每次导出操作临时创建）"""

    model_config = ConfigDict(populate_by_name=True)

    format: ExportFormat = ExportFormat.PDF
    quality: float = Field(0.9, description="PDF帧JPEG压缩质量(0.1-1.0)")
    range_mode: ExportRange = Field(ExportRange.CURRENT, alias="range")
    custom_range: str = Field("", alias="customRange")

    @field_validator("quality", mode="after")
    @classmethod
    def _clamp_quality(cls, value: float) -> float:
        return min(1.0, max(0.1, value))


class ExportProgress(BaseModel):
    """导出进度"""
    completed: int = 0
    total: int = 0
    page_number: int | None = None
    message: str = ""

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return round(self.completed / self.total * 100)


class ExportJob(BaseModel):
    """导出任务（运行期对象）"""

    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    request: ExportRequest

    # 状态
    state: ExportState = ExportState.IDLE
    state_history: list[ExportState] = Field(default_factory=lambda: [ExportState.IDLE])
    pages: list[int] = Field(default_factory=list, description="已解析的升序去重页码")
    progress: ExportProgress = Field(default_factory=ExportProgress)
    cancel_requested: bool = False

    # 结果
    artifacts: list[Path] = Field(default_factory=list)
    flags: list[str] = Field(default_factory=list, description="告警标记")
    error: str | None = None

    # 时间戳
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def transition(self, target: ExportState) -> None:
        """状态迁移（非法迁移抛出异常）"""
        if not self.state.can_transition_to(target):
            raise InvalidStateTransitionError(
                f"非法状态迁移: {self.state.value} → {target.value}"
            )
        if target == ExportState.RESOLVING_PAGES:
            self.started_at = datetime.now()
        if target.is_terminal():
            self.finished_at = datetime.now()
        self.state = target
        self.state_history.append(target)

    def set_pages(self, pages: list[int]) -> None:
        self.pages = list(pages)
        self.progress.total = len(pages)
        self.progress.completed = 0

    def advance(self, page_number: int) -> None:
        """完成一页"""
        self.progress.completed += 1
        self.progress.page_number = page_number
        self.progress.message = f"已完成 {self.progress.completed}/{self.progress.total}"

    def request_cancel(self) -> None:
        """请求取消（在页与页之间生效）"""
        self.cancel_requested = True

    def mark_failed(self, error: str) -> None:
        """标记为失败"""
        self.error = error
        if not self.state.is_terminal():
            self.transition(ExportState.FAILED)

    def add_flag(self, flag: str) -> None:
        """添加告警标记（不中断）"""
        if flag not in self.flags:
            self.flags.append(flag)

    @property
    def percent(self) -> int:
        return self.progress.percent

    @property
    def succeeded(self) -> bool:
        return self.state == ExportState.DONE
