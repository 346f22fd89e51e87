"""
任务模型 - 定义任务状态与生命周期

状态机：
    IDLE -> READING_SOURCE -> RASTERIZING(i/n) -> SUBMITTING -> SUCCEEDED
    任意非终态 -> FAILED(kind, message) / ABORTED
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .document import ExtractionResult, SourceKind


class JobState(str, Enum):
    """任务状态枚举"""
    IDLE = "idle"
    READING_SOURCE = "reading_source"
    RASTERIZING = "rasterizing"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.ABORTED})


class ErrorKind(str, Enum):
    """失败类型"""
    READ = "read"
    RENDER = "render"
    BACKEND = "backend"
    INTERNAL = "internal"


class JobProgress(BaseModel):
    """任务进度"""
    percent: int = 0
    message: str = ""
    page_index: int | None = None
    total_pages: int | None = None


class ProgressUpdate(BaseModel):
    """推送给观察者的进度事件"""
    job_id: str
    percent: int
    message: str
    state: JobState


class Job(BaseModel):
    """任务实体"""
    job_id: str = Field(..., description="UUID")
    source_name: str
    source_kind: SourceKind
    source_bytes: int = 0

    # 状态
    state: JobState = JobState.IDLE
    progress: JobProgress = Field(default_factory=JobProgress)

    # 结果
    result: ExtractionResult | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None

    # 时间戳
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def mark_reading(self) -> None:
        """标记为读取中"""
        self.state = JobState.READING_SOURCE
        self.started_at = datetime.now()

    def mark_rasterizing(self, page_index: int, total_pages: int) -> None:
        """标记为光栅化第 page_index 页"""
        self.state = JobState.RASTERIZING
        self.progress.page_index = page_index
        self.progress.total_pages = total_pages

    def mark_submitting(self) -> None:
        """标记为提交中"""
        self.state = JobState.SUBMITTING

    def mark_succeeded(self, result: ExtractionResult) -> None:
        """标记为成功"""
        self.state = JobState.SUCCEEDED
        self.result = result
        self.finished_at = datetime.now()
        self.progress.percent = 100

    def mark_failed(self, kind: ErrorKind, message: str) -> None:
        """标记为失败（不保留任何部分结果）"""
        self.state = JobState.FAILED
        self.result = None
        self.error_kind = kind
        self.error_message = message
        self.finished_at = datetime.now()

    def mark_aborted(self) -> None:
        """标记为已撤销"""
        self.state = JobState.ABORTED
        self.result = None
        self.finished_at = datetime.now()

    def snapshot(self) -> ProgressUpdate:
        """当前进度快照"""
        return ProgressUpdate(
            job_id=self.job_id,
            percent=self.progress.percent,
            message=self.progress.message,
            state=self.state,
        )
