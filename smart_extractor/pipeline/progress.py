"""
进度计算 - 阶段 + 计数器 -> 百分比与提示文本

两种策略（观测能力不同，刻意不合并）：
- PageCountProgress: 多页PDF，按已完成页数确定性计算
- TimeEstimateProgress: 单图，按耗时估算（后端调用无子进度信号）

两者均为纯函数：同样的输入得到同样的输出。

测试要点：
- test_page_count_three_pages: 3页 -> 17/33/50
- test_submitting_fixed: 提交阶段固定百分比
- test_time_estimate_capped: 估算值封顶且不会到100
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from ..config import get_config
from ..interfaces import IProgressReporter
from ..models import JobState
from .stages import StageEnum, image_stages, pdf_stages

MSG_READING_PDF = "正在读取PDF文件..."
MSG_READING_IMAGE = "正在初始化..."
MSG_PAGE = "正在处理第 {page}/{total} 页..."
MSG_PAGES_DONE = "已完成全部 {total} 页渲染"
MSG_SUBMITTING_BATCH = "正在使用AI提取文本..."
MSG_ANALYZING = "正在分析图片... 预计剩余约 {remaining} 秒"
MSG_OVERDUE = "处理时间比预期长，请稍候..."
MSG_SUCCEEDED = "处理完成！"


@dataclass(frozen=True)
class ProgressSnapshot:
    """进度快照"""
    percent: int
    message: str


class PageCountProgress(IProgressReporter):
    """按页数计算进度（多页PDF）"""

    def __init__(self, split_percent: int | None = None):
        split = split_percent or get_config().progress.raster_split_percent
        stages = {s.name: s for s in pdf_stages(split)}
        self.raster_stage = stages[StageEnum.RASTERIZE_PAGES.value]
        self.submit_stage = stages[StageEnum.SUBMIT_BATCH.value]

    def report(
        self,
        state: JobState,
        *,
        completed_pages: int = 0,
        total_pages: int = 0,
        elapsed_sec: float = 0.0,
    ) -> ProgressSnapshot:
        if state in (JobState.IDLE, JobState.READING_SOURCE):
            return ProgressSnapshot(0, MSG_READING_PDF)

        if state is JobState.RASTERIZING:
            start = self.raster_stage.progress_start
            span = self.raster_stage.progress_end - start
            completed = max(0, min(completed_pages, total_pages))
            percent = start + round(completed / total_pages * span) if total_pages > 0 else start
            if completed < total_pages:
                message = MSG_PAGE.format(page=completed + 1, total=total_pages)
            else:
                message = MSG_PAGES_DONE.format(total=total_pages)
            return ProgressSnapshot(percent, message)

        if state is JobState.SUBMITTING:
            return ProgressSnapshot(self.submit_stage.progress_start, MSG_SUBMITTING_BATCH)

        if state is JobState.SUCCEEDED:
            return ProgressSnapshot(100, MSG_SUCCEEDED)

        raise ValueError(f"状态无进度定义: {state.value}")


class TimeEstimateProgress(IProgressReporter):
    """按耗时估算进度（单图）

    启发式的界面信号，不代表后端真实进度：封顶 cap_percent，
    只有结果到达后才报告100。
    """

    def __init__(
        self,
        estimated_sec: float | None = None,
        cap_percent: int | None = None,
        tick_sec: float | None = None,
    ):
        config = get_config().progress
        self.estimated_sec = estimated_sec if estimated_sec is not None else config.image_estimated_sec
        self.cap_percent = min(99, cap_percent or config.image_cap_percent)
        self.tick_sec = tick_sec or config.image_tick_sec
        self.start_percent = image_stages()[-1].progress_start

    def is_overdue(self, elapsed_sec: float) -> bool:
        return elapsed_sec >= self.estimated_sec

    def report(
        self,
        state: JobState,
        *,
        completed_pages: int = 0,
        total_pages: int = 0,
        elapsed_sec: float = 0.0,
    ) -> ProgressSnapshot:
        if state in (JobState.IDLE, JobState.READING_SOURCE):
            return ProgressSnapshot(self.start_percent, MSG_READING_IMAGE)

        if state is JobState.SUBMITTING:
            elapsed = max(0.0, elapsed_sec)
            if self.estimated_sec <= 0:
                return ProgressSnapshot(self.cap_percent, MSG_OVERDUE)
            percent = min(self.cap_percent, round(elapsed / self.estimated_sec * self.cap_percent))
            remaining = math.ceil(self.estimated_sec - elapsed)
            if remaining > 0:
                message = MSG_ANALYZING.format(remaining=remaining)
            else:
                message = MSG_OVERDUE
            return ProgressSnapshot(max(self.start_percent, percent), message)

        if state is JobState.SUCCEEDED:
            return ProgressSnapshot(100, MSG_SUCCEEDED)

        raise ValueError(f"状态无进度定义: {state.value}")
