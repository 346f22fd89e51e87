"""
流水线阶段定义

职责：
1. 定义各阶段的名称
2. 定义各阶段占用的进度区间（0-100）
3. 状态 -> 阶段映射（日志用）
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..models import JobState, SourceKind


class StageEnum(str, Enum):
    """流水线阶段枚举"""
    READ_SOURCE = "READ_SOURCE"
    RASTERIZE_PAGES = "RASTERIZE_PAGES"
    SUBMIT_BATCH = "SUBMIT_BATCH"
    SUBMIT_IMAGE = "SUBMIT_IMAGE"


@dataclass(frozen=True)
class PipelineStage:
    """流水线阶段"""
    name: str
    progress_start: int  # 进度起点（0-100）
    progress_end: int    # 进度终点


def pdf_stages(split_percent: int = 50) -> list[PipelineStage]:
    """多页流水线：光栅化占 [0, split]，提交无子进度"""
    return [
        PipelineStage(StageEnum.READ_SOURCE.value, 0, 0),
        PipelineStage(StageEnum.RASTERIZE_PAGES.value, 0, split_percent),
        PipelineStage(StageEnum.SUBMIT_BATCH.value, split_percent, 100),
    ]


def image_stages() -> list[PipelineStage]:
    """单图流水线：无光栅化阶段"""
    return [
        PipelineStage(StageEnum.READ_SOURCE.value, 0, 0),
        PipelineStage(StageEnum.SUBMIT_IMAGE.value, 0, 100),
    ]


def stage_for(kind: SourceKind, state: JobState) -> StageEnum | None:
    """状态对应的阶段"""
    if state is JobState.READING_SOURCE:
        return StageEnum.READ_SOURCE
    if state is JobState.RASTERIZING:
        return StageEnum.RASTERIZE_PAGES
    if state is JobState.SUBMITTING:
        return StageEnum.SUBMIT_BATCH if kind is SourceKind.PDF else StageEnum.SUBMIT_IMAGE
    return None
