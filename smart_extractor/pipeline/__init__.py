"""
流水线模块 - 任务编排与执行

子模块：
- cancellation: 取消令牌
- stages: 流水线各阶段定义
- progress: 进度计算（按页数 / 按耗时估算）
- executor: 单任务状态机
- job_manager: 任务监管（至多一个活动任务）
- intake: 提交前预检
- exporter: 结果导出
"""

from .cancellation import CancellationToken
from .executor import ExtractionJob
from .exporter import ResultExporter
from .intake import check_source
from .job_manager import JobHandle, JobSupervisor
from .progress import PageCountProgress, ProgressSnapshot, TimeEstimateProgress
from .stages import PipelineStage, StageEnum, image_stages, pdf_stages

__all__ = [
    "CancellationToken",
    "ExtractionJob",
    "ResultExporter",
    "check_source",
    "JobHandle",
    "JobSupervisor",
    "PageCountProgress",
    "TimeEstimateProgress",
    "ProgressSnapshot",
    "PipelineStage",
    "StageEnum",
    "pdf_stages",
    "image_stages",
]
