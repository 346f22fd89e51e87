"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- Job: 任务状态与生命周期
- SourceFile / SourceDocument: 输入文件与解析后的文档
- PageImage: 单页编码图像
- ExtractionResult: 提取结果
"""

from .document import (
    PDF_MIME,
    ExtractionResult,
    PageImage,
    SourceDocument,
    SourceFile,
    SourceKind,
)
from .job import (
    TERMINAL_STATES,
    ErrorKind,
    Job,
    JobProgress,
    JobState,
    ProgressUpdate,
)

__all__ = [
    "Job",
    "JobState",
    "JobProgress",
    "ProgressUpdate",
    "ErrorKind",
    "TERMINAL_STATES",
    "SourceFile",
    "SourceKind",
    "SourceDocument",
    "PageImage",
    "ExtractionResult",
    "PDF_MIME",
]
