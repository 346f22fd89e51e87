"""
文档模型 - 输入文件、解析后文档、页面图像与提取结果

SourceDocument / PageImage 只在单个任务运行期内存在，任务结束即丢弃。
"""

from __future__ import annotations

import mimetypes
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

PDF_MIME = "application/pdf"


class SourceKind(str, Enum):
    """输入类型"""
    PDF = "pdf"       # 多页：逐页光栅化后批量提交
    IMAGE = "image"   # 单图：直接提交


class SourceFile(BaseModel):
    """调用方提供的原始输入"""
    name: str
    data: bytes = Field(repr=False)
    mime_type: str

    @property
    def kind(self) -> SourceKind:
        return SourceKind.PDF if self.mime_type == PDF_MIME else SourceKind.IMAGE

    @property
    def byte_length(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str | None = None) -> SourceFile:
        """读取文件，按扩展名推断MIME类型"""
        path = Path(path)
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            data=path.read_bytes(),
            mime_type=mime_type or "application/octet-stream",
        )


class SourceDocument(BaseModel):
    """已解析的文档（句柄不透明，由所属任务独占）"""
    name: str
    kind: SourceKind
    mime_type: str
    byte_length: int
    page_count: int
    handle: Any = Field(default=None, repr=False, exclude=True)

    model_config = {"arbitrary_types_allowed": True}


class PageImage(BaseModel):
    """单页编码图像"""
    index: int = Field(..., ge=1, description="从1开始的页码")
    encoded_bytes: bytes = Field(repr=False)
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.encoded_bytes)


class ExtractionResult(BaseModel):
    """提取结果（仅在成功时产生，不会是部分结果）"""
    text: str
    page_count: int = 1
