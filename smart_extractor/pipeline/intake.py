"""
输入预检 - 调用方在提交前执行（不进入核心流水线）

- 类型不在白名单 -> UnsupportedSourceError
- 超出大小上限（PDF 25MB / 图片 10MB） -> InputTooLargeError
"""

from __future__ import annotations

from ..config import RuntimeConfig, get_config
from ..interfaces import InputTooLargeError, UnsupportedSourceError
from ..models import SourceFile


def check_source(source: SourceFile, config: RuntimeConfig | None = None) -> None:
    """预检输入文件"""
    config = config or get_config()
    limits = config.upload_limits

    allowed = [*limits.pdf_types, *limits.image_types]
    if source.mime_type not in allowed:
        raise UnsupportedSourceError(
            f"不支持的文件类型: {source.name} ({source.mime_type})，支持: {', '.join(allowed)}"
        )

    max_bytes = config.max_bytes_for(source.mime_type)
    if source.byte_length > max_bytes:
        max_mb = max_bytes // (1024 * 1024)
        raise InputTooLargeError(f"文件过大: {source.name}，最大允许 {max_mb} MB")
