"""
单图读取器 - 校验图片输入并构造单页文档

依赖：
- Pillow: 识别图片格式并校验字节完整性
"""

from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from ..interfaces import ISourceReader, ReadError
from ..models import SourceDocument, SourceFile, SourceKind


class ImageSourceReader(ISourceReader):
    """Pillow 图片读取器"""

    def read(self, source: SourceFile) -> SourceDocument:
        if not source.data:
            raise ReadError(f"文件为空: {source.name}")

        try:
            with Image.open(io.BytesIO(source.data)) as img:
                fmt = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ReadError(f"无法读取图片文件: {source.name}") from e

        # 以实际格式为准，扩展名可能不可信
        mime_type = Image.MIME.get(fmt or "", source.mime_type)

        return SourceDocument(
            name=source.name,
            kind=SourceKind.IMAGE,
            mime_type=mime_type,
            byte_length=source.byte_length,
            page_count=1,
        )
