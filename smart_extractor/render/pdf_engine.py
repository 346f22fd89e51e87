"""
PDF渲染引擎 - 解析PDF并逐页光栅化

职责：
1. 从内存字节解析PDF
2. 计算页数
3. 按倍率将单页渲染为位图

依赖：
- pdfplumber: PDF解析与页面渲染（底层 pypdfium2）

测试要点：
- test_parse_and_count: 解析与页数
- test_parse_invalid_bytes: 非PDF字节 -> ReadError
- test_render_scale: 渲染倍率
- test_render_out_of_range: 越界页码 -> RenderError
"""

from __future__ import annotations

import io
import logging
from typing import Any

import pdfplumber
from PIL import Image

from ..config import get_config
from ..interfaces import IRenderEngine, ReadError, RenderError

logger = logging.getLogger(__name__)


class PdfPlumberEngine(IRenderEngine):
    """pdfplumber 渲染引擎实现"""

    def __init__(self, base_dpi: int | None = None):
        config = get_config()
        self.base_dpi = base_dpi or config.render.base_dpi

    def parse(self, data: bytes) -> Any:
        """解析PDF字节"""
        if not data:
            raise ReadError("PDF文件为空")

        try:
            return pdfplumber.open(io.BytesIO(data))
        except Exception as e:
            raise ReadError(f"无法解析PDF文件: {e}") from e

    def get_page_count(self, handle: Any) -> int:
        """计算PDF页数"""
        try:
            return len(handle.pages)
        except Exception as e:
            raise ReadError(f"无法读取PDF页面: {e}") from e

    def render_page(self, handle: Any, index: int, scale: float) -> Image.Image:
        """渲染单页（index 从1开始）"""
        total = self.get_page_count(handle)
        if index < 1 or index > total:
            raise RenderError(f"页码越界: {index}/{total}", page_index=index)

        try:
            page = handle.pages[index - 1]
            page_image = page.to_image(resolution=self.base_dpi * scale)
            return page_image.original
        except Exception as e:
            logger.warning(f"页面渲染失败: 第{index}页: {e}")
            raise RenderError(f"第 {index} 页渲染失败", page_index=index) from e

    def close(self, handle: Any) -> None:
        """关闭PDF"""
        if handle is None:
            return
        try:
            handle.close()
        except Exception as e:  # noqa: BLE001
            logger.debug(f"关闭PDF句柄失败: {e}")
