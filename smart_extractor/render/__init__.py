"""
渲染模块 - 文档解析/页面光栅化/图片读取

子模块：
- pdf_engine: pdfplumber 解析与单页渲染
- image_reader: 单图输入校验
- rasterizer: 单页渲染 + JPEG编码
"""

from .image_reader import ImageSourceReader
from .pdf_engine import PdfPlumberEngine
from .rasterizer import JPEG_MIME, PageRasterizer

__all__ = [
    "PdfPlumberEngine",
    "ImageSourceReader",
    "PageRasterizer",
    "JPEG_MIME",
]
