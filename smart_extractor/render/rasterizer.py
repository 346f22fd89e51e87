"""
页面光栅化器 - 渲染单页并编码为JPEG

职责：
1. 调用渲染引擎得到位图（线程中执行，不阻塞事件循环）
2. 按固定质量编码为有损格式，控制提交体积
3. 渲染/编码失败统一转为 RenderError（不重试、不跳页）

测试要点：
- test_rasterize_jpeg: 输出为JPEG且带页码
- test_rasterize_engine_failure: 引擎异常 -> RenderError
- test_rasterize_rgba_input: 透明通道位图可编码
"""

from __future__ import annotations

import asyncio
import io
from typing import Any

from PIL import Image

from ..config import get_config
from ..interfaces import IPageRasterizer, IRenderEngine, RenderError
from ..models import PageImage
from .pdf_engine import PdfPlumberEngine

JPEG_MIME = "image/jpeg"


class PageRasterizer(IPageRasterizer):
    """页面光栅化器实现"""

    def __init__(
        self,
        engine: IRenderEngine | None = None,
        *,
        extract_scale: float | None = None,
        preview_scale: float | None = None,
        quality: int | None = None,
    ):
        config = get_config()
        self.engine = engine or PdfPlumberEngine()
        self.extract_scale = extract_scale or config.render.extract_scale
        self.preview_scale = preview_scale or config.render.preview_scale
        self.quality = quality or config.render.jpeg_quality

    async def rasterize(self, handle: Any, index: int, scale: float | None = None) -> PageImage:
        """渲染并编码单页（渲染、编码各为一个挂起点）"""
        scale = scale or self.extract_scale

        try:
            raster = await asyncio.to_thread(self.engine.render_page, handle, index, scale)
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"第 {index} 页渲染失败: {e}", page_index=index) from e

        try:
            encoded = await asyncio.to_thread(self._encode, raster)
        except Exception as e:
            raise RenderError(f"第 {index} 页编码失败: {e}", page_index=index) from e

        return PageImage(index=index, encoded_bytes=encoded, mime_type=JPEG_MIME)

    async def preview(self, handle: Any, index: int) -> PageImage:
        """以预览倍率渲染单页"""
        return await self.rasterize(handle, index, scale=self.preview_scale)

    def _encode(self, raster: Image.Image) -> bytes:
        """编码为JPEG（JPEG不支持透明通道，先转RGB）"""
        if raster.mode != "RGB":
            raster = raster.convert("RGB")
        buffer = io.BytesIO()
        raster.save(buffer, format="JPEG", quality=self.quality)
        return buffer.getvalue()
