"""
Gemini 后端 - 文本提取与摘要

职责：
1. 多页批量提取：一次请求携带全部页面图像（按页码顺序）+ 连续性指令
2. 单图提取
3. 文本摘要
4. 调用异常统一转为 BackendError（不自动重试）

依赖：
- google-genai: Gemini API 客户端（异步接口 client.aio）

测试要点：
- test_extract_pages_order: 提示词在前，图像按页码顺序
- test_backend_failure: 调用异常 -> BackendError
- test_empty_response: 空返回 -> BackendError
"""

from __future__ import annotations

import logging
from typing import Any

from google import genai
from google.genai import types

from ..config import PromptSpec, get_config, load_prompts
from ..interfaces import BackendError, IExtractionBackend, ISummarizer
from ..models import PageImage

logger = logging.getLogger(__name__)


class GeminiBackend(IExtractionBackend, ISummarizer):
    """Gemini 提取/摘要后端"""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        prompts: PromptSpec | None = None,
        client: Any | None = None,
    ):
        config = get_config()
        self.api_key = api_key or config.backend.api_key or None
        self.model = model or config.backend.model
        self.prompts = prompts or load_prompts(config.backend.prompts_path)
        self._client = client

    async def extract_pages(self, images: list[PageImage]) -> str:
        """多页批量提取"""
        if not images:
            raise BackendError("没有可提交的页面")

        ordered = sorted(images, key=lambda img: img.index)
        parts = [types.Part.from_text(text=self.prompts.multi_page)]
        parts.extend(self._image_part(img) for img in ordered)

        logger.info(f"提交 {len(ordered)} 页到 {self.model}")
        return await self._generate(parts, "从PDF页面提取文本失败，请重试。")

    async def extract_image(self, image: PageImage) -> str:
        """单图提取"""
        parts = [
            types.Part.from_text(text=self.prompts.single_image),
            self._image_part(image),
        ]
        return await self._generate(parts, "从图片提取文本失败，请重试。")

    async def summarize(self, text: str) -> str:
        """生成要点式摘要"""
        if not text or not text.strip():
            raise BackendError("没有可摘要的文本")

        prompt = self.prompts.render_summary(text)
        return await self._generate(prompt, "文本摘要失败，请重试。")

    def _get_client(self) -> Any:
        """惰性创建客户端（无密钥时不在构造阶段失败）"""
        if self._client is None:
            try:
                self._client = genai.Client(api_key=self.api_key)
            except Exception as e:
                raise BackendError(f"无法初始化Gemini客户端: {e}") from e
        return self._client

    async def _generate(self, contents: Any, failure_message: str) -> str:
        client = self._get_client()
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=contents,
            )
            text = response.text
        except Exception as e:
            logger.error(f"Gemini调用失败: {e}")
            raise BackendError(failure_message) from e

        if not text or not text.strip():
            logger.error("Gemini返回内容为空")
            raise BackendError(failure_message)
        return text

    @staticmethod
    def _image_part(image: PageImage) -> types.Part:
        return types.Part.from_bytes(data=image.encoded_bytes, mime_type=image.mime_type)
