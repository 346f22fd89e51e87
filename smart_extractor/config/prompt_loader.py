"""
提示词加载器 - 读取提取/摘要指令

职责：
- 提供内置默认提示词（单图、多页批量、摘要）
- 可选从YAML覆盖（backend.prompts_path）
- 缓存加载结果（避免重复解析）

使用方式：
    prompts = load_prompts()
    prompts.render_summary(text)
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel

SINGLE_IMAGE_PROMPT = """You are an advanced OCR engine with layout awareness. Extract all of the text \
in this image while preserving its original structure and formatting as faithfully as possible. \
Pay close attention to:
- Headings and subheadings: identify them and keep their hierarchy.
- Paragraphs: keep paragraph breaks exactly as they appear.
- Lists: keep bulleted and numbered lists.
- Alignment: mimic the text alignment (right, left, center) where appropriate.
- Whitespace: use line breaks and spacing to imitate the original layout.

The text may be in Arabic or English. Output clean, well-formatted text that represents the text \
exactly as it appears in the image."""

MULTI_PAGE_PROMPT = """You are a document processing system. Extract all of the text from the \
following document pages, in the given order. Process the pages strictly in that order and merge \
their content into a single coherent document.

Preserve the original structure and formatting with high fidelity:
- Headings and sections: keep the hierarchy of headings and subheadings across pages.
- Paragraphs and line breaks: reproduce the paragraph structure precisely.
- Lists: format ordered (numbered) and unordered (bulleted) lists correctly.
- Continuity: text that flows from one page to the next must be joined seamlessly, \
for example a sentence split across a page boundary.

Extract the text in its original language (Arabic or English). The final output must be a \
well-organized text document representing the combined content of all pages."""

SUMMARY_PROMPT = """You are an expert at summarizing text. Summarize the following text in \
{language} as clear, concise bullet points. Focus only on the main ideas and important \
information. The text is:

"{text}\""""


class PromptSpec(BaseModel):
    """提示词集合"""
    schema_version: str = "1.0"
    single_image: str = SINGLE_IMAGE_PROMPT
    multi_page: str = MULTI_PAGE_PROMPT
    summary: str = SUMMARY_PROMPT
    summary_language: str = "Arabic"

    def render_summary(self, text: str) -> str:
        """填充摘要模板"""
        return self.summary.replace("{language}", self.summary_language).replace("{text}", text)


class PromptLoader:
    """提示词加载器（缓存）"""

    @classmethod
    @lru_cache(maxsize=4)
    def load(cls, prompts_path: str | None = None) -> PromptSpec:
        """加载并缓存提示词；未指定路径时使用内置默认值"""
        if not prompts_path:
            return PromptSpec()

        path = Path(prompts_path)
        if not path.exists():
            raise FileNotFoundError(f"提示词文件不存在: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return PromptSpec(**data)

    @classmethod
    def reload(cls, prompts_path: str | None = None) -> PromptSpec:
        """强制重新加载（清除缓存）"""
        cls.load.cache_clear()
        return cls.load(prompts_path)


# 便捷函数
def load_prompts(prompts_path: str | Path | None = None) -> PromptSpec:
    """加载提示词"""
    return PromptLoader.load(str(prompts_path) if prompts_path else None)
