"""
远端服务模块 - 文本提取/摘要后端

子模块：
- gemini_client: Gemini 提取与摘要
"""

from .gemini_client import GeminiBackend

__all__ = [
    "GeminiBackend",
]
