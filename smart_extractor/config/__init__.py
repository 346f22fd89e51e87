"""
配置层 - 加载运行期配置与提示词

职责：
- 加载 documents/runtime.yaml（运行期参数）
- 加载提取/摘要提示词（内置默认 + 可选YAML覆盖）
- 提供类型安全的配置访问接口
"""

from .logging_setup import setup_logging
from .prompt_loader import PromptLoader, PromptSpec, load_prompts
from .runtime_config import RuntimeConfig, get_config, reload_config

__all__ = [
    "PromptLoader",
    "PromptSpec",
    "load_prompts",
    "RuntimeConfig",
    "get_config",
    "reload_config",
    "setup_logging",
]
