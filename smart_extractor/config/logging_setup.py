"""
日志初始化 - 按 LoggingConfig 配置根日志器
"""

from __future__ import annotations

import logging

from .runtime_config import RuntimeConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(config: RuntimeConfig, level: str | None = None) -> None:
    """配置根日志器（控制台 + 可选文件）"""
    root = logging.getLogger()
    root.setLevel((level or config.logging.log_level).upper())

    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if config.logging.log_to_file:
        config.ensure_dirs()
        file_handler = logging.FileHandler(
            config.get_log_dir() / "smart_extractor.log", encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
