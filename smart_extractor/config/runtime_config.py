"""
运行期配置 - 读取 documents/runtime.yaml

职责：
- 加载渲染/进度/后端/上传限制等运行参数
- 提供环境变量覆盖机制（SMART_EXTRACTOR_ 前缀，嵌套用 __）
- 类型安全的配置访问
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

DEFAULT_CONFIG_PATH = Path("documents/runtime.yaml")
FALLBACK_CONFIG_PATH = Path("config/runtime.yaml")


class RenderConfig(BaseModel):
    """渲染配置"""

    extract_scale: float = 2.0  # 批量提取用更高倍率，识别更准
    preview_scale: float = 1.5
    base_dpi: int = 72
    jpeg_quality: int = Field(default=90, ge=1, le=95)


class ProgressConfig(BaseModel):
    """进度配置"""

    raster_split_percent: int = Field(default=50, ge=1, le=99)
    image_cap_percent: int = Field(default=90, ge=1, le=99)
    image_estimated_sec: float = 15.0
    image_tick_sec: float = 1.0


class BackendConfig(BaseModel):
    """提取后端配置"""

    model: str = "gemini-2.5-flash"
    api_key: str = ""  # 为空时由 google-genai 读取 GEMINI_API_KEY / GOOGLE_API_KEY
    prompts_path: str | None = None


class UploadLimitsConfig(BaseModel):
    """上传限制"""

    max_pdf_mb: int = 25
    max_image_mb: int = 10
    pdf_types: list[str] = Field(default_factory=lambda: ["application/pdf"])
    image_types: list[str] = Field(default_factory=lambda: ["image/png", "image/jpeg"])


class JobsConfig(BaseModel):
    """任务管理配置"""

    history_limit: int = 20


class TimeoutConfig(BaseModel):
    """超时配置（仅调用方使用，核心流水线不限时）"""

    extract_sec: float = 0  # 0 表示不限


class ExportConfig(BaseModel):
    """导出配置"""

    text_filename: str = "extracted-text.txt"
    word_filename: str = "extracted-text.doc"
    summary_filename: str = "summary.txt"
    html_lang: str = "ar"
    html_dir: str = "rtl"


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = False


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 存储路径
    storage_dir: Path = Path("storage")

    # 各子配置
    render: RenderConfig = Field(default_factory=RenderConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    upload_limits: UploadLimitsConfig = Field(default_factory=UploadLimitsConfig)
    jobs: JobsConfig = Field(default_factory=JobsConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "SMART_EXTRACTOR_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        runtime_opts = data.get("runtime_options", {})

        config = cls(
            render=RenderConfig(**cls._extract(runtime_opts, "render")),
            progress=ProgressConfig(**cls._extract(runtime_opts, "progress")),
            backend=BackendConfig(**cls._extract(runtime_opts, "backend")),
            upload_limits=UploadLimitsConfig(**cls._extract(runtime_opts, "upload_limits")),
            jobs=JobsConfig(**cls._extract(runtime_opts, "jobs")),
            timeouts=TimeoutConfig(**cls._extract(runtime_opts, "timeouts")),
            export=ExportConfig(**cls._extract(runtime_opts, "export")),
            logging=LoggingConfig(**cls._extract(runtime_opts, "logging")),
        )

        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置"""
        section = data.get(key) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对路径配置为绝对路径（基于配置文件所在目录）"""
        if self.backend.prompts_path:
            prompts_path = Path(self.backend.prompts_path)
            if not prompts_path.is_absolute():
                self.backend.prompts_path = str((base_dir / prompts_path).resolve())

    def max_bytes_for(self, mime_type: str) -> int:
        """按类型返回上传上限（字节）"""
        if mime_type in self.upload_limits.pdf_types:
            return self.upload_limits.max_pdf_mb * 1024 * 1024
        return self.upload_limits.max_image_mb * 1024 * 1024

    def get_log_dir(self) -> Path:
        """获取日志目录"""
        return self.storage_dir / "logs"

    def ensure_dirs(self) -> None:
        """确保必要目录存在"""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.get_log_dir().mkdir(exist_ok=True)


# 全局配置实例
_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        default_path = DEFAULT_CONFIG_PATH
        if not default_path.exists() and FALLBACK_CONFIG_PATH.exists():
            default_path = FALLBACK_CONFIG_PATH
        _config = RuntimeConfig.from_yaml(default_path)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or DEFAULT_CONFIG_PATH
    _config = RuntimeConfig.from_yaml(path)
    return _config
