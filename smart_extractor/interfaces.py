"""
模块接口契约 - 定义各模块的抽象接口

设计原则：
1. 核心流水线只依赖接口，不直接依赖 pdfplumber / Pillow / Gemini 等具体实现
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from smart_extractor.interfaces import IRenderEngine

    class MyEngine(IRenderEngine):
        def parse(self, data: bytes) -> Any:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, AsyncIterator

if TYPE_CHECKING:
    from PIL import Image

    from .models import (
        Job,
        JobState,
        PageImage,
        ProgressUpdate,
        SourceDocument,
        SourceFile,
    )
    from .pipeline.job_manager import JobHandle
    from .pipeline.progress import ProgressSnapshot


# ============================================================================
# 渲染模块接口
# ============================================================================

class IRenderEngine(ABC):
    """渲染引擎接口 - 解析文档并光栅化单页"""

    @abstractmethod
    def parse(self, data: bytes) -> Any:
        """
        解析文档字节

        Args:
            data: 原始文档字节

        Returns:
            不透明的文档句柄

        Raises:
            ReadError: 字节无法解析
        """
        ...

    @abstractmethod
    def get_page_count(self, handle: Any) -> int:
        """获取页数"""
        ...

    @abstractmethod
    def render_page(self, handle: Any, index: int, scale: float) -> Image.Image:
        """
        光栅化单页

        Args:
            handle: parse() 返回的句柄
            index: 页码（从1开始）
            scale: 渲染倍率（1.0 = 72dpi）

        Returns:
            位图

        Raises:
            RenderError: 该页渲染失败
        """
        ...

    @abstractmethod
    def close(self, handle: Any) -> None:
        """释放句柄"""
        ...


class ISourceReader(ABC):
    """单图输入读取器接口"""

    @abstractmethod
    def read(self, source: SourceFile) -> SourceDocument:
        """
        校验图片字节并构造 SourceDocument（page_count 固定为1）

        Raises:
            ReadError: 图片无法识别
        """
        ...


class IPageRasterizer(ABC):
    """页面光栅化器接口"""

    @abstractmethod
    async def rasterize(self, handle: Any, index: int, scale: float | None = None) -> PageImage:
        """
        渲染并编码单页

        Args:
            handle: 文档句柄
            index: 页码（从1开始）
            scale: 渲染倍率，None 表示使用提取倍率

        Returns:
            编码后的页面图像

        Raises:
            RenderError: 渲染或编码失败
        """
        ...


# ============================================================================
# 远端服务接口
# ============================================================================

class IExtractionBackend(ABC):
    """文本提取后端接口"""

    @abstractmethod
    async def extract_pages(self, images: list[PageImage]) -> str:
        """
        批量提交多页图像（保持顺序），返回合并后的文本

        Raises:
            BackendError: 调用失败或返回为空
        """
        ...

    @abstractmethod
    async def extract_image(self, image: PageImage) -> str:
        """单张图片提取文本"""
        ...


class ISummarizer(ABC):
    """摘要后端接口"""

    @abstractmethod
    async def summarize(self, text: str) -> str:
        """
        生成要点式摘要

        Raises:
            BackendError: 调用失败
        """
        ...


# ============================================================================
# 流水线与任务管理接口
# ============================================================================

class IProgressReporter(ABC):
    """进度计算策略接口（纯函数，无副作用）"""

    @abstractmethod
    def report(
        self,
        state: JobState,
        *,
        completed_pages: int = 0,
        total_pages: int = 0,
        elapsed_sec: float = 0.0,
    ) -> ProgressSnapshot:
        """根据阶段与计数器计算百分比和提示文本"""
        ...


class IJobSupervisor(ABC):
    """任务监管器接口"""

    @abstractmethod
    def submit(self, source: SourceFile) -> JobHandle:
        """提交新输入（先撤销正在运行的任务）"""
        ...

    @abstractmethod
    def observe(self, handle: JobHandle) -> AsyncIterator[ProgressUpdate]:
        """订阅任务进度"""
        ...

    @abstractmethod
    def cancel(self, handle: JobHandle) -> bool:
        """取消任务"""
        ...

    @abstractmethod
    def get_job(self, job_id: str) -> Job | None:
        """获取任务"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class SmartExtractorError(Exception):
    """基础异常"""
    pass


class InputTooLargeError(SmartExtractorError):
    """输入超出大小限制（调用方预检）"""
    pass


class UnsupportedSourceError(SmartExtractorError):
    """不支持的输入类型（调用方预检）"""
    pass


class ConfigError(SmartExtractorError):
    """配置无效（如提示词文件缺失）"""
    pass


class ReadError(SmartExtractorError):
    """源文件无法读取/解析"""
    pass


class RenderError(SmartExtractorError):
    """页面渲染失败"""

    def __init__(self, message: str, page_index: int | None = None):
        super().__init__(message)
        self.page_index = page_index


class BackendError(SmartExtractorError):
    """提取或摘要服务调用失败"""
    pass


class JobAbortedError(SmartExtractorError):
    """任务已被撤销（静默取代，不作为失败上报）"""
    pass
