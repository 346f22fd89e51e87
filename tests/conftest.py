"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(pdf_source, make_job):
        job = make_job(pdf_source)
        asyncio.run(job.run())
"""

from __future__ import annotations

import asyncio
import io
import tempfile
from pathlib import Path
from typing import Any, Callable, Generator

import pytest
from PIL import Image

from smart_extractor.config import RuntimeConfig
from smart_extractor.interfaces import (
    IExtractionBackend,
    IRenderEngine,
    ISummarizer,
    ReadError,
    RenderError,
)
from smart_extractor.models import PDF_MIME, PageImage, SourceFile
from smart_extractor.pipeline import (
    CancellationToken,
    ExtractionJob,
    PageCountProgress,
    TimeEstimateProgress,
)
from smart_extractor.render import ImageSourceReader, PageRasterizer


# ============================================================================
# 替身实现
# ============================================================================

class FakeEngine(IRenderEngine):
    """内存渲染引擎：固定页数，可指定失败页与渲染回调"""

    def __init__(
        self,
        pages: int = 3,
        fail_on: int | None = None,
        on_render: Callable[[int], None] | None = None,
    ):
        self.pages = pages
        self.fail_on = fail_on
        self.on_render = on_render
        self.rendered: list[int] = []
        self.scales: list[float] = []
        self.closed = 0

    def parse(self, data: bytes) -> Any:
        if data == b"broken":
            raise ReadError("无法解析PDF文件")
        return {"pages": self.pages}

    def get_page_count(self, handle: Any) -> int:
        return handle["pages"]

    def render_page(self, handle: Any, index: int, scale: float) -> Image.Image:
        self.rendered.append(index)
        self.scales.append(scale)
        if self.on_render is not None:
            self.on_render(index)
        if index == self.fail_on:
            raise RenderError(f"第 {index} 页渲染失败", page_index=index)
        return Image.new("RGB", (8, 8), "white")

    def close(self, handle: Any) -> None:
        self.closed += 1


class FakeBackend(IExtractionBackend, ISummarizer):
    """提取后端替身：记录调用，可用 gate 挂起、用 error 模拟失败"""

    def __init__(
        self,
        text: str = "提取的文本",
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ):
        self.text = text
        self.error = error
        self.gate = gate
        self.calls: list[list[int]] = []
        self.image_calls: list[PageImage] = []

    async def extract_pages(self, images: list[PageImage]) -> str:
        self.calls.append([img.index for img in images])
        return await self._respond()

    async def extract_image(self, image: PageImage) -> str:
        self.image_calls.append(image)
        return await self._respond()

    async def summarize(self, text: str) -> str:
        return f"- {text}"

    async def _respond(self) -> str:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.text


def make_pdf_bytes(pages: int = 3, size: tuple[int, int] = (100, 80)) -> bytes:
    """用 Pillow 生成真实的多页PDF（72dpi，页面尺寸即像素尺寸）"""
    colors = ["white", "red", "green", "blue", "black"]
    frames = [Image.new("RGB", size, colors[i % len(colors)]) for i in range(pages)]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="PDF", save_all=True, append_images=frames[1:], resolution=72.0)
    return buffer.getvalue()


def make_image_bytes(fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (20, 20), "white").save(buffer, format=fmt)
    return buffer.getvalue()


def drain(queue: asyncio.Queue) -> list:
    """取出队列中已有的全部事件"""
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture
def runtime_config() -> RuntimeConfig:
    """运行期配置（默认值）"""
    return RuntimeConfig()


# ============================================================================
# 输入 Fixtures
# ============================================================================

@pytest.fixture
def pdf_source() -> SourceFile:
    """PDF输入（内容由 FakeEngine 解释）"""
    return SourceFile(name="scan.pdf", data=b"%PDF-fake", mime_type=PDF_MIME)


@pytest.fixture
def image_source() -> SourceFile:
    """PNG输入"""
    return SourceFile(name="photo.png", data=make_image_bytes(), mime_type="image/png")


@pytest.fixture(scope="session")
def real_pdf_bytes() -> bytes:
    """真实3页PDF"""
    return make_pdf_bytes(3)


# ============================================================================
# 任务 Fixtures
# ============================================================================

@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_job() -> Callable[..., ExtractionJob]:
    """任务工厂（替身引擎/后端，真实光栅化器与读取器）"""

    def _make(
        source: SourceFile,
        engine: FakeEngine | None = None,
        backend: FakeBackend | None = None,
        token: CancellationToken | None = None,
        image_progress: TimeEstimateProgress | None = None,
    ) -> ExtractionJob:
        engine = engine or FakeEngine()
        return ExtractionJob(
            source,
            engine=engine,
            rasterizer=PageRasterizer(engine),
            backend=backend or FakeBackend(),
            image_reader=ImageSourceReader(),
            page_progress=PageCountProgress(50),
            image_progress=image_progress
            or TimeEstimateProgress(estimated_sec=15, cap_percent=90, tick_sec=0.01),
            token=token,
        )

    return _make


# ============================================================================
# 文件 Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
