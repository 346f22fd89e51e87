"""
命令行入口

用法：
    smart-extractor extract scan.pdf --out-dir out --word --summarize
    smart-extractor preview scan.pdf --page 2
    smart-extractor summarize out/extracted-text.txt

退出码：0 成功，1 任务失败/超时，2 输入被拒绝，3 配置错误
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import RuntimeConfig, get_config, reload_config, setup_logging
from .interfaces import (
    ConfigError,
    InputTooLargeError,
    SmartExtractorError,
    UnsupportedSourceError,
)
from .models import Job, JobState, SourceFile, SourceKind
from .pipeline import JobSupervisor, ResultExporter, check_source
from .render import PageRasterizer, PdfPlumberEngine
from .services import GeminiBackend

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smart-extractor",
        description="从图片和PDF中提取文本（保留排版）",
    )
    parser.add_argument(
        "--config",
        default="",
        help="运行期配置YAML（默认：documents/runtime.yaml）",
    )
    parser.add_argument("--verbose", action="store_true", help="输出调试日志")
    sub = parser.add_subparsers(dest="command", required=True)

    extract = sub.add_parser("extract", help="提取PDF或图片中的文本")
    extract.add_argument("file", help="PDF / PNG / JPEG 文件")
    extract.add_argument("--out-dir", default="", help="输出目录（默认打印到标准输出）")
    extract.add_argument("--word", action="store_true", help="同时导出 Word 兼容 .doc")
    extract.add_argument("--summarize", action="store_true", help="提取后生成摘要")
    extract.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="等待上限（秒），默认取 timeouts.extract_sec，0 表示不限",
    )

    preview = sub.add_parser("preview", help="以预览倍率渲染PDF单页为JPEG")
    preview.add_argument("file", help="PDF 文件")
    preview.add_argument("--page", type=int, default=1, help="页码（从1开始）")
    preview.add_argument("--out", default="", help="输出路径（默认：<文件名>_page<N>.jpg）")

    summarize = sub.add_parser("summarize", help="对文本文件生成摘要")
    summarize.add_argument("file", help="UTF-8 文本文件")
    summarize.add_argument("--out-dir", default="", help="输出目录（默认打印到标准输出）")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = reload_config(args.config) if args.config else get_config()
    setup_logging(config, "DEBUG" if args.verbose else None)

    handlers = {
        "extract": _cmd_extract,
        "preview": _cmd_preview,
        "summarize": _cmd_summarize,
    }

    try:
        return handlers[args.command](args, config)
    except ConfigError as e:
        print(f"配置错误: {e}", file=sys.stderr)
        return 3
    except (InputTooLargeError, UnsupportedSourceError, FileNotFoundError) as e:
        print(f"输入被拒绝: {e}", file=sys.stderr)
        return 2
    except SmartExtractorError as e:
        print(f"错误: {e}", file=sys.stderr)
        return 1


def _make_backend() -> GeminiBackend:
    """创建后端；提示词文件缺失属于配置错误，不是输入问题"""
    try:
        return GeminiBackend()
    except FileNotFoundError as e:
        raise ConfigError(str(e)) from e


# ============================================================================
# extract
# ============================================================================

def _cmd_extract(args: argparse.Namespace, config: RuntimeConfig) -> int:
    source = SourceFile.from_path(args.file)
    check_source(source, config)

    timeout = args.timeout if args.timeout is not None else config.timeouts.extract_sec
    backend = _make_backend()
    job, summary = asyncio.run(_run_extract(source, backend, timeout or None, args.summarize))

    if job.state is JobState.ABORTED:
        print(f"处理超时（{timeout} 秒），任务已取消", file=sys.stderr)
        return 1
    if job.state is not JobState.SUCCEEDED or job.result is None:
        print(f"提取失败: {job.error_message}", file=sys.stderr)
        return 1

    text = job.result.text
    if args.out_dir:
        exporter = ResultExporter(config)
        out_dir = Path(args.out_dir)
        print(f"已写入: {exporter.write_text(text, out_dir)}")
        if args.word:
            print(f"已写入: {exporter.write_word(text, out_dir)}")
        if summary:
            print(f"已写入: {exporter.write_summary(summary, out_dir)}")
    else:
        print(text)
        if summary:
            print("\n---- 摘要 ----\n")
            print(summary)
    return 0


async def _run_extract(
    source: SourceFile,
    backend: GeminiBackend,
    timeout: float | None,
    with_summary: bool,
) -> tuple[Job, str | None]:
    supervisor = JobSupervisor(backend=backend)
    handle = supervisor.start(source)

    async def _follow() -> None:
        async for update in supervisor.observe(handle):
            print(f"[{update.percent:3d}%] {update.message}", file=sys.stderr, flush=True)

    follower = asyncio.create_task(_follow())
    waiter = asyncio.ensure_future(supervisor.wait(handle))

    done, _ = await asyncio.wait({waiter}, timeout=timeout)
    if waiter not in done:
        logger.warning(f"[{handle.job_id}] 超过等待上限 {timeout} 秒，取消任务")
        supervisor.cancel(handle)
        await supervisor.shutdown()
    job = await waiter
    await follower

    summary = None
    if with_summary and job.state is JobState.SUCCEEDED and job.result is not None:
        # 摘要失败不影响已提取的文本
        try:
            summary = await backend.summarize(job.result.text)
        except SmartExtractorError as e:
            print(f"摘要失败: {e}", file=sys.stderr)
    return job, summary


# ============================================================================
# preview
# ============================================================================

def _cmd_preview(args: argparse.Namespace, config: RuntimeConfig) -> int:
    source = SourceFile.from_path(args.file)
    if source.kind is not SourceKind.PDF:
        raise UnsupportedSourceError(f"预览仅支持PDF: {source.name}")
    check_source(source, config)

    out_path = Path(args.out) if args.out else Path(f"{Path(args.file).stem}_page{args.page}.jpg")
    total = asyncio.run(_run_preview(source, args.page, out_path))
    print(f"第 {args.page}/{total} 页 -> {out_path}")
    return 0


async def _run_preview(source: SourceFile, page: int, out_path: Path) -> int:
    engine = PdfPlumberEngine()
    rasterizer = PageRasterizer(engine)

    handle = await asyncio.to_thread(engine.parse, source.data)
    try:
        total = engine.get_page_count(handle)
        image = await rasterizer.preview(handle, page)
    finally:
        engine.close(handle)

    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(image.encoded_bytes)
    return total


# ============================================================================
# summarize
# ============================================================================

def _cmd_summarize(args: argparse.Namespace, config: RuntimeConfig) -> int:
    text = Path(args.file).read_text(encoding="utf-8")
    summary = asyncio.run(_make_backend().summarize(text))

    if args.out_dir:
        path = ResultExporter(config).write_summary(summary, Path(args.out_dir))
        print(f"已写入: {path}")
    else:
        print(summary)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
