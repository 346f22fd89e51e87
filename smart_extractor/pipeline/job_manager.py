"""
任务监管器 - 任务创建/查询/取消，保证同一时刻至多一个活动任务

职责：
1. 提交新输入前撤销当前未结束的任务
2. 为每个任务分配ID与独立的取消令牌
3. 进度订阅、等待结果、任务查询（仅内存，不持久化）

测试要点：
- test_submit_supersedes_running_job: 新提交先撤销旧任务
- test_superseded_result_never_delivered: 旧任务的迟到结果不可见
- test_cancel_job: 取消任务
- test_history_limit: 历史记录上限
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator

from ..config import get_config
from ..interfaces import (
    IExtractionBackend,
    IJobSupervisor,
    IPageRasterizer,
    IRenderEngine,
    ISourceReader,
)
from ..models import Job, JobState, ProgressUpdate, SourceFile
from ..render import ImageSourceReader, PageRasterizer, PdfPlumberEngine
from ..services import GeminiBackend
from .cancellation import CancellationToken
from .executor import ExtractionJob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobHandle:
    """任务句柄（调用方持有）"""
    job_id: str


class JobSupervisor(IJobSupervisor):
    """任务监管器实现

    rasterizer 与 engine 必须使用同一个渲染引擎（engine 负责解析，
    rasterizer 负责渲染同一句柄）。submit() 需在事件循环中调用。
    """

    def __init__(
        self,
        *,
        engine: IRenderEngine | None = None,
        rasterizer: IPageRasterizer | None = None,
        backend: IExtractionBackend | None = None,
        image_reader: ISourceReader | None = None,
    ):
        self.config = get_config()
        self.engine = engine or PdfPlumberEngine()
        self.rasterizer = rasterizer or PageRasterizer(self.engine)
        self.image_reader = image_reader or ImageSourceReader()
        self.backend = backend or GeminiBackend()

        self._jobs: dict[str, ExtractionJob] = {}  # 按提交顺序
        self._tasks: dict[str, asyncio.Task] = {}
        self._current: ExtractionJob | None = None

    def submit(self, source: SourceFile) -> JobHandle:
        """提交新输入"""
        previous = self._current
        if previous is not None and not previous.job.is_terminal:
            logger.info(f"[{previous.job_id}] 被新输入取代: {source.name}")
            previous.cancel()

        extraction = ExtractionJob(
            source,
            engine=self.engine,
            rasterizer=self.rasterizer,
            backend=self.backend,
            image_reader=self.image_reader,
            token=CancellationToken(),
        )
        job_id = extraction.job_id
        self._jobs[job_id] = extraction
        self._current = extraction

        task = asyncio.get_running_loop().create_task(extraction.run(), name=f"extract-{job_id}")
        task.add_done_callback(self._on_task_done)
        self._tasks[job_id] = task

        logger.info(f"[{job_id}] 任务已创建: {source.name} ({source.kind.value}, {source.byte_length} bytes)")
        self._prune_history()
        return JobHandle(job_id)

    start = submit

    async def observe(self, handle: JobHandle) -> AsyncIterator[ProgressUpdate]:
        """订阅进度，任务结束或被撤销时流结束"""
        extraction = self._require(handle)
        queue = extraction.subscribe()
        try:
            while True:
                update = await queue.get()
                if update is None:
                    return
                yield update
        finally:
            extraction.unsubscribe(queue)

    def cancel(self, handle: JobHandle) -> bool:
        """取消任务"""
        extraction = self._jobs.get(handle.job_id)
        if extraction is None:
            return False
        return extraction.cancel()

    async def wait(self, handle: JobHandle) -> Job:
        """等待任务结束并返回任务记录"""
        extraction = self._require(handle)
        task = self._tasks.get(handle.job_id)
        if task is not None:
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()
        return extraction.job

    def get_job(self, job_id: str) -> Job | None:
        """获取任务"""
        extraction = self._jobs.get(job_id)
        return extraction.job if extraction else None

    def current_job(self) -> Job | None:
        """当前（最近一次提交的）任务"""
        return self._current.job if self._current else None

    def list_jobs(self, state: JobState | None = None, limit: int = 100) -> list[Job]:
        """列出任务（按创建时间降序）"""
        jobs = [e.job for e in self._jobs.values()]

        if state:
            jobs = [j for j in jobs if j.state == state]

        jobs.sort(key=lambda j: j.created_at, reverse=True)

        return jobs[:limit]

    async def shutdown(self) -> None:
        """撤销所有未结束任务并等待其退出"""
        for extraction in self._jobs.values():
            extraction.cancel()
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _require(self, handle: JobHandle) -> ExtractionJob:
        extraction = self._jobs.get(handle.job_id)
        if extraction is None:
            raise KeyError(f"任务不存在: {handle.job_id}")
        return extraction

    def _on_task_done(self, task: asyncio.Task) -> None:
        # 取走异常，避免 "exception was never retrieved"；异常已在执行器中记录
        if not task.cancelled():
            task.exception()

    def _prune_history(self) -> None:
        """超出上限时移除最早的已结束任务"""
        limit = max(1, self.config.jobs.history_limit)
        for job_id in list(self._jobs):
            if len(self._jobs) <= limit:
                break
            extraction = self._jobs[job_id]
            if extraction is self._current or not extraction.job.is_terminal:
                continue
            del self._jobs[job_id]
            self._tasks.pop(job_id, None)
