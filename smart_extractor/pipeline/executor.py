"""
提取任务执行器 - 单个任务的状态机

职责：
1. 读取源文件（PDF解析 / 图片校验）
2. 按页码升序逐页光栅化，每页后推送进度
3. 整批提交到提取后端（一次请求）
4. 汇总结果或错误；撤销后在下一个步骤边界转为 ABORTED

约束：
- 所有共享状态的修改都经过 _commit，检查令牌与修改之间没有 await
- 任何读取/渲染/后端错误都终止任务，已渲染的页面全部丢弃，不返回部分文本
- 已撤销任务不再推送任何进度/结果

测试要点：
- test_three_page_progress: 3页 -> 17/33/50 -> 100
- test_render_failure_discards_pages: 第2页失败 -> FAILED(RENDER)，不提交
- test_cancel_during_rasterizing: 第2页渲染中撤销 -> 第3页不渲染，ABORTED
- test_zero_pages: 0页 -> FAILED(READ)
- test_cancel_marks_aborted_immediately: cancel() 返回时记录已是 ABORTED
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable

from ..interfaces import (
    BackendError,
    IExtractionBackend,
    IPageRasterizer,
    IRenderEngine,
    ISourceReader,
    JobAbortedError,
    ReadError,
    RenderError,
)
from ..models import (
    ErrorKind,
    ExtractionResult,
    Job,
    JobState,
    PageImage,
    ProgressUpdate,
    SourceDocument,
    SourceFile,
    SourceKind,
)
from .cancellation import CancellationToken
from .progress import PageCountProgress, ProgressSnapshot, TimeEstimateProgress
from .stages import stage_for

logger = logging.getLogger(__name__)

_ERROR_KINDS: dict[type[Exception], ErrorKind] = {
    ReadError: ErrorKind.READ,
    RenderError: ErrorKind.RENDER,
    BackendError: ErrorKind.BACKEND,
}


class ExtractionJob:
    """提取任务"""

    def __init__(
        self,
        source: SourceFile,
        *,
        engine: IRenderEngine,
        rasterizer: IPageRasterizer,
        backend: IExtractionBackend,
        image_reader: ISourceReader,
        page_progress: PageCountProgress | None = None,
        image_progress: TimeEstimateProgress | None = None,
        token: CancellationToken | None = None,
        job_id: str | None = None,
    ):
        self.source = source
        self.engine = engine
        self.rasterizer = rasterizer
        self.backend = backend
        self.image_reader = image_reader
        self.page_progress = page_progress or PageCountProgress()
        self.image_progress = image_progress or TimeEstimateProgress()
        self.token = token or CancellationToken()

        self.job = Job(
            job_id=job_id or str(uuid.uuid4()),
            source_name=source.name,
            source_kind=source.kind,
            source_bytes=source.byte_length,
        )

        self._subscribers: list[asyncio.Queue[ProgressUpdate | None]] = []
        self._closed = False

    @property
    def job_id(self) -> str:
        return self.job.job_id

    # ------------------------------------------------------------------
    # 观察者
    # ------------------------------------------------------------------

    def subscribe(self) -> asyncio.Queue[ProgressUpdate | None]:
        """订阅进度；None 表示流结束"""
        queue: asyncio.Queue[ProgressUpdate | None] = asyncio.Queue()
        if self._closed:
            if self.job.state in (JobState.SUCCEEDED, JobState.FAILED):
                queue.put_nowait(self.job.snapshot())
            queue.put_nowait(None)
            return queue

        if self.job.state is not JobState.IDLE:
            queue.put_nowait(self.job.snapshot())
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[ProgressUpdate | None]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def cancel(self) -> bool:
        """撤销任务；已结束的任务返回 False"""
        if self.job.is_terminal or self.token.is_revoked():
            return False
        logger.info(f"[{self.job_id}] 撤销任务 (state={self.job.state.value})")
        self.token.revoke()
        # 撤销后不会再有任何提交，记录立即转为终态
        self.job.mark_aborted()
        self._close_streams()
        return True

    # ------------------------------------------------------------------
    # 状态机
    # ------------------------------------------------------------------

    async def run(self) -> ExtractionResult | None:
        """执行任务；成功返回结果，失败/撤销返回 None"""
        document: SourceDocument | None = None
        interrupted = False
        try:
            document = await self._read_source()

            if document.kind is SourceKind.PDF:
                images = await self._rasterize_all(document)
                text = await self._submit_pages(images)
            else:
                text = await self._submit_image(document)

            self._succeed(text, document.page_count)
            return self.job.result

        except JobAbortedError:
            self._abort()
            return None

        except (ReadError, RenderError, BackendError) as e:
            if self.token.is_revoked():
                self._abort()
                return None
            self._fail(self._kind_of(e), str(e))
            return None

        except asyncio.CancelledError:
            interrupted = True
            self.token.revoke()
            self._abort()
            raise

        except Exception as e:
            logger.exception(f"[{self.job_id}] 任务执行异常")
            if self.token.is_revoked():
                self._abort()
            else:
                self._fail(ErrorKind.INTERNAL, f"处理过程中发生意外错误: {e}")
            raise

        finally:
            if document is not None and document.kind is SourceKind.PDF:
                self._release(document.handle, interrupted)
            self._close_streams()

    async def _read_source(self) -> SourceDocument:
        """读取源文件"""
        reporter = self._reporter()
        self._commit(reporter.report(JobState.READING_SOURCE), self.job.mark_reading)
        self._log_stage(JobState.READING_SOURCE)

        if self.source.kind is SourceKind.IMAGE:
            document = await asyncio.to_thread(self.image_reader.read, self.source)
            self.token.raise_if_revoked()
            return document

        handle = await asyncio.to_thread(self.engine.parse, self.source.data)
        try:
            self.token.raise_if_revoked()
            page_count = await asyncio.to_thread(self.engine.get_page_count, handle)
            self.token.raise_if_revoked()
            if page_count < 1:
                raise ReadError("文档不包含可识别的页面")
        except asyncio.CancelledError:
            self._release(handle, interrupted=True)
            raise
        except BaseException:
            self.engine.close(handle)
            raise

        logger.info(f"[{self.job_id}] 解析完成: {self.source.name}, {page_count} 页")
        return SourceDocument(
            name=self.source.name,
            kind=SourceKind.PDF,
            mime_type=self.source.mime_type,
            byte_length=self.source.byte_length,
            page_count=page_count,
            handle=handle,
        )

    async def _rasterize_all(self, document: SourceDocument) -> list[PageImage]:
        """逐页光栅化（严格升序，不并行）"""
        total = document.page_count
        images: list[PageImage] = []
        self._log_stage(JobState.RASTERIZING)

        try:
            for index in range(1, total + 1):
                self._commit(
                    self.page_progress.report(
                        JobState.RASTERIZING, completed_pages=index - 1, total_pages=total
                    ),
                    lambda: self.job.mark_rasterizing(index, total),
                )

                image = await self.rasterizer.rasterize(document.handle, index)
                self.token.raise_if_revoked()
                if image.index != index:
                    raise RenderError(f"页码顺序异常: 期望 {index}, 实际 {image.index}", page_index=index)
                images.append(image)

                self._commit(
                    self.page_progress.report(
                        JobState.RASTERIZING, completed_pages=index, total_pages=total
                    )
                )
        except BaseException:
            images.clear()
            raise

        return images

    async def _submit_pages(self, images: list[PageImage]) -> str:
        """整批提交（单次请求）"""
        self._commit(self.page_progress.report(JobState.SUBMITTING), self.job.mark_submitting)
        self._log_stage(JobState.SUBMITTING)
        try:
            return await self.backend.extract_pages(images)
        finally:
            images.clear()

    async def _submit_image(self, document: SourceDocument) -> str:
        """单图提交，期间按耗时估算进度"""
        image = PageImage(index=1, encoded_bytes=self.source.data, mime_type=document.mime_type)
        self._commit(
            self.image_progress.report(JobState.SUBMITTING, elapsed_sec=0.0),
            self.job.mark_submitting,
        )
        self._log_stage(JobState.SUBMITTING)

        ticker = asyncio.create_task(self._tick_estimate())
        try:
            return await self.backend.extract_image(image)
        finally:
            ticker.cancel()

    async def _tick_estimate(self) -> None:
        """定时推送估算进度，超过预估时长后停止"""
        loop = asyncio.get_running_loop()
        started = loop.time()
        reporter = self.image_progress
        while True:
            await asyncio.sleep(reporter.tick_sec)
            elapsed = loop.time() - started
            if self.job.is_terminal:
                return
            try:
                self._commit(reporter.report(JobState.SUBMITTING, elapsed_sec=elapsed))
            except JobAbortedError:
                return
            if reporter.is_overdue(elapsed):
                return

    # ------------------------------------------------------------------
    # 状态提交
    # ------------------------------------------------------------------

    def _commit(self, snapshot: ProgressSnapshot, mutate: Callable[[], None] | None = None) -> None:
        """检查令牌后立即修改状态并推送（百分比不回退）"""
        self.token.raise_if_revoked()
        if mutate is not None:
            mutate()
        self.job.progress.percent = max(self.job.progress.percent, snapshot.percent)
        self.job.progress.message = snapshot.message
        self._publish(self.job.snapshot())

    def _succeed(self, text: str, page_count: int) -> None:
        snapshot = self._reporter().report(JobState.SUCCEEDED)
        self._commit(
            snapshot,
            lambda: self.job.mark_succeeded(ExtractionResult(text=text, page_count=page_count)),
        )
        logger.info(f"[{self.job_id}] 任务成功: {len(text)} 字符")

    def _fail(self, kind: ErrorKind, message: str) -> None:
        self.job.mark_failed(kind, message)
        self.job.progress.message = message
        logger.error(f"[{self.job_id}] 任务失败 ({kind.value}): {message}")
        self._publish(self.job.snapshot())

    def _abort(self) -> None:
        if not self.job.is_terminal:
            self.job.mark_aborted()
            logger.info(f"[{self.job_id}] 任务已撤销")

    def _release(self, handle: object, interrupted: bool) -> None:
        """关闭文档句柄

        协程被取消时 to_thread 中的渲染可能仍在使用句柄，此时不关闭，交由垃圾回收。
        """
        if interrupted:
            logger.debug(f"[{self.job_id}] 任务被取消，保留文档句柄")
            return
        self.engine.close(handle)

    def _publish(self, update: ProgressUpdate) -> None:
        for queue in self._subscribers:
            queue.put_nowait(update)

    def _close_streams(self) -> None:
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(None)
        self._subscribers.clear()

    def _reporter(self) -> PageCountProgress | TimeEstimateProgress:
        return self.page_progress if self.source.kind is SourceKind.PDF else self.image_progress

    def _log_stage(self, state: JobState) -> None:
        stage = stage_for(self.source.kind, state)
        if stage is not None:
            logger.info(f"[{self.job_id}] 开始阶段: {stage.value}")

    @staticmethod
    def _kind_of(error: Exception) -> ErrorKind:
        for error_type, kind in _ERROR_KINDS.items():
            if isinstance(error, error_type):
                return kind
        return ErrorKind.INTERNAL
