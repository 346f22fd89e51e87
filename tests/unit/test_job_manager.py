"""
任务监管器单元测试

每个模块完成后必须运行：pytest tests/unit/test_job_manager.py -v
"""

import asyncio

import pytest

from conftest import FakeBackend, FakeEngine
from smart_extractor.config import RuntimeConfig
from smart_extractor.config.runtime_config import JobsConfig
from smart_extractor.models import JobState
from smart_extractor.pipeline import JobHandle, JobSupervisor
from smart_extractor.render import ImageSourceReader, PageRasterizer


def _supervisor(backend, engine=None):
    engine = engine or FakeEngine()
    return JobSupervisor(
        engine=engine,
        rasterizer=PageRasterizer(engine),
        backend=backend,
        image_reader=ImageSourceReader(),
    )


async def _until(predicate, timeout=5.0):
    """轮询等待条件成立"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "等待超时"
        await asyncio.sleep(0.01)


class TestSubmit:
    """提交测试"""

    def test_submit_and_wait(self, pdf_source):
        """测试提交并等待成功"""

        async def scenario():
            sup = _supervisor(FakeBackend(text="结果"))
            handle = sup.start(pdf_source)
            return handle, await sup.wait(handle)

        handle, job = asyncio.run(scenario())
        assert job.job_id == handle.job_id
        assert job.state == JobState.SUCCEEDED
        assert job.result.text == "结果"

    def test_submit_supersedes_running_job(self, pdf_source):
        """测试新提交先撤销旧任务"""

        async def scenario():
            gate = asyncio.Event()
            backend = FakeBackend(gate=gate)
            sup = _supervisor(backend)

            first = sup.submit(pdf_source)
            await _until(lambda: sup.get_job(first.job_id).state == JobState.SUBMITTING)

            second = sup.submit(pdf_source.model_copy(update={"name": "next.pdf"}))
            assert sup.current_job().job_id == second.job_id

            gate.set()
            return sup, await sup.wait(first), await sup.wait(second)

        sup, first_job, second_job = asyncio.run(scenario())
        assert first_job.state == JobState.ABORTED
        assert second_job.state == JobState.SUCCEEDED
        assert second_job.source_name == "next.pdf"

    def test_superseded_result_never_delivered(self, pdf_source):
        """测试旧任务的迟到结果不可见"""

        async def scenario():
            gate = asyncio.Event()
            sup = _supervisor(FakeBackend(text="迟到结果", gate=gate))

            first = sup.submit(pdf_source)
            updates = []

            async def follow():
                async for update in sup.observe(first):
                    updates.append(update)

            follower = asyncio.create_task(follow())
            await _until(lambda: sup.get_job(first.job_id).state == JobState.SUBMITTING)

            second = sup.submit(pdf_source)
            gate.set()
            await sup.wait(second)
            await follower
            return sup.get_job(first.job_id), updates

        first_job, updates = asyncio.run(scenario())
        assert first_job.result is None
        assert all(u.state != JobState.SUCCEEDED for u in updates)
        assert all(u.percent <= 50 for u in updates)

    def test_at_most_one_unfinished_job(self, pdf_source):
        """测试取代后旧任务记录立即结束，只剩一个未结束任务"""

        async def scenario():
            gate = asyncio.Event()
            sup = _supervisor(FakeBackend(gate=gate))

            first = sup.submit(pdf_source)
            await _until(lambda: sup.get_job(first.job_id).state == JobState.SUBMITTING)
            second = sup.submit(pdf_source)
            first_state = sup.get_job(first.job_id).state
            await _until(lambda: sup.get_job(second.job_id).state == JobState.SUBMITTING)

            unfinished = [j for j in sup.list_jobs() if not j.is_terminal]
            gate.set()
            await sup.wait(second)
            return first_state, unfinished, second

        first_state, unfinished, second = asyncio.run(scenario())
        assert first_state == JobState.ABORTED
        assert [j.job_id for j in unfinished] == [second.job_id]

    def test_supersede_during_rasterizing(self, pdf_source):
        """测试光栅化中被取代：旧任务不再渲染，新任务从第1页开始"""

        async def scenario():
            loop = asyncio.get_running_loop()
            handles = {}
            first_states = []

            def supersede():
                handles["second"] = sup.submit(pdf_source.model_copy(update={"name": "next.pdf"}))

            def on_render(index):
                if "second" in handles:
                    first_states.append(sup.get_job(handles["first"].job_id).state)
                elif index == 2 and not handles.get("scheduled"):
                    handles["scheduled"] = True
                    loop.call_soon_threadsafe(supersede)

            engine = FakeEngine(pages=3, on_render=on_render)
            backend = FakeBackend()
            sup = _supervisor(backend, engine)

            handles["first"] = sup.submit(pdf_source)
            await _until(lambda: "second" in handles)
            second_job = await sup.wait(handles["second"])
            first_job = await sup.wait(handles["first"])
            return engine, backend, first_job, second_job, first_states

        engine, backend, first_job, second_job, first_states = asyncio.run(scenario())
        assert engine.rendered == [1, 2, 1, 2, 3]
        assert backend.calls == [[1, 2, 3]]
        assert first_job.state == JobState.ABORTED
        assert second_job.state == JobState.SUCCEEDED
        assert second_job.source_name == "next.pdf"
        # 新任务渲染每一页时，旧任务都已结束
        assert first_states == [JobState.ABORTED] * 3
        assert engine.closed == 2

    def test_submit_after_finished_job(self, pdf_source):
        """测试上一个任务已结束时直接提交"""

        async def scenario():
            sup = _supervisor(FakeBackend())
            first = sup.submit(pdf_source)
            await sup.wait(first)
            second = sup.submit(pdf_source)
            await sup.wait(second)
            return sup.get_job(first.job_id), sup.get_job(second.job_id)

        first_job, second_job = asyncio.run(scenario())
        assert first_job.state == JobState.SUCCEEDED
        assert second_job.state == JobState.SUCCEEDED


class TestObserve:
    """进度订阅测试"""

    def test_observe_until_done(self, pdf_source):
        """测试订阅到任务结束"""

        async def scenario():
            sup = _supervisor(FakeBackend())
            handle = sup.submit(pdf_source)
            return [u async for u in sup.observe(handle)]

        updates = asyncio.run(scenario())
        assert updates[-1].state == JobState.SUCCEEDED
        assert updates[-1].percent == 100
        assert [u.percent for u in updates] == sorted(u.percent for u in updates)

    def test_observe_unknown_job(self):
        """测试订阅不存在的任务"""

        async def scenario():
            sup = _supervisor(FakeBackend())
            return [u async for u in sup.observe(JobHandle("missing"))]

        with pytest.raises(KeyError):
            asyncio.run(scenario())


class TestCancel:
    """取消测试"""

    def test_cancel_job(self, pdf_source):
        """测试取消任务"""

        async def scenario():
            gate = asyncio.Event()
            sup = _supervisor(FakeBackend(gate=gate))
            handle = sup.submit(pdf_source)
            await _until(lambda: sup.get_job(handle.job_id).state == JobState.SUBMITTING)

            first = sup.cancel(handle)
            again = sup.cancel(handle)
            gate.set()
            return first, again, await sup.wait(handle)

        first, again, job = asyncio.run(scenario())
        assert first is True
        assert again is False
        assert job.state == JobState.ABORTED

    def test_cancel_unknown_job(self):
        """测试取消不存在的任务"""
        sup = _supervisor(FakeBackend())
        assert sup.cancel(JobHandle("missing")) is False

    def test_shutdown(self, pdf_source):
        """测试关闭时撤销未结束任务"""

        async def scenario():
            sup = _supervisor(FakeBackend(gate=asyncio.Event()))
            handle = sup.submit(pdf_source)
            await _until(lambda: sup.get_job(handle.job_id).state == JobState.SUBMITTING)
            await sup.shutdown()
            return await sup.wait(handle)

        job = asyncio.run(scenario())
        assert job.state == JobState.ABORTED


class TestQuery:
    """任务查询测试"""

    def test_history_limit(self, pdf_source):
        """测试历史记录上限"""

        async def scenario():
            sup = _supervisor(FakeBackend())
            sup.config = RuntimeConfig(jobs=JobsConfig(history_limit=2))
            handles = []
            for _ in range(3):
                handle = sup.submit(pdf_source)
                await sup.wait(handle)
                handles.append(handle)
            return sup, handles

        sup, handles = asyncio.run(scenario())
        assert sup.get_job(handles[0].job_id) is None
        assert sup.get_job(handles[2].job_id) is not None
        assert len(sup.list_jobs()) == 2

    def test_list_jobs_by_state(self, pdf_source):
        """测试按状态过滤"""

        async def scenario():
            sup = _supervisor(FakeBackend())
            ok = sup.submit(pdf_source)
            await sup.wait(ok)
            bad = sup.submit(pdf_source.model_copy(update={"data": b"broken"}))
            await sup.wait(bad)
            return sup

        sup = asyncio.run(scenario())
        assert len(sup.list_jobs(state=JobState.SUCCEEDED)) == 1
        assert len(sup.list_jobs(state=JobState.FAILED)) == 1
        assert len(sup.list_jobs(limit=1)) == 1

    def test_current_job_empty(self):
        """测试无任务时当前任务为空"""
        sup = _supervisor(FakeBackend())
        assert sup.current_job() is None
        assert sup.get_job("missing") is None
