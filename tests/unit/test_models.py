"""
数据模型单元测试

每个模块完成后必须运行：pytest tests/unit/test_models.py -v
"""

import pytest
from pydantic import ValidationError

from smart_extractor.models import (
    PDF_MIME,
    ErrorKind,
    ExtractionResult,
    Job,
    JobState,
    PageImage,
    SourceFile,
    SourceKind,
)


@pytest.fixture
def temp_job() -> Job:
    return Job(job_id="job-1", source_name="scan.pdf", source_kind=SourceKind.PDF)


class TestSourceFile:
    """输入文件测试"""

    def test_kind(self):
        """测试按MIME判定类型"""
        assert SourceFile(name="a.pdf", data=b"x", mime_type=PDF_MIME).kind == SourceKind.PDF
        assert SourceFile(name="a.png", data=b"x", mime_type="image/png").kind == SourceKind.IMAGE

    def test_from_path(self, temp_dir):
        """测试按扩展名推断MIME"""
        path = temp_dir / "scan.pdf"
        path.write_bytes(b"%PDF-1.4")
        source = SourceFile.from_path(path)
        assert source.name == "scan.pdf"
        assert source.mime_type == PDF_MIME
        assert source.byte_length == 8

    def test_from_path_unknown(self, temp_dir):
        """测试未知扩展名"""
        path = temp_dir / "blob.zzz"
        path.write_bytes(b"x")
        assert SourceFile.from_path(path).mime_type == "application/octet-stream"


class TestPageImage:
    """页面图像测试"""

    def test_index_starts_at_one(self):
        """测试页码从1开始"""
        with pytest.raises(ValidationError):
            PageImage(index=0, encoded_bytes=b"x", mime_type="image/jpeg")

    def test_size(self):
        assert PageImage(index=1, encoded_bytes=b"abc", mime_type="image/jpeg").size == 3


class TestJobState:
    """任务状态测试"""

    def test_terminal(self):
        """测试终态判定"""
        assert JobState.SUCCEEDED.is_terminal
        assert JobState.FAILED.is_terminal
        assert JobState.ABORTED.is_terminal
        assert not JobState.RASTERIZING.is_terminal

    def test_idle_not_terminal(self):
        """测试未启动任务不是终态"""
        assert not JobState.IDLE.is_terminal


class TestJob:
    """任务模型测试"""

    def test_mark_reading(self, temp_job: Job):
        """测试标记读取中"""
        temp_job.mark_reading()
        assert temp_job.state == JobState.READING_SOURCE
        assert temp_job.started_at is not None

    def test_mark_rasterizing(self, temp_job: Job):
        """测试标记光栅化"""
        temp_job.mark_rasterizing(2, 5)
        assert temp_job.state == JobState.RASTERIZING
        assert temp_job.progress.page_index == 2
        assert temp_job.progress.total_pages == 5

    def test_mark_succeeded(self, temp_job: Job):
        """测试标记成功"""
        temp_job.mark_reading()
        temp_job.mark_succeeded(ExtractionResult(text="t", page_count=2))
        assert temp_job.state == JobState.SUCCEEDED
        assert temp_job.progress.percent == 100
        assert temp_job.result.text == "t"
        assert temp_job.is_terminal

    def test_mark_failed(self, temp_job: Job):
        """测试标记失败（不保留结果）"""
        temp_job.progress.percent = 33
        temp_job.mark_failed(ErrorKind.RENDER, "第 2 页渲染失败")
        assert temp_job.state == JobState.FAILED
        assert temp_job.error_kind == ErrorKind.RENDER
        assert temp_job.result is None
        assert temp_job.progress.percent == 33

    def test_mark_aborted(self, temp_job: Job):
        """测试标记撤销"""
        temp_job.mark_aborted()
        assert temp_job.state == JobState.ABORTED
        assert temp_job.finished_at is not None

    def test_snapshot(self, temp_job: Job):
        """测试进度快照"""
        temp_job.mark_submitting()
        temp_job.progress.percent = 50
        temp_job.progress.message = "正在使用AI提取文本..."
        snap = temp_job.snapshot()
        assert snap.job_id == "job-1"
        assert snap.percent == 50
        assert snap.state == JobState.SUBMITTING
