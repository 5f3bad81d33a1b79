"""任务存储单元测试."""

import pytest

from placard.models.template import Job, JobStatus, OutputFormat
from placard.utils.exceptions import JobNotFoundError


class TestJobStore:
    """测试任务持久化."""

    def test_create_and_get(self, job_store):
        """测试创建与读取."""
        job = Job(template_id="tmpl_a", total_items=2, format=OutputFormat.JPEG)
        job_store.create(job)

        loaded = job_store.get(job.id)

        assert loaded.template_id == "tmpl_a"
        assert loaded.status == JobStatus.PROCESSING
        assert loaded.format == OutputFormat.JPEG
        assert loaded.total_items == 2
        assert job_store.count() == 1

    def test_save_progress_and_final_state(self, job_store):
        """测试逐行保存与定稿."""
        job = job_store.create(Job(template_id="tmpl_a", total_items=2))
        job.record_success("/out/0.png")
        job_store.save(job)
        assert job_store.get(job.id).processed_items == 1

        job.record_failure(1, "boom")
        job.finalize()
        job_store.save(job)

        loaded = job_store.get(job.id)
        assert loaded.status == JobStatus.COMPLETED
        assert loaded.output_refs == ["/out/0.png"]
        assert loaded.error_messages == ["Image 1: boom"]
        assert loaded.completed_at is not None

    def test_missing(self, job_store):
        """测试任务不存在."""
        with pytest.raises(JobNotFoundError):
            job_store.get("job_missing")
        with pytest.raises(JobNotFoundError):
            job_store.save(Job(template_id="tmpl_a", total_items=1))

    def test_list_for_template(self, job_store):
        """测试按模板列出任务."""
        job_store.create(Job(template_id="tmpl_a", total_items=1))
        job_store.create(Job(template_id="tmpl_a", total_items=1))
        job_store.create(Job(template_id="tmpl_b", total_items=1))

        assert len(job_store.list_for_template("tmpl_a")) == 2
        assert job_store.list_for_template("tmpl_c") == []
