"""模板、任务与请求模型单元测试."""

import pytest
from pydantic import ValidationError

from placard.models.api_schemas import GenerationRequest, GenerationResponse, GeneratedImage
from placard.models.scene_document import SceneDocument
from placard.models.template import Job, JobStatus, OutputFormat, Template


class TestJob:
    """测试任务状态流转."""

    def test_defaults(self):
        """测试创建时的默认值."""
        job = Job(template_id="tmpl_a", total_items=3)

        assert job.id.startswith("job_")
        assert job.status == JobStatus.PROCESSING
        assert job.processed_items == 0
        assert job.completed_at is None
        assert not job.is_finished

    def test_record_success_and_failure(self):
        """测试逐行记录."""
        job = Job(template_id="tmpl_a", total_items=3)
        job.record_success("/out/a.png")
        job.record_failure(1, "asset missing")

        assert job.processed_items == 1
        assert job.output_refs == ["/out/a.png"]
        assert job.error_messages == ["Image 1: asset missing"]
        assert job.failed_items == 1
        assert job.has_errors

    def test_partial_success_is_completed(self):
        """测试部分成功定稿为 completed."""
        job = Job(template_id="tmpl_a", total_items=2)
        job.record_success("/out/a.png")
        job.record_failure(1, "boom")
        job.finalize()

        assert job.status == JobStatus.COMPLETED
        assert job.completed_at is not None
        assert job.is_finished

    def test_all_failed_is_failed(self):
        """测试全部失败定稿为 failed."""
        job = Job(template_id="tmpl_a", total_items=2)
        job.record_failure(0, "boom")
        job.record_failure(1, "boom")
        job.finalize()

        assert job.status == JobStatus.FAILED


class TestTemplate:
    """测试模板实体."""

    def test_id_prefix(self):
        """测试模板ID前缀."""
        doc = SceneDocument(width=100, height=50)
        template = Template(name="poster", width=100, height=50, document=doc)
        assert template.id.startswith("tmpl_")
        assert template.variables == []

    def test_name_required(self):
        """测试模板名称不能为空."""
        doc = SceneDocument(width=100, height=50)
        with pytest.raises(ValidationError):
            Template(name="", width=100, height=50, document=doc)


class TestApiSchemas:
    """测试请求/响应契约."""

    def test_request_camel_case_and_stringify(self):
        """测试请求字段别名与值字符串化."""
        request = GenerationRequest.model_validate(
            {
                "templateId": "tmpl_x",
                "format": "jpeg",
                "data": [{"price": 9.5, "name": "Ada", "note": None}],
            }
        )

        assert request.template_id == "tmpl_x"
        assert request.format == OutputFormat.JPEG
        assert request.data == [{"price": "9.5", "name": "Ada"}]

    def test_request_rejects_unknown_format(self):
        """测试请求拒绝未知格式."""
        with pytest.raises(ValidationError):
            GenerationRequest.model_validate({"templateId": "tmpl_x", "format": "gif"})

    def test_response_to_dict(self):
        """测试响应序列化为 camelCase 且省略空字段."""
        response = GenerationResponse(
            job_id="job_1",
            status=JobStatus.COMPLETED,
            total_items=1,
            processed_items=1,
            duration="12ms",
            images=[GeneratedImage(index=0, url="/output/a.png")],
        )

        body = response.to_dict()
        assert body["jobId"] == "job_1"
        assert body["status"] == "completed"
        assert body["processedItems"] == 1
        assert body["images"] == [{"index": 0, "url": "/output/a.png"}]
        assert "errors" not in body
