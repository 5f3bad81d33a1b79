"""批量生成编排器单元测试."""

import asyncio
import threading

import pytest

from placard.core.bulk_generator import (
    CANCELLED_MESSAGE,
    BulkGenerator,
    find_missing_variables,
    normalize_format,
)
from placard.models.api_schemas import GenerationRequest
from placard.models.template import JobStatus, OutputFormat
from placard.services.rendering_service import RenderingService
from placard.utils.exceptions import (
    EmptyDataError,
    MissingVariablesError,
    PersistenceError,
    PoolExhaustedError,
    TemplateNotFoundError,
    UnsupportedFormatError,
)


# ===================
# Fixtures
# ===================


@pytest.fixture
def generator(template_store, job_store, rendering_service, settings) -> BulkGenerator:
    """批量生成编排器."""
    return BulkGenerator(template_store, job_store, rendering_service, settings)


@pytest.fixture
def template(template_store, headline_document):
    """含 headline 变量的模板."""
    return template_store.create("海报", headline_document)


# ===================
# 辅助函数测试
# ===================


class TestHelpers:
    """测试辅助函数."""

    def test_normalize_format(self):
        """测试格式规范化."""
        assert normalize_format("PNG") == "png"
        assert normalize_format(" jpeg ") == "jpeg"
        assert normalize_format(OutputFormat.JPEG) == "jpeg"
        with pytest.raises(UnsupportedFormatError):
            normalize_format("webp")

    def test_find_missing_variables(self):
        """测试缺失变量检测，None 视为缺失."""
        rows = [{"a": "1", "b": "2"}, {"a": "1", "b": None}]
        assert find_missing_variables(["a", "b", "c"], rows) == ["b", "c"]
        assert find_missing_variables([], rows) == []


# ===================
# 校验测试
# ===================


class TestValidation:
    """测试创建任务前的校验."""

    @pytest.mark.asyncio
    async def test_empty_data(self, generator, template, job_store):
        """测试数据行为空."""
        with pytest.raises(EmptyDataError):
            await generator.generate(template.id, "png", [])
        with pytest.raises(EmptyDataError):
            await generator.generate(template.id, "png", None)
        assert job_store.count() == 0

    @pytest.mark.asyncio
    async def test_unknown_template(self, generator, job_store):
        """测试模板不存在."""
        with pytest.raises(TemplateNotFoundError):
            await generator.generate("tmpl_missing", "png", [{"x": "1"}])
        assert job_store.count() == 0

    @pytest.mark.asyncio
    async def test_format_checked_before_template(self, generator, job_store):
        """测试格式校验先于模板查找."""
        with pytest.raises(UnsupportedFormatError):
            await generator.generate("tmpl_missing", "gif", [{"x": "1"}])
        assert job_store.count() == 0

    @pytest.mark.asyncio
    async def test_missing_variables(self, generator, template, job_store):
        """测试任意一行缺少变量."""
        rows = [{"headline": "ok"}, {"other": "x"}]

        with pytest.raises(MissingVariablesError) as exc_info:
            await generator.generate(template.id, "png", rows)

        assert exc_info.value.missing == ["headline"]
        assert job_store.count() == 0


# ===================
# 生成测试
# ===================


class TestGenerate:
    """测试批量生成."""

    @pytest.mark.asyncio
    async def test_all_rows_succeed(self, generator, template, job_store, settings):
        """测试全部成功."""
        rows = [{"headline": f"Row {i}", "extra": "ignored"} for i in range(3)]

        response = await generator.generate(template.id, "png", rows)

        assert response.status == JobStatus.COMPLETED
        assert (response.total_items, response.processed_items) == (3, 3)
        assert response.errors is None
        assert response.duration.endswith("ms")
        assert [img.index for img in response.images] == [0, 1, 2]
        for i, image in enumerate(response.images):
            filename = f"{response.job_id}_{i}.png"
            assert image.url == f"/output/{filename}"
            assert image.base64
            assert (settings.output_path / filename).is_file()

        job = job_store.get(response.job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.output_refs == [
            str(settings.output_path / f"{response.job_id}_{i}.png") for i in range(3)
        ]

    @pytest.mark.asyncio
    async def test_jpeg_without_base64(self, template_store, job_store, rendering_service, settings, template):
        """测试 JPEG 输出且不内联 Base64."""
        no_inline = settings.model_copy(update={"inline_base64": False})
        generator = BulkGenerator(template_store, job_store, rendering_service, no_inline)

        response = await generator.generate(template.id, "JPEG", [{"headline": "x"}])

        assert response.images[0].base64 is None
        assert response.images[0].url.endswith(".jpeg")
        assert "base64" not in response.to_dict()["images"][0]

    @pytest.mark.asyncio
    async def test_concurrent_rows_keep_order(self, generator, template, job_store):
        """测试并发渲染时输出仍按行序排列."""
        generator.concurrent_limit = 3
        rows = [{"headline": "x" * (i + 1)} for i in range(6)]

        response = await generator.generate(template.id, "png", rows)

        assert [img.index for img in response.images] == list(range(6))
        refs = job_store.get(response.job_id).output_refs
        assert refs == sorted(refs, key=lambda ref: int(ref.rsplit("_", 1)[1].split(".")[0]))

    @pytest.mark.asyncio
    async def test_cancel_between_rows(self, generator, template, rendering_service, monkeypatch):
        """测试取消后剩余行记为失败."""
        original = rendering_service.render_async

        async def render_then_cancel(*args, **kwargs):
            assert generator.cancel(generator.running_jobs[0])
            return await original(*args, **kwargs)

        monkeypatch.setattr(rendering_service, "render_async", render_then_cancel)

        response = await generator.generate(template.id, "png", [{"headline": "x"}] * 3)

        assert response.status == JobStatus.COMPLETED
        assert response.processed_items == 1
        assert response.errors == [
            f"Image 1: {CANCELLED_MESSAGE}",
            f"Image 2: {CANCELLED_MESSAGE}",
        ]
        assert generator.running_jobs == []
        assert not generator.is_cancelled(response.job_id)

    @pytest.mark.asyncio
    async def test_cancel_only_affects_target_job(self, generator, template, rendering_service,
                                                  monkeypatch):
        """测试取消一个任务不影响同时运行的其他任务."""
        original = rendering_service.render_async
        cancelled: list[str] = []

        async def cancel_first_job(*args, **kwargs):
            if not cancelled:
                job_id = args[5].name.rsplit("_", 1)[0]
                cancelled.append(job_id)
                generator.cancel(job_id)
            return await original(*args, **kwargs)

        monkeypatch.setattr(rendering_service, "render_async", cancel_first_job)
        rows = [{"headline": "x"}] * 3

        first, second = await asyncio.gather(
            generator.generate(template.id, "png", rows),
            generator.generate(template.id, "png", rows),
        )

        by_job = {first.job_id: first, second.job_id: second}
        target = by_job.pop(cancelled[0])
        (other,) = by_job.values()
        assert target.processed_items == 1
        assert len(target.errors) == 2
        assert other.processed_items == 3
        assert other.errors is None

    def test_cancel_unknown_job(self, generator):
        """测试取消未运行的任务."""
        assert generator.cancel("job_missing") is False
        assert not generator.is_cancelled("job_missing")

    @pytest.mark.asyncio
    async def test_pool_wait_timeout_is_per_row(self, generator, template, rendering_service,
                                                monkeypatch):
        """测试获取实例超时只影响当前行."""
        original = rendering_service.render_async
        calls: list[int] = []

        async def busy_once(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise PoolExhaustedError(0.3)
            return await original(*args, **kwargs)

        monkeypatch.setattr(rendering_service, "render_async", busy_once)

        response = await generator.generate(template.id, "png", [{"headline": "x"}] * 4)

        assert response.status == JobStatus.COMPLETED
        assert response.processed_items == 3
        assert len(calls) == 4
        assert [img.index for img in response.images] == [1, 2, 3]
        assert response.errors == [f"Image 0: {PoolExhaustedError(0.3).message}"]

    @pytest.mark.asyncio
    async def test_pool_contention_recovers(self, template_store, job_store, settings, template):
        """测试实例被占用后归还，后续行可以继续渲染."""
        contended = settings.model_copy(update={"pool_size": 1, "acquire_timeout": 0.3})
        with RenderingService(contended) as service:
            generator = BulkGenerator(template_store, job_store, service, contended)
            held = service.pool.checkout()
            timer = threading.Timer(0.45, service.pool.checkin, [held])
            timer.start()
            try:
                response = await generator.generate(template.id, "png", [{"headline": "x"}] * 4)
            finally:
                timer.join()

        assert response.status == JobStatus.COMPLETED
        assert response.processed_items >= 2
        assert response.errors[0].startswith("Image 0: ")

    @pytest.mark.asyncio
    async def test_pool_closed_fails_fast(self, generator, template, rendering_service, job_store):
        """测试渲染池关闭后所有行失败."""
        rendering_service.shutdown()

        response = await generator.generate(template.id, "png", [{"headline": "x"}] * 3)

        assert response.status == JobStatus.FAILED
        assert response.processed_items == 0
        assert len(response.errors) == 3
        assert response.images == []
        assert job_store.get(response.job_id).status == JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_persistence_error_waits_for_all_rows(self, generator, template, job_store,
                                                        settings, monkeypatch):
        """测试任务记录保存失败时，等并发的其他行结束后再抛出."""
        generator.concurrent_limit = 3
        original = job_store.save
        failed_jobs: list[str] = []

        def save_fails_once(job):
            if not failed_jobs:
                failed_jobs.append(job.id)
                raise PersistenceError("disk full")
            return original(job)

        monkeypatch.setattr(job_store, "save", save_fails_once)

        with pytest.raises(PersistenceError):
            await generator.generate(template.id, "png", [{"headline": "x"}] * 3)

        job_id = failed_jobs[0]
        written = sorted(path.name for path in settings.output_path.glob(f"{job_id}_*.png"))
        assert written == [f"{job_id}_{i}.png" for i in range(3)]
        assert generator.running_jobs == []

    @pytest.mark.asyncio
    async def test_generate_request(self, generator, template):
        """测试处理请求对象."""
        request = GenerationRequest.model_validate(
            {"templateId": template.id, "data": [{"headline": 42}]}
        )
        response = await generator.generate_request(request)
        assert response.processed_items == 1

    @pytest.mark.asyncio
    async def test_job_status(self, generator, template):
        """测试查询任务状态."""
        response = await generator.generate(template.id, "png", [{"headline": "x"}])

        status = generator.get_job_status(response.job_id)

        assert status.status == JobStatus.COMPLETED
        assert status.template_id == template.id
        body = status.to_dict()
        assert body["jobId"] == response.job_id
        assert "errors" not in body
