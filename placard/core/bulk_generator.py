"""批量生成编排器.

校验请求、创建任务、逐行渲染并隔离失败、汇总任务状态。

Features:
    - 创建任务前的同步校验（数据为空、模板不存在、格式不支持、缺少变量）
    - 单行失败只记录错误，不影响其他行
    - 渲染池关闭时剩余行快速失败
    - 可选的有界并发，输出仍按输入行序排列
    - 行与行之间检查取消标记
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from placard.models.api_schemas import (
    GeneratedImage,
    GenerationRequest,
    GenerationResponse,
    JobStatusResponse,
)
from placard.models.app_settings import Settings
from placard.models.template import Job, OutputFormat, Template
from placard.services.job_store import JobStore
from placard.services.rendering_service import RenderingService
from placard.services.template_store import TemplateStore
from placard.utils.constants import SUPPORTED_OUTPUT_FORMATS
from placard.utils.exceptions import (
    AppException,
    EmptyDataError,
    MissingVariablesError,
    PoolError,
    PoolExhaustedError,
    TemplateNotFoundError,
    UnsupportedFormatError,
)
from placard.utils.image_utils import bytes_to_base64
from placard.utils.logger import setup_logger

logger = setup_logger(__name__)

CANCELLED_MESSAGE = "generation cancelled"

DataRow = Mapping[str, Any]


def normalize_format(output_format: Any) -> str:
    """输出格式统一为小写字符串.

    Raises:
        UnsupportedFormatError: 不支持的格式
    """
    value = output_format.value if isinstance(output_format, OutputFormat) else str(output_format)
    value = value.strip().lower()
    if value not in SUPPORTED_OUTPUT_FORMATS:
        raise UnsupportedFormatError(value)
    return value


def find_missing_variables(variables: Iterable[str], rows: list[DataRow]) -> list[str]:
    """找出任意一行中缺失的变量（值为 None 视为缺失）."""
    return [
        name for name in variables
        if not all(row.get(name) is not None for row in rows)
    ]


def _row_substitutions(row: DataRow) -> dict[str, str]:
    return {
        str(key): value if isinstance(value, str) else str(value)
        for key, value in row.items()
        if value is not None
    }


def format_elapsed(started: float) -> str:
    """耗时字符串，例如 ``153ms``."""
    return f"{int(round((time.perf_counter() - started) * 1000))}ms"


class BulkGenerator:
    """批量生成编排器.

    Attributes:
        concurrent_limit: 单个任务内的并发行数

    Example:
        >>> generator = BulkGenerator(templates, jobs, rendering, settings)
        >>> response = await generator.generate("tmpl_abc", "png", [{"name": "Ada"}])
        >>> response.status
        <JobStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        template_store: TemplateStore,
        job_store: JobStore,
        rendering_service: RenderingService,
        settings: Optional[Settings] = None,
    ) -> None:
        """初始化编排器.

        Args:
            template_store: 模板存储
            job_store: 任务存储
            rendering_service: 渲染服务
            settings: 应用设置
        """
        self._templates = template_store
        self._jobs = job_store
        self._rendering = rendering_service
        self._settings = settings or Settings()
        self.concurrent_limit = self._settings.concurrent_limit
        self._running: set[str] = set()
        self._cancelled: set[str] = set()

    @property
    def running_jobs(self) -> list[str]:
        """正在生成的任务ID."""
        return sorted(self._running)

    def is_cancelled(self, job_id: str) -> bool:
        """任务是否已请求取消."""
        return job_id in self._cancelled

    def cancel(self, job_id: str) -> bool:
        """请求取消指定任务，尚未开始的行记为失败.

        只影响该任务，同一编排器上的其他任务照常进行。

        Returns:
            任务正在运行并已标记取消时返回 True
        """
        if job_id not in self._running:
            logger.warning(f"任务 {job_id} 不在运行中，忽略取消请求")
            return False
        self._cancelled.add(job_id)
        logger.info(f"任务 {job_id} 已请求取消")
        return True

    # ===================
    # 校验
    # ===================

    def validate(
        self,
        template_id: str,
        output_format: Any,
        data_rows: Optional[list[DataRow]],
    ) -> tuple[Template, str]:
        """创建任务前的校验，任何一项失败都不会留下任务记录.

        Returns:
            (模板, 规范化后的输出格式)

        Raises:
            EmptyDataError: 数据行为空
            UnsupportedFormatError: 输出格式不支持
            TemplateNotFoundError: 模板不存在
            MissingVariablesError: 有行缺少模板声明的变量
        """
        if not data_rows:
            raise EmptyDataError()
        fmt = normalize_format(output_format)

        template = self._templates.find(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)

        missing = find_missing_variables(template.variables, data_rows)
        if missing:
            raise MissingVariablesError(missing)
        return template, fmt

    # ===================
    # 生成
    # ===================

    async def generate_request(self, request: GenerationRequest) -> GenerationResponse:
        """处理批量生成请求."""
        return await self.generate(request.template_id, request.format, request.data)

    async def generate(
        self,
        template_id: str,
        output_format: Any = OutputFormat.PNG,
        data_rows: Optional[list[DataRow]] = None,
    ) -> GenerationResponse:
        """批量生成图片.

        Args:
            template_id: 模板ID
            output_format: 输出格式 (png / jpeg)
            data_rows: 数据行，每行是变量名到值的映射

        Returns:
            生成响应；部分成功时 status 为 completed 且 errors 非空

        Raises:
            ValidationError: 校验失败（不会创建任务）
            PersistenceError: 任务记录无法保存（已写出的文件不回滚）
        """
        started = time.perf_counter()
        template, fmt = self.validate(template_id, output_format, data_rows)
        rows = list(data_rows or [])

        job = Job(template_id=template.id, format=OutputFormat(fmt), total_items=len(rows))
        self._jobs.create(job)
        logger.info(f"开始批量生成: 任务 {job.id}，模板 {template.id}，共 {len(rows)} 行")

        output_dir = Path(self._settings.output_path)
        images: dict[int, GeneratedImage] = {}
        ref_order: dict[str, int] = {}
        error_order: dict[str, int] = {}
        fatal: list[PoolError] = []
        semaphore = asyncio.Semaphore(self.concurrent_limit)

        def fail(index: int, message: str) -> None:
            job.record_failure(index, message)
            error_order[job.error_messages[-1]] = index

        async def run_row(index: int, row: DataRow) -> None:
            async with semaphore:
                if job.id in self._cancelled:
                    fail(index, CANCELLED_MESSAGE)
                    self._jobs.save(job)
                    return
                if fatal:
                    fail(index, fatal[0].message)
                    self._jobs.save(job)
                    return

                filename = f"{job.id}_{index}.{fmt}"
                try:
                    result = await self._rendering.render_async(
                        template.document,
                        template.width,
                        template.height,
                        _row_substitutions(row),
                        fmt,
                        output_dir / filename,
                        timeout=self._settings.render_timeout,
                    )
                except PoolExhaustedError as e:
                    # 等待超时只说明实例暂时被占用，后续行照常重试
                    logger.warning(f"行 {index} 获取渲染实例超时: {e}")
                    fail(index, e.message)
                except PoolError as e:
                    # 渲染池关闭或实例无法启动，后续行直接失败
                    logger.error(f"行 {index} 无法获取渲染实例: {e}")
                    fatal.append(e)
                    fail(index, e.message)
                except AppException as e:
                    logger.warning(f"行 {index} 渲染失败: {e}")
                    fail(index, e.message)
                except Exception as e:
                    logger.exception(f"行 {index} 渲染异常: {e}")
                    fail(index, str(e))
                else:
                    ref = str(result.path)
                    job.record_success(ref)
                    ref_order[ref] = index
                    images[index] = GeneratedImage(
                        index=index,
                        url=f"{self._settings.public_url_prefix.rstrip('/')}/{filename}",
                        base64=bytes_to_base64(result.data) if self._settings.inline_base64 else None,
                    )
                    logger.debug(f"行 {index} 完成: {ref} ({result.size_bytes} bytes, {result.digest[:12]})")

                self._jobs.save(job)

        self._running.add(job.id)
        try:
            results = await asyncio.gather(
                *(run_row(i, row) for i, row in enumerate(rows)),
                return_exceptions=True,
            )
        finally:
            self._running.discard(job.id)
            self._cancelled.discard(job.id)

        # 所有行结束后再抛出（任务记录保存失败）
        for outcome in results:
            if isinstance(outcome, BaseException):
                logger.error(f"任务 {job.id} 中止: {outcome}")
                raise outcome

        # 并发完成顺序不定，按输入行序排列
        job.output_refs.sort(key=lambda ref: ref_order[ref])
        job.error_messages.sort(key=lambda msg: error_order[msg])
        job.finalize()
        self._jobs.save(job)

        duration = format_elapsed(started)
        logger.info(
            f"批量生成完成: 任务 {job.id} {job.status.value}，"
            f"{job.processed_items}/{job.total_items} 成功，{job.failed_items} 失败，耗时 {duration}"
        )

        return GenerationResponse(
            job_id=job.id,
            status=job.status,
            total_items=job.total_items,
            processed_items=job.processed_items,
            duration=duration,
            images=[images[i] for i in sorted(images)],
            errors=list(job.error_messages) or None,
        )

    def get_job_status(self, job_id: str) -> JobStatusResponse:
        """查询任务状态.

        Raises:
            JobNotFoundError: 任务不存在
        """
        return JobStatusResponse.from_job(self._jobs.get(job_id))
