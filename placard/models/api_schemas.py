"""请求/响应契约.

HTTP 路由层不在本项目内，这里只定义它与编排器之间交换的数据结构。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from placard.models.template import Job, JobStatus, OutputFormat


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerationRequest(_ApiModel):
    """批量生成请求.

    Example:
        >>> GenerationRequest.model_validate(
        ...     {"templateId": "tmpl_x", "data": [{"headline": "Hi"}]}
        ... ).format
        <OutputFormat.PNG: 'png'>
    """

    template_id: str = Field(min_length=1)
    format: OutputFormat = OutputFormat.PNG
    data: list[dict[str, str]] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def stringify_values(cls, v: Any) -> Any:
        """标量值统一转为字符串，None 表示未提供."""
        if not isinstance(v, list):
            return v
        rows = []
        for row in v:
            if isinstance(row, dict):
                row = {
                    str(key): value if isinstance(value, str) else str(value)
                    for key, value in row.items()
                    if value is not None
                }
            rows.append(row)
        return rows


class GeneratedImage(_ApiModel):
    """单张输出图片."""

    index: int
    url: str
    base64: Optional[str] = None


class GenerationResponse(_ApiModel):
    """批量生成响应."""

    job_id: str
    status: JobStatus
    total_items: int
    processed_items: int
    duration: str = ""
    images: list[GeneratedImage] = Field(default_factory=list)
    errors: Optional[list[str]] = None

    def to_dict(self) -> dict[str, Any]:
        """序列化为响应体（camelCase，省略空字段）."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class JobStatusResponse(_ApiModel):
    """任务状态查询响应."""

    job_id: str
    template_id: str
    status: JobStatus
    format: OutputFormat
    total_items: int
    processed_items: int
    created_at: datetime
    completed_at: Optional[datetime] = None
    errors: Optional[list[str]] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobStatusResponse":
        """从任务记录构建响应."""
        return cls(
            job_id=job.id,
            template_id=job.template_id,
            status=job.status,
            format=job.format,
            total_items=job.total_items,
            processed_items=job.processed_items,
            created_at=job.created_at,
            completed_at=job.completed_at,
            errors=list(job.error_messages) or None,
        )

    def to_dict(self) -> dict[str, Any]:
        """序列化为响应体（camelCase，省略空字段）."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
