"""模板与任务模型.

Features:
    - 模板实体（文档 + 派生的变量列表缓存）
    - 批量生成任务记录及其状态流转
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from placard.models.scene_document import SceneDocument
from placard.utils.constants import ID_LENGTH, JOB_ID_PREFIX, TEMPLATE_ID_PREFIX
from placard.utils.helpers import generate_prefixed_id, utc_now


class JobStatus(str, Enum):
    """任务状态枚举."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class OutputFormat(str, Enum):
    """输出格式枚举."""

    PNG = "png"
    JPEG = "jpeg"


def new_template_id() -> str:
    """生成模板ID."""
    return generate_prefixed_id(TEMPLATE_ID_PREFIX, ID_LENGTH)


def new_job_id() -> str:
    """生成任务ID."""
    return generate_prefixed_id(JOB_ID_PREFIX, ID_LENGTH)


class Template(BaseModel):
    """模板实体.

    ``variables`` 是从 ``document`` 派生的缓存，每次保存时由持久化层重新计算，
    不允许手工编辑；渲染流程从不修改模板。

    Attributes:
        id: 模板ID
        name: 模板名称
        width: 画布宽度
        height: 画布高度
        document: 场景文档
        variables: 声明的变量名（首次出现顺序）
        preview_ref: 预览图引用
    """

    id: str = Field(default_factory=new_template_id)
    name: str = Field(min_length=1, max_length=200)
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    document: SceneDocument
    variables: list[str] = Field(default_factory=list)
    preview_ref: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Job(BaseModel):
    """批量生成任务记录.

    创建时为 processing，逐行更新，所有行尝试完毕后定稿为 completed 或 failed。
    部分成功时状态为 completed 且 ``error_messages`` 非空，调用方需同时检查两者。

    Attributes:
        id: 任务ID
        template_id: 模板ID
        status: 任务状态
        format: 输出格式
        total_items: 总行数
        processed_items: 成功行数
        output_refs: 输出文件路径
        error_messages: 行级错误
        created_at: 创建时间
        completed_at: 完成时间
    """

    id: str = Field(default_factory=new_job_id)
    template_id: str
    status: JobStatus = JobStatus.PROCESSING
    format: OutputFormat = OutputFormat.PNG
    total_items: int = Field(ge=0)
    processed_items: int = Field(default=0, ge=0)
    output_refs: list[str] = Field(default_factory=list)
    error_messages: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    def record_success(self, output_ref: str) -> None:
        """记录一行渲染成功.

        Args:
            output_ref: 输出文件路径
        """
        self.output_refs.append(output_ref)
        self.processed_items += 1

    def record_failure(self, index: int, message: str) -> None:
        """记录一行渲染失败.

        Args:
            index: 数据行索引
            message: 错误描述
        """
        self.error_messages.append(f"Image {index}: {message}")

    def finalize(self) -> None:
        """定稿任务状态.

        仅当没有任何行成功且至少有一个错误时为 failed，否则为 completed。
        """
        if self.processed_items == 0 and self.error_messages:
            self.status = JobStatus.FAILED
        else:
            self.status = JobStatus.COMPLETED
        self.completed_at = utc_now()

    @property
    def failed_items(self) -> int:
        """失败行数."""
        return len(self.error_messages)

    @property
    def is_finished(self) -> bool:
        """是否已定稿."""
        return self.status != JobStatus.PROCESSING

    @property
    def has_errors(self) -> bool:
        """是否存在行级错误."""
        return bool(self.error_messages)
