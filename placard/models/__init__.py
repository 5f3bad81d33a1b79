"""数据模型模块."""

from placard.models.api_schemas import (
    GeneratedImage,
    GenerationRequest,
    GenerationResponse,
    JobStatusResponse,
)
from placard.models.scene_document import (
    # 枚举
    ElementType,
    ImageFit,
    TextAlign,
    TextEffect,
    # 附属描述
    Binding,
    ClipRegion,
    Shadow,
    Stroke,
    # 元素类
    AnyElement,
    CircleFrameElement,
    EllipseElement,
    GroupElement,
    IconElement,
    ImageElement,
    RectangleElement,
    SceneElement,
    TextElement,
    # 文档
    SceneDocument,
    rescale_document,
)
from placard.models.template import (
    Job,
    JobStatus,
    OutputFormat,
    Template,
    new_job_id,
    new_template_id,
)

__all__ = [
    # 枚举
    "ElementType",
    "ImageFit",
    "TextAlign",
    "TextEffect",
    # 附属描述
    "Binding",
    "ClipRegion",
    "Shadow",
    "Stroke",
    # 元素类
    "AnyElement",
    "CircleFrameElement",
    "EllipseElement",
    "GroupElement",
    "IconElement",
    "ImageElement",
    "RectangleElement",
    "SceneElement",
    "TextElement",
    # 文档
    "SceneDocument",
    "rescale_document",
    # 模板与任务
    "Job",
    "JobStatus",
    "OutputFormat",
    "Template",
    "new_job_id",
    "new_template_id",
    # 请求/响应
    "GeneratedImage",
    "GenerationRequest",
    "GenerationResponse",
    "JobStatusResponse",
]
