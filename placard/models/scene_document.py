"""场景文档数据模型.

模板编辑器序列化出的场景图：画布尺寸加一组带类型的可视元素。

Features:
    - 元素基类与封闭的带标签联合类型（文字、矩形、椭圆、图片、图标、编组、圆形相框）
    - 变量绑定注解
    - 以宿主中心为原点的裁剪区域
    - JSON 序列化/反序列化（同时接受 camelCase 字段名）
    - 画布尺寸变化时的整体等比缩放
"""

from __future__ import annotations

import json
import uuid
from enum import Enum
from typing import Annotated, Any, Iterator, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from placard.utils.constants import MAX_CANVAS_SIDE


# ===================
# 常量定义
# ===================

# 文字默认值
DEFAULT_TEXT_CONTENT = "Text"
DEFAULT_FONT_FAMILY = "Arial"
DEFAULT_FONT_SIZE = 40.0
DEFAULT_LINE_HEIGHT = 1.16
DEFAULT_TEXT_COLOR = "#000000"

# 形状默认值
DEFAULT_SHAPE_FILL = "#cccccc"

# 圆形相框占位样式
DEFAULT_FRAME_FILL = "rgba(200, 200, 200, 0.3)"
DEFAULT_FRAME_STROKE = "#999999"
DEFAULT_FRAME_STROKE_WIDTH = 2.0


# ===================
# 枚举定义
# ===================


class ElementType(str, Enum):
    """元素类型枚举."""

    TEXT = "text"
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    IMAGE = "image"
    ICON = "icon"
    GROUP = "group"
    CIRCLE_FRAME = "circle_frame"


class TextAlign(str, Enum):
    """文字对齐方式."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class TextEffect(str, Enum):
    """文字特效预设."""

    NONE = "none"
    SHADOW = "shadow"  # 基础投影
    OUTLINE = "outline"  # 描边
    LIFT = "lift"  # 柔和抬升阴影


class ImageFit(str, Enum):
    """图片适应模式."""

    CONTAIN = "contain"  # 保持比例，完整显示
    COVER = "cover"  # 保持比例，填满区域
    STRETCH = "stretch"  # 拉伸填满


def generate_element_id() -> str:
    """生成唯一的元素ID.

    Returns:
        8位UUID字符串
    """
    return uuid.uuid4().hex[:8]


class _DocumentModel(BaseModel):
    """文档模型基类，字段名同时接受 snake_case 与 camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


# ===================
# 附属描述
# ===================


class Binding(_DocumentModel):
    """变量绑定注解.

    Attributes:
        variable_name: 变量名
        is_dynamic: 是否参与替换
    """

    variable_name: str = ""
    is_dynamic: bool = True

    @property
    def is_active(self) -> bool:
        """绑定是否生效（动态且变量名非空）."""
        return self.is_dynamic and bool(self.variable_name.strip())


class ClipRegion(_DocumentModel):
    """裁剪区域.

    坐标相对于被裁剪对象的中心，与对象自身的位置、旋转、缩放无关。
    """

    shape: Literal["circle"] = "circle"
    radius: float = Field(gt=0)
    offset_x: float = 0.0
    offset_y: float = 0.0


class Stroke(_DocumentModel):
    """描边."""

    color: str = "#000000"
    width: float = Field(default=1.0, ge=0)


class Shadow(_DocumentModel):
    """投影."""

    color: str = "rgba(0, 0, 0, 0.5)"
    blur: float = Field(default=5.0, ge=0)
    offset_x: float = 2.0
    offset_y: float = 2.0


# ===================
# 元素基类
# ===================


class SceneElement(_DocumentModel):
    """元素基类.

    Attributes:
        id: 元素唯一标识符
        name: 元素名称
        x: 左上角X坐标（画布空间）
        y: 左上角Y坐标（画布空间）
        width: 渲染宽度
        height: 渲染高度
        rotation: 旋转角度（度，顺时针，绕中心）
        opacity: 不透明度（0-1）
        visible: 是否可见
        binding: 变量绑定
    """

    id: str = Field(default_factory=generate_element_id)
    name: str = ""
    x: float = 0.0
    y: float = 0.0
    width: float = Field(default=100.0, gt=0)
    height: float = Field(default=100.0, gt=0)
    rotation: float = 0.0
    opacity: float = Field(default=1.0, ge=0, le=1)
    visible: bool = True
    binding: Optional[Binding] = None

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """(left, top, right, bottom) 边界元组."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def center(self) -> tuple[float, float]:
        """中心点坐标."""
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def variable_name(self) -> Optional[str]:
        """生效的绑定变量名，未绑定返回 None."""
        if self.binding is not None and self.binding.is_active:
            return self.binding.variable_name.strip()
        return None


class TextElement(SceneElement):
    """文字元素.

    ``width`` 是作者设定的固定文本框宽度，替换后的文字超出时按比例缩小。
    """

    type: Literal["text"] = "text"

    content: str = DEFAULT_TEXT_CONTENT
    font_family: str = DEFAULT_FONT_FAMILY
    font_size: float = Field(default=DEFAULT_FONT_SIZE, gt=0)
    font_weight: str = "normal"
    font_style: Literal["normal", "italic"] = "normal"
    color: str = DEFAULT_TEXT_COLOR
    align: TextAlign = TextAlign.LEFT
    origin: Literal["left", "center"] = "left"
    letter_spacing: float = 0.0
    line_height: float = Field(default=DEFAULT_LINE_HEIGHT, gt=0)

    stroke: Optional[Stroke] = None
    shadow: Optional[Shadow] = None
    background_color: Optional[str] = None
    background_padding: float = Field(default=0.0, ge=0)
    text_effect: TextEffect = TextEffect.NONE

    @property
    def is_bold(self) -> bool:
        """是否粗体（bold 或数值 >= 600）."""
        weight = self.font_weight.strip().lower()
        if weight in ("bold", "bolder"):
            return True
        return weight.isdigit() and int(weight) >= 600

    @property
    def is_italic(self) -> bool:
        """是否斜体."""
        return self.font_style == "italic"

    @property
    def is_center_anchored(self) -> bool:
        """缩小后是否需要在文本框内重新居中."""
        return self.align == TextAlign.CENTER or self.origin == "center"


class RectangleElement(SceneElement):
    """矩形元素."""

    type: Literal["rectangle"] = "rectangle"

    fill: Optional[str] = DEFAULT_SHAPE_FILL
    stroke: Optional[str] = None
    stroke_width: float = Field(default=0.0, ge=0)
    corner_radius: float = Field(default=0.0, ge=0)


class EllipseElement(SceneElement):
    """椭圆/圆形元素."""

    type: Literal["ellipse"] = "ellipse"

    fill: Optional[str] = DEFAULT_SHAPE_FILL
    stroke: Optional[str] = None
    stroke_width: float = Field(default=0.0, ge=0)


class ImageElement(SceneElement):
    """图片元素.

    ``src`` 可以是本地文件路径、``data:`` URL 或 http(s) URL。
    """

    type: Literal["image"] = "image"

    src: str = ""
    fit: ImageFit = ImageFit.STRETCH
    clip: Optional[ClipRegion] = None


class IconElement(SceneElement):
    """图标/矢量图形元素.

    ``svg`` 为内联 SVG 标记；为空时从 ``src`` 加载。
    """

    type: Literal["icon"] = "icon"

    svg: str = ""
    src: str = ""
    color: Optional[str] = None

    @model_validator(mode="after")
    def _check_source(self) -> "IconElement":
        if not self.svg and not self.src:
            raise ValueError("图标元素需要 svg 或 src")
        return self


class GroupElement(SceneElement):
    """编组元素.

    子元素坐标相对于编组左上角。
    """

    type: Literal["group"] = "group"

    elements: list[AnyElement] = Field(default_factory=list)


class CircleFrameElement(SceneElement):
    """圆形相框元素.

    空相框绘制占位圆；装入图片后，图片以覆盖比例居中，按
    ``image_offset_x/y`` 平移，并被半径为 ``radius`` 的圆裁剪。
    """

    type: Literal["circle_frame"] = "circle_frame"

    radius: float = Field(default=100.0, gt=0)
    has_image: bool = False
    image_src: Optional[str] = None
    natural_width: Optional[float] = Field(default=None, gt=0)
    natural_height: Optional[float] = Field(default=None, gt=0)
    image_scale: float = Field(default=1.0, gt=0)
    image_offset_x: float = 0.0
    image_offset_y: float = 0.0

    fill: Optional[str] = DEFAULT_FRAME_FILL
    stroke: Optional[str] = DEFAULT_FRAME_STROKE
    stroke_width: float = Field(default=DEFAULT_FRAME_STROKE_WIDTH, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _default_size(cls, data: Any) -> Any:
        """未给出宽高时以直径作为相框尺寸."""
        if isinstance(data, dict):
            radius = data.get("radius")
            if radius is not None:
                data = dict(data)
                data.setdefault("width", radius * 2)
                data.setdefault("height", radius * 2)
        return data

    @model_validator(mode="after")
    def _enforce_cover(self) -> "CircleFrameElement":
        """装有图片时，缩放不得小于覆盖比例."""
        if not self.has_image:
            return self
        if not self.image_src or not self.natural_width or not self.natural_height:
            raise ValueError("装有图片的相框需要 image_src、natural_width 和 natural_height")
        from placard.core.geometry import clamp_to_cover

        clamped = clamp_to_cover(
            self.image_scale, self.diameter, self.natural_width, self.natural_height
        )
        self.image_scale = clamped
        return self

    @property
    def diameter(self) -> float:
        """相框直径."""
        return self.radius * 2

    @property
    def frame_center(self) -> tuple[float, float]:
        """相框中心（画布空间）."""
        return (self.x + self.width / 2, self.y + self.height / 2)


AnyElement = Annotated[
    Union[
        TextElement,
        RectangleElement,
        EllipseElement,
        ImageElement,
        IconElement,
        GroupElement,
        CircleFrameElement,
    ],
    Field(discriminator="type"),
]

GroupElement.model_rebuild()


# ===================
# 场景文档
# ===================


class SceneDocument(_DocumentModel):
    """场景文档.

    Attributes:
        width: 画布宽度
        height: 画布高度
        background_color: 画布背景色，None 或 transparent 表示透明
        elements: 元素列表（列表顺序即绘制顺序）

    Example:
        >>> doc = SceneDocument(width=1080, height=1080)
        >>> doc.elements.append(TextElement(content="{{headline}}", width=600))
        >>> len(list(doc.iter_elements()))
        1
    """

    width: int = Field(gt=0, le=MAX_CANVAS_SIDE)
    height: int = Field(gt=0, le=MAX_CANVAS_SIDE)
    background_color: Optional[str] = "#ffffff"
    elements: list[AnyElement] = Field(default_factory=list)

    @property
    def size(self) -> tuple[int, int]:
        """画布尺寸."""
        return (self.width, self.height)

    def iter_elements(self) -> Iterator[AnyElement]:
        """深度优先遍历所有元素（含编组内子元素）."""
        yield from _walk(self.elements)

    def to_dict(self) -> dict[str, Any]:
        """序列化为 JSON 兼容字典."""
        return self.model_dump(mode="json")

    def to_json(self, indent: Optional[int] = 2) -> str:
        """序列化为JSON字符串."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "SceneDocument":
        """从JSON字符串反序列化."""
        return cls.model_validate_json(json_str)


def _walk(elements: list[AnyElement]) -> Iterator[AnyElement]:
    for element in elements:
        yield element
        if isinstance(element, GroupElement):
            yield from _walk(element.elements)


# ===================
# 画布缩放
# ===================


def rescale_document(
    document: SceneDocument,
    old_dims: tuple[int, int],
    new_dims: tuple[int, int],
) -> SceneDocument:
    """画布尺寸变化时整体缩放所有元素.

    位置按各轴比例缩放；尺寸按 ``min(sx, sy)`` 统一缩放以保持元素宽高比。
    文字字号取整，文字描边不随之缩放。返回新文档，不修改输入。

    Args:
        document: 原文档
        old_dims: 原画布尺寸 (宽, 高)
        new_dims: 新画布尺寸 (宽, 高)

    Returns:
        缩放后的新文档
    """
    old_w, old_h = old_dims
    new_w, new_h = new_dims
    if old_w <= 0 or old_h <= 0 or new_w <= 0 or new_h <= 0:
        raise ValueError(f"画布尺寸必须为正数: {old_dims} -> {new_dims}")

    sx = new_w / old_w
    sy = new_h / old_h
    uniform = min(sx, sy)

    result = document.model_copy(deep=True)
    result.width = int(new_w)
    result.height = int(new_h)
    result.elements = [
        _rescale_element(el, sx, sy, uniform) for el in result.elements
    ]
    return result


def _rescale_element(element: AnyElement, sx: float, sy: float, uniform: float) -> AnyElement:
    updates: dict[str, Any] = {
        "x": element.x * sx,
        "y": element.y * sy,
        "width": element.width * uniform,
        "height": element.height * uniform,
    }

    if isinstance(element, TextElement):
        updates["font_size"] = max(1, round(element.font_size * uniform))
        updates["background_padding"] = element.background_padding * uniform
    elif isinstance(element, (RectangleElement, EllipseElement)):
        updates["stroke_width"] = element.stroke_width * uniform
        if isinstance(element, RectangleElement):
            updates["corner_radius"] = element.corner_radius * uniform
    elif isinstance(element, ImageElement) and element.clip is not None:
        updates["clip"] = element.clip.model_copy(
            update={
                "radius": element.clip.radius * uniform,
                "offset_x": element.clip.offset_x * uniform,
                "offset_y": element.clip.offset_y * uniform,
            }
        )
    elif isinstance(element, CircleFrameElement):
        updates["radius"] = element.radius * uniform
        updates["stroke_width"] = element.stroke_width * uniform
        updates["image_scale"] = element.image_scale * uniform
        updates["image_offset_x"] = element.image_offset_x * uniform
        updates["image_offset_y"] = element.image_offset_y * uniform
    elif isinstance(element, GroupElement):
        # 编组内部坐标随编组统一缩放
        updates["elements"] = [
            _rescale_element(child, uniform, uniform, uniform) for child in element.elements
        ]

    return element.model_copy(update=updates)
