"""渲染引擎.

把场景文档实例化到 Pillow 画布上：变量替换、文字自适应缩小、
形状/图片/图标合成、圆形相框裁剪，最后输出 RGBA 图片。

Features:
    - 在文档深拷贝上工作，不修改输入
    - 绘制前的就绪屏障：字体与图片/SVG 资源全部就绪，否则抛出类型化错误
    - 文字超出文本框宽度时等比缩小字号，居中文字重新居中
    - 目标尺寸与画布不同时整体缩放
    - 相同输入得到逐像素相同的输出
"""

from __future__ import annotations

import io
import math
from typing import Callable, Mapping, Optional

from PIL import Image, ImageChops, ImageDraw, ImageFilter, ImageFont

from placard.core.circle_frame import frame_clip
from placard.core.geometry import (
    center_to_top_left,
    clamp_to_cover,
    clip_center_on_canvas,
    cover_scale,
    frame_center,
    offset_for_clip,
    scale_clip,
    to_canvas,
)
from placard.models.scene_document import (
    AnyElement,
    CircleFrameElement,
    EllipseElement,
    GroupElement,
    IconElement,
    ImageElement,
    ImageFit,
    RectangleElement,
    SceneDocument,
    Shadow,
    Stroke,
    TextAlign,
    TextEffect,
    TextElement,
)
from placard.services.asset_loader import AssetLoader
from placard.services.font_registry import (
    FontFace,
    FontRegistry,
    ResolvedFont,
    has_chinese_characters,
)
from placard.utils.constants import MAX_CANVAS_SIDE, MIN_FIT_FONT_SIZE
from placard.utils.exceptions import AssetLoadError, LayoutError, RenderError
from placard.utils.helpers import Deadline
from placard.utils.image_utils import TRANSPARENT, apply_opacity, parse_color
from placard.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

# 自适应缩小时允许的宽度误差（像素）
FIT_EPSILON = 0.5

# 文字特效预设
EFFECT_SHADOWS = {
    TextEffect.SHADOW: Shadow(color="rgba(0, 0, 0, 0.3)", blur=5, offset_x=2, offset_y=2),
    TextEffect.LIFT: Shadow(color="rgba(0, 0, 0, 0.4)", blur=0, offset_x=4, offset_y=4),
}
EFFECT_STROKES = {
    TextEffect.OUTLINE: Stroke(color="#000000", width=2),
    TextEffect.LIFT: Stroke(color="rgba(0, 0, 0, 0.2)", width=1),
}

RESAMPLE = Image.Resampling.LANCZOS


def _font_px(size: float) -> int:
    return max(1, int(round(size)))


# ===================
# 变量替换
# ===================


def apply_substitutions(
    document: SceneDocument,
    substitutions: Optional[Mapping[str, str]] = None,
    check_source: Optional[Callable[[str], None]] = None,
) -> SceneDocument:
    """在文档副本上执行变量替换.

    文字元素替换内容；图片元素替换来源；图标元素替换 SVG 标记或来源；
    圆形相框装入新图片（原始尺寸在就绪屏障中确定）。映射中不存在的变量保持原样。

    Args:
        document: 场景文档
        substitutions: 变量名到值的映射
        check_source: 替换进图片类元素的来源先经过此检查，不允许时抛出 AssetLoadError

    Returns:
        替换后的新文档
    """
    result = document.model_copy(deep=True)
    if not substitutions:
        return result

    for element in result.iter_elements():
        name = element.variable_name
        if name is None or name not in substitutions:
            continue
        value = str(substitutions[name])
        if check_source is not None and _takes_source(element, value):
            check_source(value)
        if isinstance(element, TextElement):
            element.content = value
        elif isinstance(element, ImageElement):
            element.src = value
        elif isinstance(element, IconElement):
            if value.lstrip().startswith("<"):
                element.svg, element.src = value, ""
            else:
                element.svg, element.src = "", value
        elif isinstance(element, CircleFrameElement):
            element.has_image = True
            element.image_src = value
            element.natural_width = None
            element.natural_height = None
    return result


def _takes_source(element: AnyElement, value: str) -> bool:
    if isinstance(element, IconElement):
        return not value.lstrip().startswith("<")
    return isinstance(element, (ImageElement, CircleFrameElement))


def _visible(elements: list[AnyElement]):
    for element in elements:
        if not element.visible:
            continue
        yield element
        if isinstance(element, GroupElement):
            yield from _visible(element.elements)


# ===================
# 渲染引擎
# ===================


class RenderHarness:
    """渲染引擎实例.

    实例不是线程安全的，由渲染池保证同一时刻只有一个调用方使用。
    字体注册表与资源加载器在实例之间共享。

    Example:
        >>> harness = RenderHarness(FontRegistry(), AssetLoader())
        >>> image = harness.render(document, {"headline": "夏季新品"})
        >>> harness.reset()
    """

    def __init__(
        self,
        font_registry: Optional[FontRegistry] = None,
        asset_loader: Optional[AssetLoader] = None,
        harness_id: int = 0,
    ) -> None:
        """初始化渲染引擎.

        Args:
            font_registry: 字体注册表
            asset_loader: 资源加载器
            harness_id: 实例编号（日志用）
        """
        self.harness_id = harness_id
        self._registry = font_registry or FontRegistry()
        self._loader = asset_loader or AssetLoader()
        self._resolved: dict[FontFace, ResolvedFont] = {}
        self._font_cache: dict[tuple[Optional[str], int], ImageFont.FreeTypeFont] = {}
        self._images: dict[str, Image.Image] = {}
        self._svgs: dict[str, bytes] = {}
        self.render_count = 0

    # ===================
    # 公共接口
    # ===================

    def render(
        self,
        document: SceneDocument,
        substitutions: Optional[Mapping[str, str]] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> Image.Image:
        """渲染场景文档.

        Args:
            document: 场景文档（不会被修改）
            substitutions: 变量替换映射
            width: 目标宽度，默认画布宽度
            height: 目标高度，默认画布高度
            timeout: 就绪与绘制的总截止时间（秒）
            deadline: 调用方已开始计时的截止时间，优先于 ``timeout``

        Returns:
            RGBA 图片

        Raises:
            AssetLoadError: 资源无法加载
            FontNotReadyError: 字体未就绪
            RenderTimeoutError: 超过截止时间
            LayoutError: 元素绘制失败
        """
        deadline = deadline or Deadline(timeout)
        target_w = int(width or document.width)
        target_h = int(height or document.height)
        if not (0 < target_w <= MAX_CANVAS_SIDE and 0 < target_h <= MAX_CANVAS_SIDE):
            raise RenderError(f"无效的目标尺寸: {target_w}x{target_h}")

        doc = apply_substitutions(document, substitutions, self._loader.check_source)
        self.prepare(doc, deadline)
        doc.elements = self._fit_all(doc.elements)

        scale_x = target_w / doc.width
        scale_y = target_h / doc.height
        logger.debug(
            f"[harness-{self.harness_id}] 渲染: 画布=({doc.width}, {doc.height}), "
            f"目标=({target_w}, {target_h}), 缩放=({scale_x:.2f}, {scale_y:.2f})"
        )

        try:
            background = parse_color(doc.background_color)
        except ValueError as e:
            raise LayoutError("document", f"无效的背景色: {e}") from e
        canvas = Image.new("RGBA", (target_w, target_h), background)

        for element in doc.elements:
            deadline.check("paint")
            canvas = self._paint(canvas, element, scale_x, scale_y, (0.0, 0.0))

        self.render_count += 1
        return canvas

    def prepare(self, document: SceneDocument, deadline: Optional[Deadline] = None) -> None:
        """就绪屏障：解析字体并加载所有可见元素需要的资源.

        Args:
            document: 已替换变量的文档副本（相框原始尺寸会被补全）
            deadline: 截止时间
        """
        deadline = deadline or Deadline(None)
        elements = list(_visible(document.elements))

        faces = [self._face_for(el) for el in elements if isinstance(el, TextElement)]
        self._resolved.update(self._registry.ensure_ready(faces, deadline))

        for element in elements:
            deadline.check("assets")
            if isinstance(element, ImageElement):
                if element.src:
                    self._load_image(element.src, deadline)
            elif isinstance(element, IconElement):
                if not element.svg and element.src not in self._svgs:
                    self._svgs[element.src] = self._loader.load_svg(element.src, deadline)
            elif isinstance(element, CircleFrameElement) and element.has_image:
                image = self._load_image(element.image_src or "", deadline)
                self._settle_frame(element, image)

    def measure_text(
        self,
        element: TextElement,
        font_size: Optional[float] = None,
    ) -> tuple[float, float]:
        """测量文字块在画布坐标中的宽高（含描边）.

        Args:
            element: 文字元素
            font_size: 指定字号，默认元素字号

        Returns:
            (宽度, 高度)
        """
        px = _font_px(font_size or element.font_size)
        font = self._font(element, px)
        lines = element.content.split("\n")
        spacing = element.letter_spacing
        width = max((self._line_width(font, line, spacing) for line in lines), default=0.0)
        stroke = self.effective_stroke(element)
        if stroke is not None and stroke.width > 0:
            width += 2 * stroke.width
        height = px * element.line_height * (len(lines) - 1) + px
        return width, height

    def fit_text(self, element: TextElement) -> TextElement:
        """文字超出文本框宽度时等比缩小字号.

        不换行、不截断；居中文字缩小后在原文字块的垂直范围内重新居中。

        Args:
            element: 文字元素

        Returns:
            调整后的元素（未超出时返回原元素）
        """
        width, height = self.measure_text(element)
        if width <= element.width + FIT_EPSILON:
            return element

        size = float(math.floor(element.font_size * element.width / width))
        size = max(size, MIN_FIT_FONT_SIZE)
        new_width, new_height = self.measure_text(element, size)
        while size > MIN_FIT_FONT_SIZE and new_width > element.width + FIT_EPSILON:
            size -= 1
            new_width, new_height = self.measure_text(element, size)

        if new_width > element.width + FIT_EPSILON:
            logger.warning(
                f"文字在最小字号 {MIN_FIT_FONT_SIZE} 下仍超出文本框: {element.id} "
                f"({new_width:.1f} > {element.width:.1f})"
            )

        updates: dict = {"font_size": size}
        if element.is_center_anchored:
            updates["y"] = element.y + (height - new_height) / 2
        logger.debug(f"文字自适应: {element.id} {element.font_size:g} -> {size:g}")
        return element.model_copy(update=updates)

    def effective_stroke(self, element: TextElement) -> Optional[Stroke]:
        """显式描边优先，否则取特效预设."""
        if element.stroke is not None:
            return element.stroke
        return EFFECT_STROKES.get(element.text_effect)

    def effective_shadow(self, element: TextElement) -> Optional[Shadow]:
        """显式投影优先，否则取特效预设."""
        if element.shadow is not None:
            return element.shadow
        return EFFECT_SHADOWS.get(element.text_effect)

    def reset(self) -> None:
        """清除所有单次渲染状态，使实例与新建时等价."""
        self._resolved.clear()
        self._font_cache.clear()
        self._images.clear()
        self._svgs.clear()

    def close(self) -> None:
        """释放实例持有的资源."""
        self.reset()
        logger.debug(f"[harness-{self.harness_id}] 已关闭")

    # ===================
    # 资源
    # ===================

    def _face_for(self, element: TextElement) -> FontFace:
        return FontFace(
            family=element.font_family,
            bold=element.is_bold,
            italic=element.is_italic,
            cjk=has_chinese_characters(element.content),
        )

    def _font(self, element: TextElement, px: int) -> ImageFont.FreeTypeFont:
        face = self._face_for(element)
        resolved = self._resolved.get(face)
        if resolved is None:
            resolved = self._registry.resolve(face)
            self._resolved[face] = resolved
        key = (resolved.path, px)
        font = self._font_cache.get(key)
        if font is None:
            font = self._registry.load(resolved, px)
            self._font_cache[key] = font
        return font

    def _load_image(self, src: str, deadline: Optional[Deadline]) -> Image.Image:
        image = self._images.get(src)
        if image is None:
            image = self._loader.load_image(src, deadline)
            self._images[src] = image
        return image

    def _settle_frame(self, frame: CircleFrameElement, image: Image.Image) -> None:
        """补全替换后相框的原始尺寸，并保证缩放不低于覆盖比例."""
        if frame.natural_width is None or frame.natural_height is None:
            frame.natural_width = float(image.width)
            frame.natural_height = float(image.height)
            frame.image_scale = cover_scale(frame.diameter, image.width, image.height)
            frame.image_offset_x = 0.0
            frame.image_offset_y = 0.0
        else:
            frame.image_scale = clamp_to_cover(
                frame.image_scale, frame.diameter, frame.natural_width, frame.natural_height
            )

    def _fit_all(self, elements: list[AnyElement]) -> list[AnyElement]:
        fitted: list[AnyElement] = []
        for element in elements:
            if isinstance(element, TextElement) and element.visible and element.content:
                element = self.fit_text(element)
            elif isinstance(element, GroupElement):
                element = element.model_copy(update={"elements": self._fit_all(element.elements)})
            fitted.append(element)
        return fitted

    # ===================
    # 绘制
    # ===================

    def _paint(
        self,
        canvas: Image.Image,
        element: AnyElement,
        scale_x: float,
        scale_y: float,
        origin: tuple[float, float],
    ) -> Image.Image:
        """绘制单个元素并合成到画布.

        Args:
            canvas: 当前画布
            element: 元素
            scale_x: X轴缩放比例
            scale_y: Y轴缩放比例
            origin: 父级左上角（目标像素坐标）

        Returns:
            合成后的画布
        """
        if not element.visible or element.opacity <= 0:
            return canvas

        left = origin[0] + element.x * scale_x
        top = origin[1] + element.y * scale_y
        layer = Image.new("RGBA", canvas.size, TRANSPARENT)

        try:
            if isinstance(element, GroupElement):
                for child in element.elements:
                    layer = self._paint(layer, child, scale_x, scale_y, (left, top))
            elif isinstance(element, TextElement):
                layer = self._paint_text(layer, element, left, top, scale_x, scale_y)
            elif isinstance(element, RectangleElement):
                self._paint_rectangle(layer, element, left, top, scale_x, scale_y)
            elif isinstance(element, EllipseElement):
                self._paint_ellipse(layer, element, left, top, scale_x, scale_y)
            elif isinstance(element, ImageElement):
                self._paint_image(layer, element, left, top, scale_x, scale_y)
            elif isinstance(element, IconElement):
                self._paint_icon(layer, element, left, top, scale_x, scale_y)
            elif isinstance(element, CircleFrameElement):
                layer = self._paint_frame(layer, element, left, top, scale_x, scale_y)
        except (ValueError, OSError) as e:
            raise LayoutError(element.id, str(e)) from e

        layer = apply_opacity(layer, element.opacity)
        if element.rotation:
            center = (left + element.width * scale_x / 2, top + element.height * scale_y / 2)
            # PIL 逆时针为正
            layer = layer.rotate(-element.rotation, resample=Image.Resampling.BICUBIC, center=center)
        return Image.alpha_composite(canvas, layer)

    def _paint_text(
        self,
        layer: Image.Image,
        element: TextElement,
        left: float,
        top: float,
        scale_x: float,
        scale_y: float,
    ) -> Image.Image:
        if not element.content:
            return layer

        avg_scale = (scale_x + scale_y) / 2
        px = _font_px(element.font_size * avg_scale)
        font = self._font(element, px)
        spacing = element.letter_spacing * avg_scale
        box_width = element.width * scale_x

        lines = element.content.split("\n")
        line_widths = [self._line_width(font, line, spacing) for line in lines]
        block_width = max(line_widths, default=0.0)
        line_advance = px * element.line_height

        # 文字块起点：origin=center 时整体在文本框内居中
        block_left = left
        if element.origin == "center":
            block_left = left + (box_width - block_width) / 2

        positions: list[tuple[float, float]] = []
        for i, line_width in enumerate(line_widths):
            if element.align == TextAlign.CENTER:
                x = left + (box_width - line_width) / 2
            elif element.align == TextAlign.RIGHT:
                x = left + box_width - line_width
            else:
                x = block_left
            positions.append((x, top + i * line_advance))

        stroke = self.effective_stroke(element)
        stroke_px = 0
        stroke_fill = None
        if stroke is not None and stroke.width > 0:
            stroke_px = max(1, int(round(stroke.width * avg_scale)))
            stroke_fill = parse_color(stroke.color)

        # 背景
        if element.background_color:
            padding = element.background_padding * avg_scale
            x0 = min(x for x, _ in positions)
            x1 = max(x + w for (x, _), w in zip(positions, line_widths))
            block_height = line_advance * (len(lines) - 1) + px
            ImageDraw.Draw(layer).rectangle(
                (x0 - padding, top - padding, x1 + padding, top + block_height + padding),
                fill=parse_color(element.background_color),
            )

        # 投影
        shadow = self.effective_shadow(element)
        if shadow is not None:
            shadow_layer = Image.new("RGBA", layer.size, TRANSPARENT)
            shadow_draw = ImageDraw.Draw(shadow_layer)
            shadow_color = parse_color(shadow.color)
            dx = shadow.offset_x * avg_scale
            dy = shadow.offset_y * avg_scale
            for (x, y), line in zip(positions, lines):
                self._draw_line(
                    shadow_draw, (x + dx, y + dy), line, font, shadow_color, spacing,
                    stroke_px, shadow_color if stroke_px else None,
                )
            if shadow.blur > 0:
                shadow_layer = shadow_layer.filter(ImageFilter.GaussianBlur(shadow.blur * avg_scale / 2))
            layer = Image.alpha_composite(layer, shadow_layer)

        draw = ImageDraw.Draw(layer)
        fill = parse_color(element.color)
        for (x, y), line in zip(positions, lines):
            self._draw_line(draw, (x, y), line, font, fill, spacing, stroke_px, stroke_fill)
        return layer

    def _draw_line(
        self,
        draw: ImageDraw.ImageDraw,
        xy: tuple[float, float],
        line: str,
        font: ImageFont.FreeTypeFont,
        fill: tuple,
        spacing: float,
        stroke_px: int,
        stroke_fill: Optional[tuple],
    ) -> None:
        if not line:
            return
        x, y = xy
        if not spacing:
            draw.text((x, y), line, font=font, fill=fill, anchor="la",
                      stroke_width=stroke_px, stroke_fill=stroke_fill)
            return
        # 字间距：逐字绘制
        for char in line:
            draw.text((x, y), char, font=font, fill=fill, anchor="la",
                      stroke_width=stroke_px, stroke_fill=stroke_fill)
            x += font.getlength(char) + spacing

    @staticmethod
    def _line_width(font: ImageFont.FreeTypeFont, line: str, spacing: float) -> float:
        if not line:
            return 0.0
        if not spacing:
            return float(font.getlength(line))
        return sum(font.getlength(char) for char in line) + spacing * (len(line) - 1)

    def _paint_rectangle(
        self,
        layer: Image.Image,
        element: RectangleElement,
        left: float,
        top: float,
        scale_x: float,
        scale_y: float,
    ) -> None:
        avg_scale = (scale_x + scale_y) / 2
        box = (left, top, left + element.width * scale_x, top + element.height * scale_y)
        fill, outline, width = self._shape_paint(element.fill, element.stroke, element.stroke_width, avg_scale)
        draw = ImageDraw.Draw(layer)

        radius = element.corner_radius * avg_scale
        if radius > 0:
            radius = min(radius, (box[2] - box[0]) / 2, (box[3] - box[1]) / 2)
            draw.rounded_rectangle(box, radius, fill=fill, outline=outline, width=width)
        else:
            draw.rectangle(box, fill=fill, outline=outline, width=width)

    def _paint_ellipse(
        self,
        layer: Image.Image,
        element: EllipseElement,
        left: float,
        top: float,
        scale_x: float,
        scale_y: float,
    ) -> None:
        avg_scale = (scale_x + scale_y) / 2
        box = (left, top, left + element.width * scale_x, top + element.height * scale_y)
        fill, outline, width = self._shape_paint(element.fill, element.stroke, element.stroke_width, avg_scale)
        ImageDraw.Draw(layer).ellipse(box, fill=fill, outline=outline, width=width)

    @staticmethod
    def _shape_paint(
        fill: Optional[str],
        stroke: Optional[str],
        stroke_width: float,
        avg_scale: float,
    ) -> tuple[Optional[tuple], Optional[tuple], int]:
        fill_color = parse_color(fill) if fill else None
        outline_color = None
        outline_width = 0
        if stroke and stroke_width > 0:
            outline_color = parse_color(stroke)
            outline_width = max(1, int(round(stroke_width * avg_scale)))
        return fill_color, outline_color, outline_width

    def _paint_image(
        self,
        layer: Image.Image,
        element: ImageElement,
        left: float,
        top: float,
        scale_x: float,
        scale_y: float,
    ) -> None:
        if not element.src:
            logger.debug(f"图片元素没有来源，跳过: {element.id}")
            return

        target = (
            max(1, int(round(element.width * scale_x))),
            max(1, int(round(element.height * scale_y))),
        )
        sprite = _fit_image(self._images[element.src], target, element.fit)

        if element.clip is not None:
            clip = scale_clip(element.clip, (scale_x + scale_y) / 2)
            window = clip_center_on_canvas((target[0] / 2, target[1] / 2), clip)
            sprite = _mask_circle(sprite, window, clip.radius)

        layer.paste(sprite, (int(round(left)), int(round(top))), sprite)

    def _paint_icon(
        self,
        layer: Image.Image,
        element: IconElement,
        left: float,
        top: float,
        scale_x: float,
        scale_y: float,
    ) -> None:
        svg = element.svg.encode("utf-8") if element.svg else self._svgs[element.src]
        target = (
            max(1, int(round(element.width * scale_x))),
            max(1, int(round(element.height * scale_y))),
        )
        sprite = rasterize_svg(svg, target, source=element.src or element.id)
        if element.color:
            sprite = _tint(sprite, parse_color(element.color))
        layer.paste(sprite, (int(round(left)), int(round(top))), sprite)

    def _paint_frame(
        self,
        layer: Image.Image,
        element: CircleFrameElement,
        left: float,
        top: float,
        scale_x: float,
        scale_y: float,
    ) -> Image.Image:
        avg_scale = (scale_x + scale_y) / 2
        center = frame_center(left, top, element.width, element.height, scale_x, scale_y)
        r = element.radius * avg_scale
        circle_box = (center[0] - r, center[1] - r, center[0] + r, center[1] + r)

        if not element.has_image:
            fill, outline, width = self._shape_paint(
                element.fill, element.stroke, element.stroke_width, avg_scale
            )
            ImageDraw.Draw(layer).ellipse(circle_box, fill=fill, outline=outline, width=width)
            return layer

        scale = element.image_scale * avg_scale
        size = (
            max(1, int(round(element.natural_width * scale))),
            max(1, int(round(element.natural_height * scale))),
        )
        sprite = self._images[element.image_src].resize(size, RESAMPLE)

        # 裁剪圆以图片中心为原点，图片平移后窗口仍落在相框中心
        clip = scale_clip(frame_clip(element), avg_scale)
        image_center = to_canvas(offset_for_clip(clip), center)
        window = clip_center_on_canvas(image_center, clip)
        image_left, image_top = center_to_top_left(image_center, size[0], size[1])
        placed = Image.new("RGBA", layer.size, TRANSPARENT)
        placed.paste(sprite, (int(round(image_left)), int(round(image_top))), sprite)
        placed = _mask_circle(placed, window, clip.radius)
        return Image.alpha_composite(layer, placed)


# ===================
# 图片处理
# ===================


def _fit_image(image: Image.Image, target_size: tuple[int, int], fit: ImageFit) -> Image.Image:
    """根据适应模式调整图片大小.

    Args:
        image: 原图片
        target_size: 目标尺寸
        fit: 适应模式

    Returns:
        恰好为目标尺寸的 RGBA 图片
    """
    target_w, target_h = target_size
    if fit == ImageFit.STRETCH:
        return image.resize((target_w, target_h), RESAMPLE)

    img_ratio = image.width / image.height
    target_ratio = target_w / target_h

    if fit == ImageFit.CONTAIN:
        # 完整显示，居中留白
        if img_ratio > target_ratio:
            new_w, new_h = target_w, max(1, int(target_w / img_ratio))
        else:
            new_w, new_h = max(1, int(target_h * img_ratio)), target_h
        resized = image.resize((new_w, new_h), RESAMPLE)
        result = Image.new("RGBA", target_size, TRANSPARENT)
        result.paste(resized, ((target_w - new_w) // 2, (target_h - new_h) // 2), resized)
        return result

    # 填满区域，居中裁剪
    if img_ratio > target_ratio:
        new_w, new_h = max(target_w, int(math.ceil(target_h * img_ratio))), target_h
    else:
        new_w, new_h = target_w, max(target_h, int(math.ceil(target_w / img_ratio)))
    resized = image.resize((new_w, new_h), RESAMPLE)
    x = (new_w - target_w) // 2
    y = (new_h - target_h) // 2
    return resized.crop((x, y, x + target_w, y + target_h))


def _mask_circle(image: Image.Image, center: tuple[float, float], radius: float) -> Image.Image:
    """用圆形遮罩裁剪图片（圆外完全透明）."""
    mask = Image.new("L", image.size, 0)
    cx, cy = center
    ImageDraw.Draw(mask).ellipse((cx - radius, cy - radius, cx + radius, cy + radius), fill=255)
    result = image.copy()
    result.putalpha(ImageChops.multiply(image.getchannel("A"), mask))
    return result


def _tint(image: Image.Image, color: tuple[int, int, int, int]) -> Image.Image:
    """保留 alpha，把所有像素染成指定颜色."""
    tinted = Image.new("RGBA", image.size, color[:3] + (255,))
    alpha = image.getchannel("A")
    if color[3] < 255:
        alpha = alpha.point(lambda p: p * color[3] // 255)
    tinted.putalpha(alpha)
    return tinted


def rasterize_svg(svg: bytes, size: tuple[int, int], source: str = "svg") -> Image.Image:
    """用 cairosvg 把 SVG 栅格化为指定尺寸的 RGBA 图片.

    Raises:
        AssetLoadError: SVG 无法解析或栅格化
    """
    import cairosvg

    try:
        png = cairosvg.svg2png(bytestring=svg, output_width=size[0], output_height=size[1])
        image = Image.open(io.BytesIO(png))
        image.load()
    except Exception as e:
        raise AssetLoadError(source, f"SVG 栅格化失败: {e}") from e
    image = image.convert("RGBA")
    if image.size != size:
        image = image.resize(size, RESAMPLE)
    return image
