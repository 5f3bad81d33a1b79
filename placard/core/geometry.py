"""几何计算工具.

圆形相框与图片合成用到的纯数值函数：覆盖比例、以中心为原点的裁剪区域、
相框局部坐标与画布坐标之间的转换。

约定：
    - 相框由左上角 ``(left, top)`` 与渲染后的宽高描述，中心为
      ``(left + width / 2, top + height / 2)``。
    - 图片平移 ``(offset_x, offset_y)`` 时，裁剪圆在图片局部坐标中位于
      ``(-offset_x, -offset_y)``；平移图片与更新裁剪是同一增量的互逆操作。
"""

from __future__ import annotations

import math

from placard.models.scene_document import ClipRegion
from placard.utils.exceptions import GeometryError

Point = tuple[float, float]

# 浮点比较容差
EPSILON = 1e-9


def cover_scale(diameter: float, image_width: float, image_height: float) -> float:
    """计算覆盖比例.

    图片按该比例缩放后两个轴都不小于直径，可完整覆盖圆形或方形区域，
    其中一个轴可能溢出。

    Args:
        diameter: 相框直径
        image_width: 图片原始宽度
        image_height: 图片原始高度

    Returns:
        ``max(d / w, d / h)``

    Raises:
        GeometryError: 参数非正数
    """
    if diameter <= 0 or image_width <= 0 or image_height <= 0:
        raise GeometryError(
            f"覆盖比例参数必须为正数: d={diameter}, w={image_width}, h={image_height}"
        )
    return max(diameter / image_width, diameter / image_height)


def clamp_to_cover(
    scale: float,
    diameter: float,
    image_width: float,
    image_height: float,
) -> float:
    """将缩放比例限制为不小于覆盖比例."""
    return max(scale, cover_scale(diameter, image_width, image_height))


def scaled_size(image_width: float, image_height: float, scale: float) -> tuple[float, float]:
    """缩放后的图片尺寸."""
    return (image_width * scale, image_height * scale)


# ===================
# 裁剪区域
# ===================


def clip_for_offset(radius: float, offset_x: float, offset_y: float) -> ClipRegion:
    """根据图片平移量构造裁剪圆.

    Args:
        radius: 裁剪半径
        offset_x: 图片水平平移量
        offset_y: 图片垂直平移量

    Returns:
        以图片中心为原点、位于 ``(-offset_x, -offset_y)`` 的裁剪圆
    """
    if radius <= 0:
        raise GeometryError(f"裁剪半径必须为正数: {radius}")
    # 0.0 与 -0.0 统一
    return ClipRegion(radius=radius, offset_x=-offset_x + 0.0, offset_y=-offset_y + 0.0)


def offset_for_clip(clip: ClipRegion) -> Point:
    """从裁剪圆反推图片平移量（``clip_for_offset`` 的逆运算）."""
    return (-clip.offset_x + 0.0, -clip.offset_y + 0.0)


def scale_clip(clip: ClipRegion, factor: float) -> ClipRegion:
    """按输出缩放比例缩放裁剪圆（半径与偏移同比例）."""
    if factor <= 0:
        raise GeometryError(f"缩放比例必须为正数: {factor}")
    return ClipRegion(
        radius=clip.radius * factor,
        offset_x=clip.offset_x * factor,
        offset_y=clip.offset_y * factor,
    )


def clip_center_on_canvas(host_center: Point, clip: ClipRegion) -> Point:
    """裁剪圆在画布空间中的圆心."""
    return (host_center[0] + clip.offset_x, host_center[1] + clip.offset_y)


# ===================
# 坐标转换
# ===================


def frame_center(
    left: float,
    top: float,
    width: float,
    height: float,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
) -> Point:
    """计算相框中心.

    Args:
        left: 左上角X
        top: 左上角Y
        width: 未缩放宽度
        height: 未缩放高度
        scale_x: 水平缩放
        scale_y: 垂直缩放

    Returns:
        画布空间中心点
    """
    return (left + width * scale_x / 2, top + height * scale_y / 2)


def frame_radius(width: float, height: float, scale_x: float = 1.0, scale_y: float = 1.0) -> float:
    """相框渲染尺寸对应的半径（取短边）."""
    return min(width * scale_x, height * scale_y) / 2


def to_frame_local(point: Point, center: Point) -> Point:
    """画布坐标转换为以相框中心为原点的局部坐标."""
    return (point[0] - center[0], point[1] - center[1])


def to_canvas(point: Point, center: Point) -> Point:
    """相框局部坐标转换回画布坐标."""
    return (point[0] + center[0], point[1] + center[1])


def center_to_top_left(center: Point, width: float, height: float) -> Point:
    """中心点转换为左上角."""
    return (center[0] - width / 2, center[1] - height / 2)


def point_in_circle(point: Point, center: Point, radius: float) -> bool:
    """判断点是否在圆内（含边界）."""
    dx = point[0] - center[0]
    dy = point[1] - center[1]
    return dx * dx + dy * dy <= radius * radius + EPSILON


def rotate_point(point: Point, center: Point, degrees: float) -> Point:
    """绕中心顺时针旋转点（屏幕坐标系，Y 轴向下）."""
    if not degrees:
        return point
    rad = math.radians(degrees)
    cos_a = math.cos(rad)
    sin_a = math.sin(rad)
    dx, dy = to_frame_local(point, center)
    return to_canvas((dx * cos_a - dy * sin_a, dx * sin_a + dy * cos_a), center)


def points_close(a: Point, b: Point, tolerance: float = 1e-6) -> bool:
    """两个点是否在容差内相等."""
    return math.isclose(a[0], b[0], abs_tol=tolerance) and math.isclose(
        a[1], b[1], abs_tol=tolerance
    )
