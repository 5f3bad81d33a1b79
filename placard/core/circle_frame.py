"""圆形相框操作.

相框的装图、平移、缩放、改尺寸、移除与命中测试。所有操作都是纯函数，
返回新的元素实例，不修改输入。
"""

from __future__ import annotations

from typing import Optional

from placard.core.geometry import (
    Point,
    clamp_to_cover,
    clip_for_offset,
    cover_scale,
    point_in_circle,
)
from placard.models.scene_document import (
    CircleFrameElement,
    ClipRegion,
    ImageElement,
)


def place_image_in_frame(
    frame: CircleFrameElement,
    image_src: str,
    natural_width: float,
    natural_height: float,
) -> CircleFrameElement:
    """把图片装入相框.

    保持相框的位置与尺寸不变；半径取渲染尺寸的短边一半，
    图片以覆盖比例居中，平移量归零。

    Args:
        frame: 相框
        image_src: 图片来源
        natural_width: 图片原始宽度
        natural_height: 图片原始高度

    Returns:
        装有图片的新相框
    """
    radius = min(frame.width, frame.height) / 2
    scale = cover_scale(radius * 2, natural_width, natural_height)
    return frame.model_copy(
        update={
            "radius": radius,
            "has_image": True,
            "image_src": image_src,
            "natural_width": float(natural_width),
            "natural_height": float(natural_height),
            "image_scale": scale,
            "image_offset_x": 0.0,
            "image_offset_y": 0.0,
        }
    )


def set_frame_image_offset(frame: CircleFrameElement, offset_x: float, offset_y: float) -> CircleFrameElement:
    """平移相框内的图片；空相框原样返回."""
    if not frame.has_image:
        return frame
    return frame.model_copy(update={"image_offset_x": offset_x, "image_offset_y": offset_y})


def set_frame_image_scale(frame: CircleFrameElement, scale: float) -> CircleFrameElement:
    """缩放相框内的图片，结果不低于覆盖比例；空相框原样返回."""
    if not frame.has_image:
        return frame
    final_scale = clamp_to_cover(
        scale, frame.diameter, frame.natural_width, frame.natural_height
    )
    return frame.model_copy(update={"image_scale": final_scale})


def resize_frame(frame: CircleFrameElement, new_radius: float) -> CircleFrameElement:
    """调整相框半径.

    保持相框中心不变；装有图片时按新直径重新计算覆盖比例并清零平移。
    """
    cx, cy = frame.frame_center
    diameter = new_radius * 2
    updates = {
        "radius": new_radius,
        "x": cx - new_radius,
        "y": cy - new_radius,
        "width": diameter,
        "height": diameter,
    }
    if frame.has_image:
        updates.update(
            image_scale=cover_scale(diameter, frame.natural_width, frame.natural_height),
            image_offset_x=0.0,
            image_offset_y=0.0,
        )
    return frame.model_copy(update=updates)


def remove_frame_image(frame: CircleFrameElement) -> CircleFrameElement:
    """移除相框内图片，恢复为同一位置的空相框."""
    return frame.model_copy(
        update={
            "has_image": False,
            "image_src": None,
            "natural_width": None,
            "natural_height": None,
            "image_scale": 1.0,
            "image_offset_x": 0.0,
            "image_offset_y": 0.0,
        }
    )


def detach_frame_image(
    frame: CircleFrameElement,
    max_size: float = 400.0,
    gap: float = 20.0,
) -> tuple[CircleFrameElement, Optional[ImageElement]]:
    """把图片从相框中拆出为独立图片元素.

    独立图片放在相框右侧 ``gap`` 处、与相框顶部对齐，最长边不超过 ``max_size``
    且不放大。

    Returns:
        (空相框, 独立图片)；相框本为空时图片为 None
    """
    if not frame.has_image:
        return frame, None
    scale = min(max_size / frame.natural_width, max_size / frame.natural_height, 1.0)
    image = ImageElement(
        x=frame.x + frame.width + gap,
        y=frame.y,
        width=frame.natural_width * scale,
        height=frame.natural_height * scale,
        src=frame.image_src,
    )
    return remove_frame_image(frame), image


def frame_clip(frame: CircleFrameElement) -> Optional[ClipRegion]:
    """相框内图片的裁剪圆（图片中心为原点）."""
    if not frame.has_image:
        return None
    return clip_for_offset(frame.radius, frame.image_offset_x, frame.image_offset_y)


def frame_image_center(frame: CircleFrameElement) -> Point:
    """相框内图片中心在画布空间的位置."""
    cx, cy = frame.frame_center
    return (cx + frame.image_offset_x, cy + frame.image_offset_y)


def point_in_frame(frame: CircleFrameElement, point: Point) -> bool:
    """点是否落在相框圆内."""
    return point_in_circle(point, frame.frame_center, frame.radius)


def find_frame_at(elements: list, point: Point, empty_only: bool = True) -> Optional[CircleFrameElement]:
    """查找位于指定坐标的最上层相框.

    Args:
        elements: 顶层元素列表（绘制顺序）
        point: 画布坐标
        empty_only: 是否只查找空相框

    Returns:
        命中的相框，未命中返回 None
    """
    for element in reversed(elements):
        if not isinstance(element, CircleFrameElement):
            continue
        if empty_only and element.has_image:
            continue
        if point_in_frame(element, point):
            return element
    return None
