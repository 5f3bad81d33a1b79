"""圆形相框操作单元测试."""

import pytest

from placard.core.circle_frame import (
    detach_frame_image,
    find_frame_at,
    frame_clip,
    frame_image_center,
    place_image_in_frame,
    point_in_frame,
    remove_frame_image,
    resize_frame,
    set_frame_image_offset,
    set_frame_image_scale,
)
from placard.models.scene_document import CircleFrameElement, RectangleElement


# ===================
# Fixtures
# ===================


@pytest.fixture
def empty_frame() -> CircleFrameElement:
    """位于 (100, 100)、半径 100 的空相框."""
    return CircleFrameElement(id="frame", x=100, y=100, radius=100)


@pytest.fixture
def filled_frame(empty_frame) -> CircleFrameElement:
    """装入 400x200 图片的相框."""
    return place_image_in_frame(empty_frame, "photo.png", 400, 200)


# ===================
# 测试
# ===================


class TestPlaceImage:
    """测试装图."""

    def test_cover_scale_and_centered(self, filled_frame):
        """测试以覆盖比例居中装图."""
        assert filled_frame.has_image
        assert filled_frame.image_src == "photo.png"
        assert filled_frame.image_scale == 1.0
        assert (filled_frame.image_offset_x, filled_frame.image_offset_y) == (0, 0)
        assert (filled_frame.x, filled_frame.y) == (100, 100)

    def test_input_unchanged(self, empty_frame, filled_frame):
        """测试不修改输入相框."""
        assert not empty_frame.has_image

    def test_radius_from_short_side(self):
        """测试半径取渲染尺寸短边的一半."""
        frame = CircleFrameElement(radius=100, width=300, height=120)
        placed = place_image_in_frame(frame, "a.png", 100, 100)
        assert placed.radius == 60
        assert placed.image_scale == pytest.approx(1.2)


class TestAdjustImage:
    """测试平移与缩放."""

    def test_scale_clamped(self, filled_frame):
        """测试缩放不低于覆盖比例."""
        assert set_frame_image_scale(filled_frame, 0.5).image_scale == 1.0
        assert set_frame_image_scale(filled_frame, 2.5).image_scale == 2.5

    def test_offset(self, filled_frame):
        """测试平移后图片中心与裁剪圆."""
        moved = set_frame_image_offset(filled_frame, 30, -10)

        assert frame_image_center(moved) == (230, 190)
        clip = frame_clip(moved)
        assert clip.radius == 100
        assert (clip.offset_x, clip.offset_y) == (-30, 10)

    def test_empty_frame_unchanged(self, empty_frame):
        """测试空相框不受影响."""
        assert set_frame_image_scale(empty_frame, 3) is empty_frame
        assert set_frame_image_offset(empty_frame, 1, 1) is empty_frame
        assert frame_clip(empty_frame) is None


class TestResizeAndRemove:
    """测试改尺寸与移除."""

    def test_resize_keeps_center(self, filled_frame):
        """测试改半径保持中心并重新计算覆盖比例."""
        moved = set_frame_image_offset(filled_frame, 20, 20)
        resized = resize_frame(moved, 50)

        assert resized.frame_center == filled_frame.frame_center
        assert (resized.width, resized.height) == (100, 100)
        # max(100 / 400, 100 / 200)
        assert resized.image_scale == 0.5
        assert (resized.image_offset_x, resized.image_offset_y) == (0, 0)

    def test_remove(self, filled_frame):
        """测试移除图片恢复空相框."""
        removed = remove_frame_image(filled_frame)

        assert not removed.has_image
        assert removed.image_src is None
        assert (removed.x, removed.y, removed.radius) == (100, 100, 100)

    def test_detach(self, filled_frame):
        """测试拆出独立图片."""
        frame, image = detach_frame_image(filled_frame)

        assert not frame.has_image
        assert image.src == "photo.png"
        assert (image.x, image.y) == (320, 100)
        assert (image.width, image.height) == (400, 200)

    def test_detach_limits_size(self, empty_frame):
        """测试拆出的图片最长边受限."""
        frame = place_image_in_frame(empty_frame, "big.png", 1600, 800)
        _, image = detach_frame_image(frame, max_size=400)
        assert (image.width, image.height) == (400, 200)

    def test_detach_empty(self, empty_frame):
        """测试空相框无图片可拆."""
        frame, image = detach_frame_image(empty_frame)
        assert frame is empty_frame
        assert image is None


class TestHitTest:
    """测试命中检测."""

    def test_point_in_frame(self, empty_frame):
        """测试点是否在相框圆内."""
        assert point_in_frame(empty_frame, (200, 200))
        assert not point_in_frame(empty_frame, (105, 105))

    def test_find_topmost_empty(self, empty_frame, filled_frame):
        """测试查找最上层空相框."""
        lower = empty_frame.model_copy(update={"id": "lower"})
        elements = [lower, RectangleElement(), filled_frame]

        assert find_frame_at(elements, (200, 200)).id == "lower"
        assert find_frame_at(elements, (200, 200), empty_only=False) is filled_frame
        assert find_frame_at(elements, (0, 0)) is None
