"""几何计算单元测试."""

import pytest

from placard.core.geometry import (
    center_to_top_left,
    clamp_to_cover,
    clip_center_on_canvas,
    clip_for_offset,
    cover_scale,
    frame_center,
    frame_radius,
    offset_for_clip,
    point_in_circle,
    points_close,
    rotate_point,
    scale_clip,
    scaled_size,
    to_canvas,
    to_frame_local,
)
from placard.utils.exceptions import GeometryError


class TestCoverScale:
    """测试覆盖比例."""

    @pytest.mark.parametrize(
        "diameter,width,height,expected",
        [
            (200, 400, 200, 1.0),
            (200, 100, 100, 2.0),
            (100, 1000, 250, 0.4),
            (50, 50, 50, 1.0),
        ],
    )
    def test_values(self, diameter, width, height, expected):
        """测试覆盖比例取值."""
        assert cover_scale(diameter, width, height) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "diameter,width,height",
        [(200, 400, 200), (37, 1920, 1080), (300, 17, 900), (1, 3, 7)],
    )
    def test_covers_both_axes(self, diameter, width, height):
        """测试缩放后两个轴都不小于直径."""
        w, h = scaled_size(width, height, cover_scale(diameter, width, height))
        assert w >= diameter - 1e-9
        assert h >= diameter - 1e-9

    @pytest.mark.parametrize("args", [(0, 10, 10), (10, 0, 10), (10, 10, -1)])
    def test_non_positive(self, args):
        """测试非正数参数."""
        with pytest.raises(GeometryError):
            cover_scale(*args)

    def test_clamp(self):
        """测试低于覆盖比例时被抬高."""
        assert clamp_to_cover(0.1, 100, 100, 100) == 1.0
        assert clamp_to_cover(3.0, 100, 100, 100) == 3.0


class TestClipRegion:
    """测试以中心为原点的裁剪圆."""

    def test_clip_opposes_offset(self):
        """测试裁剪圆位于平移量的相反方向."""
        clip = clip_for_offset(50, 12, -8)
        assert (clip.offset_x, clip.offset_y) == (-12, 8)

    @pytest.mark.parametrize("offset", [(0.0, 0.0), (15.5, -3.25), (-100, 42)])
    def test_inverse(self, offset):
        """测试平移与裁剪互为逆运算."""
        assert offset_for_clip(clip_for_offset(30, *offset)) == offset

    def test_zero_offset_normalized(self):
        """测试零平移不产生 -0.0."""
        clip = clip_for_offset(10, 0.0, 0.0)
        assert str(clip.offset_x) == "0.0"

    def test_invalid_radius(self):
        """测试非正数半径."""
        with pytest.raises(GeometryError):
            clip_for_offset(0, 1, 1)

    def test_clip_center_on_canvas(self):
        """测试裁剪圆心转换到画布空间."""
        clip = clip_for_offset(10, 5, 5)
        assert clip_center_on_canvas((100, 100), clip) == (95, 95)

    def test_scale_clip(self):
        """测试裁剪圆随输出比例缩放."""
        clip = scale_clip(clip_for_offset(10, 4, -6), 2.0)
        assert (clip.radius, clip.offset_x, clip.offset_y) == (20, -8, 12)
        with pytest.raises(GeometryError):
            scale_clip(clip, 0)


class TestCoordinates:
    """测试坐标转换."""

    def test_frame_center_and_radius(self):
        """测试相框中心与半径."""
        assert frame_center(10, 20, 100, 60) == (60, 50)
        assert frame_center(0, 0, 100, 100, scale_x=2, scale_y=0.5) == (100, 25)
        assert frame_radius(100, 60) == 30

    @pytest.mark.parametrize("point", [(0, 0), (123.5, -7.25), (1e4, 3)])
    def test_local_round_trip(self, point):
        """测试画布与局部坐标往返."""
        center = (40.0, 60.0)
        assert points_close(to_canvas(to_frame_local(point, center), center), point)

    def test_center_to_top_left(self):
        """测试中心点转左上角."""
        assert center_to_top_left((50, 50), 20, 10) == (40, 45)

    def test_point_in_circle_boundary(self):
        """测试圆边界上的点算作圆内."""
        assert point_in_circle((10, 0), (0, 0), 10)
        assert not point_in_circle((10.01, 0), (0, 0), 10)

    def test_rotate_clockwise(self):
        """测试屏幕坐标系下顺时针旋转."""
        assert points_close(rotate_point((1, 0), (0, 0), 90), (0, 1))
        assert points_close(rotate_point((5, 5), (5, 5), 37), (5, 5))
        assert rotate_point((3, 4), (0, 0), 0) == (3, 4)
