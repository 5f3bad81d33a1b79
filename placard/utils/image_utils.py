"""图片工具函数模块.

提供图片编码、保存、颜色解析等工具函数。
"""

from __future__ import annotations

import base64
import io
from pathlib import Path
from typing import Optional

from PIL import Image, ImageColor

from placard.utils.constants import DEFAULT_JPEG_QUALITY
from placard.utils.logger import setup_logger

logger = setup_logger(__name__)

RGBAColor = tuple[int, int, int, int]

# 输出格式到 PIL 格式名的映射
PIL_FORMATS = {
    "png": "PNG",
    "jpeg": "JPEG",
    "jpg": "JPEG",
}

TRANSPARENT: RGBAColor = (0, 0, 0, 0)


def parse_color(value: Optional[str], opacity: float = 1.0) -> RGBAColor:
    """解析 CSS 风格颜色字符串.

    支持 ``#rgb``、``#rrggbb``、``#rrggbbaa``、``rgb()``/``rgba()``
    以及 Pillow 识别的颜色名称。``None``、空串和 ``transparent`` 返回全透明。

    Args:
        value: 颜色字符串
        opacity: 额外的不透明度乘数 (0-1)

    Returns:
        RGBA 元组

    Raises:
        ValueError: 无法识别的颜色
    """
    if value is None:
        return TRANSPARENT
    text = value.strip().lower()
    if not text or text == "transparent":
        return TRANSPARENT

    if text.startswith("rgba(") and text.endswith(")"):
        # Pillow 不接受 CSS 的 0-1 浮点 alpha
        parts = [p.strip() for p in text[5:-1].split(",")]
        if len(parts) != 4:
            raise ValueError(f"无效的颜色: {value}")
        r, g, b = (int(float(p)) for p in parts[:3])
        a = float(parts[3])
        alpha = int(round(a * 255)) if a <= 1 else int(a)
        rgba = (r, g, b, alpha)
    else:
        rgba = ImageColor.getcolor(text, "RGBA")

    r, g, b, a = rgba
    return (r, g, b, int(round(a * max(0.0, min(1.0, opacity)))))


def apply_opacity(image: Image.Image, opacity: float) -> Image.Image:
    """按比例降低图片 alpha 通道.

    Args:
        image: RGBA 图片
        opacity: 不透明度 (0-1)

    Returns:
        处理后的图片
    """
    if opacity >= 1:
        return image
    image = ensure_rgba(image)
    alpha = image.getchannel("A").point(lambda p: int(p * opacity))
    image.putalpha(alpha)
    return image


def ensure_rgba(image: Image.Image) -> Image.Image:
    """确保图片为 RGBA 模式."""
    if image.mode != "RGBA":
        return image.convert("RGBA")
    return image


def ensure_rgb(image: Image.Image, background: tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """确保图片为 RGB 模式，透明区域以背景色填充."""
    if image.mode == "RGB":
        return image
    image = ensure_rgba(image)
    canvas = Image.new("RGB", image.size, background)
    canvas.paste(image, mask=image.getchannel("A"))
    return canvas


def image_to_bytes(
    image: Image.Image,
    output_format: str = "png",
    quality: int = DEFAULT_JPEG_QUALITY,
) -> bytes:
    """图片编码为字节数据.

    Args:
        image: PIL Image 对象
        output_format: 输出格式 (png / jpeg)
        quality: JPEG 质量

    Returns:
        图片字节数据
    """
    pil_format = PIL_FORMATS[output_format.lower()]
    buffer = io.BytesIO()
    if pil_format == "JPEG":
        ensure_rgb(image).save(buffer, format="JPEG", quality=quality)
    else:
        image.save(buffer, format="PNG")
    return buffer.getvalue()


def bytes_to_base64(data: bytes) -> str:
    """字节数据转 Base64 字符串."""
    return base64.b64encode(data).decode("utf-8")


def bytes_to_image(data: bytes) -> Image.Image:
    """字节数据转图片.

    Args:
        data: 图片字节数据

    Returns:
        已加载到内存的 PIL Image 对象
    """
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def write_bytes(data: bytes, path: Path | str) -> Path:
    """写入文件，必要时创建目录.

    Args:
        data: 字节数据
        path: 保存路径

    Returns:
        保存的文件路径
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    logger.debug(f"图片已保存: {path}")
    return path
