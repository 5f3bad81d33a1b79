"""解码后图片的 LRU 缓存.

多个渲染实例共享同一缓存，按估算的内存占用淘汰最久未使用的图片。
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from placard.utils.constants import DEFAULT_ASSET_CACHE_MB
from placard.utils.logger import setup_logger

logger = setup_logger(__name__)

# 每像素字节数
_MODE_BYTES = {
    "1": 0.125,
    "L": 1,
    "P": 1,
    "LA": 2,
    "RGB": 3,
    "RGBA": 4,
    "CMYK": 4,
    "I": 4,
    "F": 4,
}


@dataclass
class CacheStats:
    """缓存统计信息.

    Attributes:
        hits: 命中次数
        misses: 未命中次数
        current_size: 当前缓存大小（字节）
        max_size: 最大缓存大小（字节）
        item_count: 缓存项数量
    """

    hits: int = 0
    misses: int = 0
    current_size: int = 0
    max_size: int = 0
    item_count: int = 0

    @property
    def hit_rate(self) -> float:
        """缓存命中率（百分比）."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0


class ImageCache:
    """图片 LRU 缓存.

    ``get`` 返回副本，调用方可以随意修改。``max_size_mb`` 为 0 时不缓存。

    Example:
        >>> cache = ImageCache(max_size_mb=64)
        >>> cache.put("https://cdn.example.com/a.png", image)
        >>> cached = cache.get("https://cdn.example.com/a.png")
    """

    def __init__(self, max_size_mb: int = DEFAULT_ASSET_CACHE_MB, max_items: int = 256) -> None:
        self._max_size_bytes = max_size_mb * 1024 * 1024
        self._max_items = max_items
        self._cache: OrderedDict[str, tuple[Image.Image, int]] = OrderedDict()
        self._current_size = 0
        self._hits = 0
        self._misses = 0
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Image.Image]:
        """获取缓存的图片副本，不存在返回 None."""
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                self._hits += 1
                image, _ = self._cache[key]
                return image.copy()
            self._misses += 1
            return None

    def put(self, key: str, image: Image.Image) -> None:
        """添加图片到缓存.

        Args:
            key: 缓存键（资源来源）
            image: 已解码的图片
        """
        with self._lock:
            image_size = estimate_image_size(image)
            if image_size > self._max_size_bytes:
                logger.debug(f"图片太大，不缓存: {key[:80]} ({image_size} bytes)")
                return

            if key in self._cache:
                self._remove(key)

            while self._cache and (
                self._current_size + image_size > self._max_size_bytes
                or len(self._cache) >= self._max_items
            ):
                self._remove(next(iter(self._cache)))

            self._cache[key] = (image.copy(), image_size)
            self._current_size += image_size

    def _remove(self, key: str) -> None:
        _, size = self._cache.pop(key)
        self._current_size -= size

    def invalidate(self, key: str) -> bool:
        """使缓存项失效，返回是否存在."""
        with self._lock:
            if key in self._cache:
                self._remove(key)
                return True
            return False

    def clear(self) -> None:
        """清空缓存."""
        with self._lock:
            self._cache.clear()
            self._current_size = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> CacheStats:
        """获取缓存统计信息."""
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                current_size=self._current_size,
                max_size=self._max_size_bytes,
                item_count=len(self._cache),
            )


def estimate_image_size(image: Image.Image) -> int:
    """按像素数与模式估算图片内存占用（字节）."""
    width, height = image.size
    return int(width * height * _MODE_BYTES.get(image.mode, 4))
