"""辅助函数模块.

提供各种通用辅助函数。
"""

from __future__ import annotations

import hashlib
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Optional

from placard.utils.exceptions import RenderTimeoutError

# 短 ID 字母表（URL 安全）
ID_ALPHABET = string.ascii_letters + string.digits + "_-"


def generate_prefixed_id(prefix: str, length: int = 10) -> str:
    """生成带前缀的随机 ID，例如 ``tmpl_V1StGXR8_Z``.

    Args:
        prefix: ID 前缀
        length: 随机部分长度

    Returns:
        ID 字符串
    """
    return prefix + "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def calculate_bytes_hash(data: bytes, algorithm: str = "sha256") -> str:
    """计算字节数据哈希值.

    Args:
        data: 字节数据
        algorithm: 哈希算法 (md5, sha256)

    Returns:
        哈希值字符串
    """
    return hashlib.new(algorithm, data).hexdigest()


def utc_now() -> datetime:
    """获取当前 UTC 时间（不带时区信息，便于 SQLite 存储）."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Deadline:
    """渲染截止时间.

    ``timeout`` 为 None 时永不过期。

    Example:
        >>> deadline = Deadline(5.0)
        >>> deadline.check("fonts")
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout
        self._expires_at = time.monotonic() + timeout if timeout else None

    def remaining(self) -> Optional[float]:
        """剩余秒数，无截止时间返回 None."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        """是否已过期."""
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def check(self, stage: str) -> None:
        """过期时抛出 RenderTimeoutError.

        Args:
            stage: 当前阶段名称，写入错误信息
        """
        if self.expired:
            raise RenderTimeoutError(self.timeout or 0.0, stage)
