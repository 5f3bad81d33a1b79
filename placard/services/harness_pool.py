"""渲染实例池.

有界池：按需创建实例直至 ``pool_size``，之后的借出在 ``acquire_timeout`` 内
等待归还。归还时先 ``reset()``，保证下一位使用者拿到干净的实例。
"""

from __future__ import annotations

import queue
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from placard.services.render_harness import RenderHarness
from placard.utils.constants import DEFAULT_ACQUIRE_TIMEOUT, DEFAULT_POOL_SIZE
from placard.utils.exceptions import PoolClosedError, PoolError, PoolExhaustedError
from placard.utils.logger import setup_logger

logger = setup_logger(__name__)

HarnessFactory = Callable[[int], RenderHarness]


class HarnessPool:
    """渲染实例池.

    线程安全。

    Attributes:
        pool_size: 最大实例数
        acquire_timeout: 借出等待超时（秒）

    Example:
        >>> pool = HarnessPool(lambda i: RenderHarness(harness_id=i), pool_size=2)
        >>> with pool.harness() as harness:
        ...     image = harness.render(document)
        >>> pool.shutdown()
    """

    def __init__(
        self,
        factory: HarnessFactory,
        pool_size: int = DEFAULT_POOL_SIZE,
        acquire_timeout: float = DEFAULT_ACQUIRE_TIMEOUT,
    ) -> None:
        """初始化渲染实例池.

        Args:
            factory: 实例工厂，参数为实例编号
            pool_size: 最大实例数
            acquire_timeout: 借出等待超时（秒）
        """
        if pool_size < 1:
            raise ValueError(f"pool_size 必须为正数: {pool_size}")
        self._factory = factory
        self.pool_size = pool_size
        self.acquire_timeout = acquire_timeout

        self._idle: queue.LifoQueue[RenderHarness] = queue.LifoQueue()
        self._all: list[RenderHarness] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def is_closed(self) -> bool:
        """池是否已关闭."""
        return self._closed

    @property
    def size(self) -> int:
        """已创建的实例数."""
        with self._lock:
            return len(self._all)

    @property
    def idle_count(self) -> int:
        """空闲实例数."""
        return self._idle.qsize()

    def checkout(self, timeout: Optional[float] = None) -> RenderHarness:
        """借出一个实例.

        优先复用空闲实例；未达上限时新建；否则等待归还。

        Args:
            timeout: 等待超时，默认 ``acquire_timeout``

        Returns:
            渲染实例

        Raises:
            PoolClosedError: 池已关闭
            PoolExhaustedError: 超时未获取到实例
            PoolError: 新实例启动失败
        """
        if self._closed:
            raise PoolClosedError()

        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass

        with self._lock:
            if self._closed:
                raise PoolClosedError()
            if len(self._all) < self.pool_size:
                try:
                    harness = self._factory(len(self._all))
                except Exception as e:
                    logger.error(f"渲染实例启动失败: {e}")
                    raise PoolError(f"渲染实例启动失败: {e}") from e
                self._all.append(harness)
                logger.debug(f"创建渲染实例 #{harness.harness_id} ({len(self._all)}/{self.pool_size})")
                return harness

        wait = self.acquire_timeout if timeout is None else timeout
        try:
            harness = self._idle.get(timeout=wait)
        except queue.Empty:
            raise PoolExhaustedError(wait) from None

        if self._closed:
            raise PoolClosedError()
        return harness

    def checkin(self, harness: RenderHarness) -> None:
        """归还实例.

        归还前执行 ``reset()``；池关闭后归还的实例直接释放。
        """
        try:
            harness.reset()
        except Exception as e:
            # 无法复位的实例不再放回池中
            logger.error(f"渲染实例 #{harness.harness_id} 复位失败，已丢弃: {e}")
            with self._lock:
                if harness in self._all:
                    self._all.remove(harness)
            raise

        if self._closed:
            harness.close()
            return
        self._idle.put(harness)

    @contextmanager
    def harness(self, timeout: Optional[float] = None) -> Iterator[RenderHarness]:
        """借出实例的上下文管理器，退出时自动归还."""
        harness = self.checkout(timeout)
        try:
            yield harness
        finally:
            self.checkin(harness)

    def shutdown(self) -> None:
        """关闭池，释放所有实例.

        之后的借出抛出 PoolClosedError。释放失败会记录日志并在全部释放后重新抛出。
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            harnesses = list(self._all)
            self._all.clear()

        while True:
            try:
                self._idle.get_nowait()
            except queue.Empty:
                break

        first_error: Optional[Exception] = None
        for harness in harnesses:
            try:
                harness.close()
            except Exception as e:
                logger.error(f"关闭渲染实例 #{harness.harness_id} 失败: {e}")
                if first_error is None:
                    first_error = e

        logger.info(f"渲染实例池已关闭，释放 {len(harnesses)} 个实例")
        if first_error is not None:
            raise first_error
