"""渲染服务.

从渲染实例池借出实例，渲染场景文档，编码并写出图片文件，再归还实例。
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from placard.models.app_settings import Settings
from placard.models.scene_document import SceneDocument
from placard.services.asset_loader import AssetLoader
from placard.services.font_registry import FontRegistry
from placard.services.harness_pool import HarnessPool
from placard.services.render_harness import RenderHarness
from placard.utils.constants import SUPPORTED_OUTPUT_FORMATS
from placard.utils.exceptions import (
    PoolError,
    PoolExhaustedError,
    RenderError,
    RenderTimeoutError,
    UnsupportedFormatError,
)
from placard.utils.helpers import Deadline, calculate_bytes_hash
from placard.utils.image_utils import image_to_bytes, write_bytes
from placard.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class RenderResult:
    """单次渲染结果.

    Attributes:
        data: 编码后的图片字节
        path: 写出的文件路径，未写文件时为 None
        width: 图片宽度
        height: 图片高度
        format: 输出格式
    """

    data: bytes
    path: Optional[Path]
    width: int
    height: int
    format: str

    @property
    def size_bytes(self) -> int:
        """字节数."""
        return len(self.data)

    @property
    def digest(self) -> str:
        """编码后字节的 SHA-256."""
        return calculate_bytes_hash(self.data)


class RenderingService:
    """渲染服务.

    持有渲染实例池，启动时创建、关闭时释放；支持上下文管理器。

    Example:
        >>> with RenderingService(settings) as service:
        ...     result = service.render(document, substitutions={"name": "Ada"},
        ...                             output_path=Path("out/a.png"))
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        font_registry: Optional[FontRegistry] = None,
        asset_loader: Optional[AssetLoader] = None,
    ) -> None:
        """初始化渲染服务.

        Args:
            settings: 应用设置，默认使用内置默认值
            font_registry: 字体注册表，默认根据设置创建
            asset_loader: 资源加载器，默认根据设置创建
        """
        self._settings = settings or Settings()
        self._font_registry = font_registry or FontRegistry.from_settings(self._settings)
        self._owns_loader = asset_loader is None
        self._asset_loader = asset_loader or AssetLoader.from_settings(self._settings)
        self._pool = HarnessPool(
            self._create_harness,
            pool_size=self._settings.pool_size,
            acquire_timeout=self._settings.acquire_timeout,
        )
        logger.info(f"渲染服务初始化完成，实例池大小: {self._settings.pool_size}")

    def _create_harness(self, harness_id: int) -> RenderHarness:
        return RenderHarness(self._font_registry, self._asset_loader, harness_id)

    @property
    def pool(self) -> HarnessPool:
        """渲染实例池."""
        return self._pool

    @property
    def font_registry(self) -> FontRegistry:
        """字体注册表."""
        return self._font_registry

    @property
    def is_closed(self) -> bool:
        """服务是否已关闭."""
        return self._pool.is_closed

    # ===================
    # 渲染
    # ===================

    def render(
        self,
        document: SceneDocument,
        width: Optional[int] = None,
        height: Optional[int] = None,
        substitutions: Optional[Mapping[str, str]] = None,
        output_format: str = "png",
        output_path: Optional[Path] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> RenderResult:
        """渲染文档并编码.

        截止时间覆盖等待实例、渲染和写文件；过期后不会再写出文件。

        Args:
            document: 场景文档
            width: 目标宽度，默认画布宽度
            height: 目标高度，默认画布高度
            substitutions: 变量替换映射
            output_format: 输出格式 (png / jpeg)
            output_path: 输出文件路径，为空时不写文件
            timeout: 单次渲染截止时间（秒）
            deadline: 调用方已开始计时的截止时间，优先于 ``timeout``

        Returns:
            RenderResult

        Raises:
            UnsupportedFormatError: 不支持的输出格式
            PoolError: 无法获取渲染实例
            RenderTimeoutError: 超过截止时间
            RenderError: 渲染失败
        """
        output_format = output_format.lower()
        if output_format not in SUPPORTED_OUTPUT_FORMATS:
            raise UnsupportedFormatError(output_format)

        deadline = deadline or Deadline(timeout)
        harness = self._checkout(deadline)
        try:
            deadline.check("checkout")
            image = harness.render(document, substitutions, width, height, deadline=deadline)
            data = image_to_bytes(image, output_format, quality=self._settings.jpeg_quality)
            path = None
            if output_path is not None:
                deadline.check("write")
                path = write_bytes(data, output_path)
        except (RenderError, PoolError):
            raise
        except OSError as e:
            logger.error(f"[harness-{harness.harness_id}] 写出图片失败: {e}")
            raise RenderError(f"写出图片失败: {e}") from e
        except Exception as e:
            logger.exception(f"[harness-{harness.harness_id}] 渲染异常: {e}")
            raise RenderError(f"渲染异常: {e}") from e
        finally:
            self._pool.checkin(harness)

        return RenderResult(
            data=data,
            path=path,
            width=image.width,
            height=image.height,
            format=output_format,
        )

    def _checkout(self, deadline: Deadline) -> RenderHarness:
        """借出实例，等待时间不超过截止时间剩余部分."""
        wait = self._pool.acquire_timeout
        remaining = deadline.remaining()
        if remaining is not None:
            wait = min(wait, remaining)
        try:
            return self._pool.checkout(timeout=wait)
        except PoolExhaustedError:
            deadline.check("checkout")
            raise

    async def render_async(
        self,
        document: SceneDocument,
        width: Optional[int] = None,
        height: Optional[int] = None,
        substitutions: Optional[Mapping[str, str]] = None,
        output_format: str = "png",
        output_path: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> RenderResult:
        """在线程池中渲染，不阻塞事件循环.

        超时只影响本次调用：抛出 RenderTimeoutError，工作线程会在下一个
        检查点放弃并归还实例。

        Args:
            timeout: 超时秒数，默认使用设置中的 ``render_timeout``

        Returns:
            RenderResult
        """
        timeout = timeout if timeout is not None else self._settings.render_timeout
        # 截止时间在提交前开始计时，调用方放弃后工作线程不会再写出文件
        deadline = Deadline(timeout)
        loop = asyncio.get_running_loop()
        call = functools.partial(
            self.render,
            document,
            width,
            height,
            substitutions,
            output_format,
            output_path,
            deadline=deadline,
        )
        try:
            return await asyncio.wait_for(loop.run_in_executor(None, call), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"渲染超时 ({timeout:g}秒)")
            raise RenderTimeoutError(timeout) from None

    # ===================
    # 生命周期
    # ===================

    def shutdown(self) -> None:
        """关闭渲染实例池与资源加载器."""
        try:
            self._pool.shutdown()
        finally:
            if self._owns_loader:
                self._asset_loader.close()
        logger.info("渲染服务已关闭")

    def __enter__(self) -> "RenderingService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
