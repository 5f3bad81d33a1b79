"""图片与 SVG 资源加载.

支持本地文件路径、``file://``、``data:`` URL 以及 http(s) URL。
解码后的位图放入共享的 LRU 缓存；所有失败都转换为 AssetLoadError。
"""

from __future__ import annotations

import base64
import io
from pathlib import Path
from typing import Iterable, Optional, TYPE_CHECKING
from urllib.parse import unquote, unquote_to_bytes, urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from placard.utils.constants import DEFAULT_ASSET_CACHE_MB, DEFAULT_ASSET_TIMEOUT
from placard.utils.exceptions import AssetLoadError
from placard.utils.helpers import Deadline
from placard.utils.image_cache import ImageCache
from placard.utils.image_utils import ensure_rgba
from placard.utils.logger import setup_logger
from placard.utils.retry import retry

if TYPE_CHECKING:
    from placard.models.app_settings import Settings

logger = setup_logger(__name__)

# 远程资源大小上限
MAX_REMOTE_BYTES = 50 * 1024 * 1024


def _is_remote(src: str) -> bool:
    return src.startswith(("http://", "https://"))


class AssetLoader:
    """资源加载器.

    线程安全，可被多个渲染实例共享。

    Example:
        >>> loader = AssetLoader(timeout=10)
        >>> image = loader.load_image("https://cdn.example.com/avatar.png")
        >>> loader.close()
    """

    def __init__(
        self,
        timeout: float = DEFAULT_ASSET_TIMEOUT,
        cache_mb: int = DEFAULT_ASSET_CACHE_MB,
        http_client: Optional[httpx.Client] = None,
        allowed_roots: Optional[Iterable[Path | str]] = None,
        allowed_hosts: Optional[Iterable[str]] = None,
    ) -> None:
        """初始化加载器.

        Args:
            timeout: 远程下载超时（秒）
            cache_mb: 位图缓存大小（MB）
            http_client: 自定义 HTTP 客户端（测试时可注入 MockTransport）
            allowed_roots: 变量替换来源允许读取的本地目录，None 表示不限制
            allowed_hosts: 变量替换来源允许下载的主机名，None 表示不限制，``*`` 匹配任意主机
        """
        self._allowed_roots = (
            None if allowed_roots is None
            else [Path(root).expanduser().resolve() for root in allowed_roots]
        )
        self._allowed_hosts = (
            None if allowed_hosts is None
            else {host.strip().lower() for host in allowed_hosts}
        )
        self._timeout = timeout
        self._cache = ImageCache(max_size_mb=cache_mb)
        self._owns_client = http_client is None
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: "Settings") -> "AssetLoader":
        """根据应用设置创建加载器."""
        return cls(
            timeout=settings.asset_timeout,
            cache_mb=settings.asset_cache_mb,
            allowed_roots=settings.asset_roots,
            allowed_hosts=settings.asset_hosts,
        )

    @property
    def http_client(self) -> httpx.Client:
        """获取 HTTP 客户端（延迟创建）."""
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=self._timeout, follow_redirects=True)
        return self._http_client

    @property
    def cache(self) -> ImageCache:
        """位图缓存."""
        return self._cache

    # ===================
    # 公共接口
    # ===================

    def load_image(self, src: str, deadline: Optional[Deadline] = None) -> Image.Image:
        """加载并解码位图.

        Args:
            src: 资源来源
            deadline: 截止时间

        Returns:
            RGBA 图片（副本，可修改）

        Raises:
            AssetLoadError: 来源无法读取或无法解码
            RenderTimeoutError: 超过截止时间
        """
        if not src or not src.strip():
            raise AssetLoadError(src or "", "来源为空")

        cached = self._cache.get(src)
        if cached is not None:
            return cached

        data = self.fetch_bytes(src, deadline)
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise AssetLoadError(src, f"无法解码图片: {e}") from e

        image = ensure_rgba(image)
        self._cache.put(src, image)
        logger.debug(f"图片已加载: {src[:80]} {image.size}")
        return image.copy()

    def load_svg(self, src: str, deadline: Optional[Deadline] = None) -> bytes:
        """加载 SVG 标记.

        Returns:
            SVG 字节数据

        Raises:
            AssetLoadError: 来源无法读取或内容不是 SVG
        """
        data = self.fetch_bytes(src, deadline)
        if b"<svg" not in data[:4096].lower():
            raise AssetLoadError(src, "内容不是 SVG")
        return data

    def fetch_bytes(self, src: str, deadline: Optional[Deadline] = None) -> bytes:
        """读取资源原始字节.

        Args:
            src: 资源来源
            deadline: 截止时间

        Returns:
            字节数据
        """
        if deadline is not None:
            deadline.check("assets")

        src = src.strip()
        if src.startswith("data:"):
            return self._decode_data_url(src)
        if _is_remote(src):
            return self._download(src, deadline)
        return self._read_file(src)

    def check_source(self, src: str) -> None:
        """检查来自数据行的资源来源是否被允许.

        ``data:`` URL 总是允许；http(s) 需主机在白名单内；本地路径与
        ``file://`` 需解析后位于允许的目录下；其他协议一律拒绝。

        Raises:
            AssetLoadError: 来源不被允许
        """
        src = src.strip()
        if not src:
            raise AssetLoadError(src, "来源为空")
        if src.startswith("data:"):
            return

        if _is_remote(src):
            if self._allowed_hosts is None or "*" in self._allowed_hosts:
                return
            host = (urlparse(src).hostname or "").lower()
            if host not in self._allowed_hosts:
                logger.warning(f"拒绝下载未授权主机的资源: {src[:120]}")
                raise AssetLoadError(src, f"主机不在允许列表中: {host or '?'}")
            return

        scheme = urlparse(src).scheme
        # 单字母协议视为 Windows 盘符
        if scheme and scheme != "file" and len(scheme) > 1:
            raise AssetLoadError(src, f"不支持的来源协议: {scheme}")
        if self._allowed_roots is None:
            return
        path = self._local_path(src).resolve()
        if not any(path.is_relative_to(root) for root in self._allowed_roots):
            logger.warning(f"拒绝读取允许目录之外的文件: {src[:120]}")
            raise AssetLoadError(src, "路径不在允许的资源目录内")

    def close(self) -> None:
        """关闭 HTTP 客户端并清空缓存."""
        if self._http_client is not None and self._owns_client:
            self._http_client.close()
            self._http_client = None
        self._cache.clear()

    # ===================
    # 各类来源
    # ===================

    def _decode_data_url(self, src: str) -> bytes:
        header, sep, payload = src.partition(",")
        if not sep:
            raise AssetLoadError(src, "无效的 data URL")
        try:
            if header.endswith(";base64"):
                return base64.b64decode(payload, validate=False)
            return unquote_to_bytes(payload)
        except ValueError as e:
            raise AssetLoadError(src, f"data URL 解码失败: {e}") from e

    @staticmethod
    def _local_path(src: str) -> Path:
        if src.startswith("file://"):
            src = unquote(urlparse(src).path)
        return Path(src).expanduser()

    def _read_file(self, src: str) -> bytes:
        path = self._local_path(src)
        if not path.is_file():
            raise AssetLoadError(src, "文件不存在")
        try:
            return path.read_bytes()
        except OSError as e:
            raise AssetLoadError(src, str(e)) from e

    def _download(self, url: str, deadline: Optional[Deadline]) -> bytes:
        timeout = self._timeout
        if deadline is not None and deadline.remaining() is not None:
            timeout = min(timeout, max(deadline.remaining(), 0.001))
        try:
            response = self._get(url, timeout)
        except httpx.TimeoutException as e:
            raise AssetLoadError(url, f"下载超时 ({timeout:.1f}秒)") from e
        except httpx.HTTPError as e:
            raise AssetLoadError(url, f"下载失败: {e}") from e

        if response.status_code != 200:
            raise AssetLoadError(url, f"HTTP {response.status_code}")
        if len(response.content) > MAX_REMOTE_BYTES:
            raise AssetLoadError(url, "资源过大")
        return response.content

    @retry(max_retries=2, delay=0.5, exceptions=(httpx.ConnectError,))
    def _get(self, url: str, timeout: float) -> httpx.Response:
        return self.http_client.get(url, timeout=timeout)
