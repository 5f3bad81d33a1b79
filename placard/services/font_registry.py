"""字体注册与就绪检查.

Features:
    - 字体族名到字体文件的显式注册表
    - 系统字体目录搜索（含粗体/斜体变体、中文字体回退）
    - 渲染前的就绪屏障：已注册字体必须可加载，否则抛出类型化错误
    - 未注册字体在非严格模式下回退到 Pillow 内置字体
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, TYPE_CHECKING

from PIL import ImageFont

from placard.utils.exceptions import FontNotReadyError
from placard.utils.helpers import Deadline
from placard.utils.logger import setup_logger

if TYPE_CHECKING:
    from placard.models.app_settings import Settings

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

# 字体搜索路径
FONT_SEARCH_PATHS = [
    "/System/Library/Fonts/",
    "/System/Library/Fonts/Supplemental/",
    "/Library/Fonts/",
    "~/Library/Fonts/",
    "C:/Windows/Fonts/",
    "/usr/share/fonts/",
    "/usr/share/fonts/truetype/",
    "/usr/share/fonts/truetype/dejavu/",
    "/usr/share/fonts/truetype/liberation/",
]

# 中文字体回退列表（macOS/Windows/Linux 常见中文字体）
CHINESE_FONT_FALLBACKS = [
    "PingFang SC.ttc",
    "PingFang.ttc",
    "STHeiti Light.ttc",
    "Hiragino Sans GB.ttc",
    "msyh.ttc",
    "simhei.ttf",
    "wqy-microhei.ttc",
    "wqy-zenhei.ttc",
    "NotoSansCJK-Regular.ttc",
    "NotoSansSC-Regular.otf",
]

FONT_EXTENSIONS = (".ttf", ".otf", ".ttc")


def has_chinese_characters(text: Optional[str]) -> bool:
    """检查文本是否包含中文字符."""
    if not text:
        return False
    for char in text:
        if "\u4e00" <= char <= "\u9fff" or "\u3400" <= char <= "\u4dbf":
            return True
    return False


@dataclass(frozen=True)
class FontFace:
    """字体需求（族名 + 字重 + 字形）."""

    family: str
    bold: bool = False
    italic: bool = False
    cjk: bool = False


@dataclass(frozen=True)
class ResolvedFont:
    """解析后的字体.

    Attributes:
        face: 字体需求
        path: 字体文件路径，None 表示 Pillow 内置字体
        registered: 是否来自显式注册表
    """

    face: FontFace
    path: Optional[str]
    registered: bool = False

    @property
    def is_fallback(self) -> bool:
        """是否为内置回退字体."""
        return self.path is None


# ===================
# 字体注册表
# ===================


class FontRegistry:
    """字体注册表.

    多个渲染实例共享同一注册表；解析结果会被缓存。字体对象本身由
    渲染实例各自加载和持有。

    Example:
        >>> registry = FontRegistry({"Brand Sans": Path("fonts/BrandSans.ttf")})
        >>> resolved = registry.ensure_ready([FontFace("Brand Sans")])
        >>> font = registry.load(resolved[FontFace("Brand Sans")], 32)
    """

    def __init__(
        self,
        font_files: Optional[Mapping[str, Path | str]] = None,
        font_dirs: Optional[Iterable[Path | str]] = None,
        strict: bool = False,
    ) -> None:
        """初始化注册表.

        Args:
            font_files: 字体族名到字体文件的映射
            font_dirs: 额外搜索目录（优先于系统目录）
            strict: 未注册且找不到的字体是否视为错误
        """
        self._files: dict[str, Path] = {}
        self._dirs = [Path(d).expanduser() for d in (font_dirs or [])]
        self.strict = strict
        self._resolved: dict[FontFace, ResolvedFont] = {}
        self._lock = threading.Lock()

        for family, path in (font_files or {}).items():
            self.register(family, path)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "FontRegistry":
        """根据应用设置创建注册表."""
        return cls(settings.font_files, settings.font_dirs, settings.strict_fonts)

    @property
    def families(self) -> list[str]:
        """已注册的字体族名."""
        return sorted(self._files)

    def register(self, family: str, path: Path | str) -> None:
        """注册字体文件.

        注册时不检查文件，文件缺失会在就绪检查时报错。

        Args:
            family: 字体族名（不区分大小写）
            path: 字体文件路径
        """
        key = family.strip().lower()
        with self._lock:
            self._files[key] = Path(path).expanduser()
            self._resolved.clear()
        logger.debug(f"注册字体: {family} -> {path}")

    def ensure_ready(
        self,
        faces: Iterable[FontFace],
        deadline: Optional[Deadline] = None,
    ) -> dict[FontFace, ResolvedFont]:
        """就绪屏障：解析并验证所有字体.

        Args:
            faces: 文档需要的字体
            deadline: 截止时间

        Returns:
            字体需求到解析结果的映射

        Raises:
            FontNotReadyError: 已注册字体无法加载，或严格模式下找不到字体
            RenderTimeoutError: 超过截止时间
        """
        result: dict[FontFace, ResolvedFont] = {}
        for face in faces:
            if deadline is not None:
                deadline.check("fonts")
            if face not in result:
                result[face] = self.resolve(face)
        return result

    def resolve(self, face: FontFace) -> ResolvedFont:
        """解析单个字体需求."""
        with self._lock:
            cached = self._resolved.get(face)
        if cached is not None:
            return cached

        resolved = self._resolve_registered(face)
        if resolved is None:
            resolved = self._resolve_system(face)

        with self._lock:
            self._resolved[face] = resolved
        return resolved

    def load(self, resolved: ResolvedFont, size: int) -> ImageFont.FreeTypeFont:
        """按字号加载字体对象.

        Args:
            resolved: 解析结果
            size: 像素字号

        Returns:
            字体对象
        """
        size = max(1, int(size))
        if resolved.path is None:
            return ImageFont.load_default(size=size)
        try:
            return ImageFont.truetype(resolved.path, size)
        except OSError as e:
            raise FontNotReadyError(resolved.face.family, str(e)) from e

    # ===================
    # 解析细节
    # ===================

    def _registered_path(self, face: FontFace) -> Optional[Path]:
        family = face.family.strip().lower()
        candidates = []
        if face.bold and face.italic:
            candidates += [f"{family} bold italic", f"{family}-bolditalic"]
        elif face.bold:
            candidates += [f"{family} bold", f"{family}-bold"]
        elif face.italic:
            candidates += [f"{family} italic", f"{family}-italic"]
        candidates.append(family)
        for key in candidates:
            if key in self._files:
                return self._files[key]
        return None

    def _resolve_registered(self, face: FontFace) -> Optional[ResolvedFont]:
        path = self._registered_path(face)
        if path is None:
            return None
        if not path.is_file():
            raise FontNotReadyError(face.family, f"字体文件不存在: {path}")
        try:
            ImageFont.truetype(str(path), 12)
        except OSError as e:
            raise FontNotReadyError(face.family, f"字体文件无法加载: {e}") from e
        return ResolvedFont(face=face, path=str(path), registered=True)

    def _resolve_system(self, face: FontFace) -> ResolvedFont:
        path = self._search_font(face)
        if path is None and face.cjk:
            path = self._search_chinese_font()
            if path is not None:
                logger.warning(f"字体 '{face.family}' 未找到，使用中文字体回退")
        if path is not None:
            return ResolvedFont(face=face, path=path)

        if self.strict:
            raise FontNotReadyError(face.family, "字体未注册且在系统中未找到")
        logger.warning(f"字体 '{face.family}' 未找到，使用默认字体")
        return ResolvedFont(face=face, path=None)

    def _search_dirs(self) -> list[str]:
        dirs = [str(d) for d in self._dirs]
        dirs += [os.path.expanduser(p) for p in FONT_SEARCH_PATHS]
        return [d for d in dirs if os.path.isdir(d)]

    def _search_font(self, face: FontFace) -> Optional[str]:
        family = face.family
        variants: list[str] = []
        if face.bold and face.italic:
            variants += [f"{family}-BoldItalic", f"{family} Bold Italic"]
        elif face.bold:
            variants += [f"{family}-Bold", f"{family} Bold"]
        elif face.italic:
            variants += [f"{family}-Italic", f"{family} Italic"]
        variants.append(family)

        for directory in self._search_dirs():
            for variant in variants:
                for ext in ("",) + FONT_EXTENSIONS:
                    font_path = os.path.join(directory, variant + ext)
                    if os.path.isfile(font_path) and _can_load(font_path):
                        return font_path

        # Pillow 自身也会在系统字体目录中查找文件名
        for variant in variants:
            for ext in FONT_EXTENSIONS:
                try:
                    font = ImageFont.truetype(variant + ext, 12)
                except OSError:
                    continue
                return getattr(font, "path", None) or variant + ext
        return None

    def _search_chinese_font(self) -> Optional[str]:
        for directory in self._search_dirs():
            for font_name in CHINESE_FONT_FALLBACKS:
                font_path = os.path.join(directory, font_name)
                if os.path.isfile(font_path) and _can_load(font_path):
                    return font_path
        return None


def _can_load(path: str) -> bool:
    try:
        ImageFont.truetype(path, 12)
        return True
    except OSError:
        return False
