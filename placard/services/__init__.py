"""服务层模块."""

from placard.services.asset_loader import AssetLoader
from placard.services.font_registry import FontFace, FontRegistry
from placard.services.harness_pool import HarnessPool
from placard.services.render_harness import RenderHarness, apply_substitutions
from placard.services.rendering_service import RenderingService, RenderResult

__all__ = [
    # 资源
    "AssetLoader",
    "FontFace",
    "FontRegistry",
    # 渲染
    "HarnessPool",
    "RenderHarness",
    "RenderResult",
    "RenderingService",
    "apply_substitutions",
]
