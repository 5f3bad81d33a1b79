"""Placard 模板批量出图服务."""

from placard.utils.constants import APP_NAME, APP_VERSION

__version__ = APP_VERSION

__all__ = ["APP_NAME", "__version__"]
