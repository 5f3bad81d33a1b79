"""配置管理器模块."""

from __future__ import annotations

from typing import Any, Optional

from placard.models.app_settings import Settings
from placard.utils.exceptions import ConfigError
from placard.utils.logger import setup_logger

logger = setup_logger(__name__)


class ConfigManager:
    """配置管理器.

    负责应用设置的加载与覆盖。

    Attributes:
        settings: 应用设置
    """

    _instance: Optional["ConfigManager"] = None

    def __new__(cls) -> "ConfigManager":
        """单例模式."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        """初始化配置管理器."""
        if self._initialized:
            return

        self._settings: Optional[Settings] = None
        self._overrides: dict[str, Any] = {}
        self._initialized = True

        logger.debug("配置管理器初始化完成")

    @property
    def settings(self) -> Settings:
        """获取应用设置."""
        if self._settings is None:
            self._settings = self._load_settings()
        return self._settings

    def _load_settings(self) -> Settings:
        """加载应用设置.

        优先使用显式覆盖值，其次环境变量与 .env 文件。

        Returns:
            Settings 实例
        """
        try:
            settings = Settings(**self._overrides)
            logger.debug(
                f"应用设置加载完成: log_level={settings.log_level}, "
                f"pool_size={settings.pool_size}, output={settings.output_path}"
            )
            return settings
        except Exception as e:
            logger.error(f"加载应用设置失败: {e}")
            raise ConfigError(f"加载应用设置失败: {e}") from e

    def override(self, **values: Any) -> Settings:
        """覆盖部分设置并重新加载.

        Args:
            **values: 设置字段与值

        Returns:
            重新加载后的设置
        """
        self._overrides.update(values)
        self._settings = None
        return self.settings

    def reload(self) -> None:
        """重新加载所有配置."""
        self._settings = None
        logger.info("配置已重新加载")

    def reset_to_defaults(self) -> None:
        """清除覆盖值并重新加载."""
        self._overrides.clear()
        self.reload()
        logger.info("配置已重置为默认值")


# 全局配置管理器实例
config_manager = ConfigManager()


def get_config() -> ConfigManager:
    """获取配置管理器实例.

    Returns:
        ConfigManager 单例实例
    """
    return config_manager
