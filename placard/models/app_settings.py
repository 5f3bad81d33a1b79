"""应用设置模型."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from placard.utils.constants import (
    APP_DATA_DIR,
    DATABASE_PATH,
    DEFAULT_ACQUIRE_TIMEOUT,
    DEFAULT_ASSET_CACHE_MB,
    DEFAULT_ASSET_TIMEOUT,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_POOL_SIZE,
    DEFAULT_RENDER_TIMEOUT,
    LOG_DIR,
    OUTPUT_DIR,
    PUBLIC_URL_PREFIX,
)


class Settings(BaseSettings):
    """应用设置.

    支持从环境变量（``PLACARD_`` 前缀）和 .env 文件加载配置。

    Attributes:
        log_level: 日志级别
        data_dir: 数据目录
        database_path: 数据库文件路径
        output_dir: 输出图片目录
        public_url_prefix: 输出图片对外访问前缀
        font_dirs: 额外的字体搜索目录
        font_files: 字体族名到字体文件的注册表
        strict_fonts: 未注册字体是否视为错误
        pool_size: 渲染实例池大小
        acquire_timeout: 获取渲染实例超时（秒）
        render_timeout: 单行渲染超时（秒）
        asset_timeout: 远程资源下载超时（秒）
        jpeg_quality: JPEG 输出质量
        concurrent_limit: 单个任务内的并发渲染行数
        inline_base64: 响应中是否内联 Base64
        asset_cache_mb: 资源缓存大小（MB）
        asset_roots: 数据行中的本地图片来源允许读取的目录
        asset_hosts: 数据行中的远程图片来源允许下载的主机名（``*`` 表示任意）
    """

    model_config = SettingsConfigDict(
        env_prefix="PLACARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 应用配置
    log_level: str = Field(default="INFO", description="日志级别")

    # 路径配置
    data_dir: Path = Field(default=APP_DATA_DIR, description="数据目录")
    database_path: Optional[Path] = Field(default=None, description="数据库文件路径")
    log_dir: Optional[Path] = Field(default=None, description="日志目录")
    output_dir: Optional[Path] = Field(default=None, description="输出图片目录")
    public_url_prefix: str = Field(default=PUBLIC_URL_PREFIX, description="输出访问前缀")

    # 字体配置
    font_dirs: list[Path] = Field(default_factory=list, description="额外字体目录")
    font_files: dict[str, Path] = Field(default_factory=dict, description="字体注册表")
    strict_fonts: bool = Field(default=False, description="未注册字体视为错误")

    # 渲染池配置
    pool_size: int = Field(default=DEFAULT_POOL_SIZE, ge=1, le=32, description="渲染实例池大小")
    acquire_timeout: float = Field(default=DEFAULT_ACQUIRE_TIMEOUT, gt=0, description="获取实例超时")
    render_timeout: float = Field(default=DEFAULT_RENDER_TIMEOUT, gt=0, description="单行渲染超时")
    asset_timeout: float = Field(default=DEFAULT_ASSET_TIMEOUT, gt=0, description="资源下载超时")
    asset_cache_mb: int = Field(default=DEFAULT_ASSET_CACHE_MB, ge=0, description="资源缓存大小")

    # 资源来源白名单（只约束变量替换进来的来源，模板自带的来源不受限）
    asset_roots: list[Path] = Field(default_factory=list, description="允许的本地资源目录")
    asset_hosts: list[str] = Field(default_factory=list, description="允许的远程资源主机")

    # 输出配置
    jpeg_quality: int = Field(default=DEFAULT_JPEG_QUALITY, ge=1, le=100, description="JPEG 质量")
    inline_base64: bool = Field(default=True, description="响应内联 Base64")

    # 编排配置
    concurrent_limit: int = Field(default=1, ge=1, le=16, description="任务内并发行数")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """验证日志级别."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"无效的日志级别: {v}，有效值: {valid_levels}")
        return upper_v

    @field_validator("public_url_prefix")
    @classmethod
    def validate_url_prefix(cls, v: str) -> str:
        """去掉末尾斜杠."""
        return v.rstrip("/") or "/"

    @property
    def db_path(self) -> Path:
        """获取数据库路径."""
        if self.database_path:
            return self.database_path
        if self.data_dir != APP_DATA_DIR:
            return self.data_dir / DATABASE_PATH.name
        return DATABASE_PATH

    @property
    def output_path(self) -> Path:
        """获取输出目录."""
        if self.output_dir:
            return self.output_dir
        if self.data_dir != APP_DATA_DIR:
            return self.data_dir / OUTPUT_DIR.name
        return OUTPUT_DIR

    @property
    def logs_path(self) -> Path:
        """获取日志目录."""
        if self.log_dir:
            return self.log_dir
        if self.data_dir != APP_DATA_DIR:
            return self.data_dir / LOG_DIR.name
        return LOG_DIR
