"""自定义异常类."""

from __future__ import annotations

from typing import Iterable


class AppException(Exception):
    """应用基础异常类.

    所有自定义异常都应继承此类。

    Attributes:
        message: 错误消息
        code: 错误代码
    """

    def __init__(self, message: str, code: str = "UNKNOWN") -> None:
        """初始化异常.

        Args:
            message: 错误消息
            code: 错误代码
        """
        self.message = message
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        """返回异常字符串表示."""
        return f"[{self.code}] {self.message}"


# ===================
# 配置相关异常
# ===================
class ConfigError(AppException):
    """配置错误异常."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "CONFIG_ERROR")


# ===================
# 请求校验相关异常
# ===================
class ValidationError(AppException):
    """请求校验错误异常.

    在创建任务记录之前抛出，调用方收到同步错误，不会持久化任何内容。
    """

    def __init__(self, message: str, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(message, code)


class EmptyDataError(ValidationError):
    """数据行为空异常."""

    def __init__(self) -> None:
        super().__init__("data array is required and must not be empty", "EMPTY_DATA")


class TemplateNotFoundError(ValidationError):
    """模板未找到异常."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"Template not found: {template_id}", "TEMPLATE_NOT_FOUND")


class JobNotFoundError(ValidationError):
    """任务未找到异常."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}", "JOB_NOT_FOUND")


class MissingVariablesError(ValidationError):
    """数据行缺少模板声明的变量."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            f"Missing required variables: {', '.join(self.missing)}",
            "MISSING_VARIABLES",
        )


class UnsupportedFormatError(ValidationError):
    """不支持的输出格式."""

    def __init__(self, output_format: str) -> None:
        self.output_format = output_format
        super().__init__(f"Unsupported output format: {output_format}", "UNSUPPORTED_FORMAT")


# ===================
# 几何计算异常
# ===================
class GeometryError(AppException):
    """几何计算错误异常."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "GEOMETRY_ERROR")


# ===================
# 渲染相关异常
# ===================
class RenderError(AppException):
    """单次渲染失败异常.

    由编排器在行级别捕获并记录，不会中断整批任务。
    """

    def __init__(self, message: str, code: str = "RENDER_ERROR") -> None:
        super().__init__(message, code)


class AssetLoadError(RenderError):
    """资源加载失败（图片、SVG、字体文件）."""

    def __init__(self, source: str, reason: str = "") -> None:
        self.source = source
        msg = f"资源加载失败: {source[:120]}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, "ASSET_LOAD_ERROR")


class FontNotReadyError(RenderError):
    """字体未就绪异常."""

    def __init__(self, family: str, reason: str = "") -> None:
        self.family = family
        msg = f"字体未就绪: {family}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, "FONT_NOT_READY")


class RenderTimeoutError(RenderError):
    """渲染超时异常."""

    def __init__(self, timeout: float, stage: str = "render") -> None:
        self.timeout = timeout
        self.stage = stage
        super().__init__(f"渲染超时 ({timeout:g}秒, 阶段: {stage})", "RENDER_TIMEOUT")


class LayoutError(RenderError):
    """排版或元素绘制错误."""

    def __init__(self, element_id: str, reason: str) -> None:
        self.element_id = element_id
        super().__init__(f"元素 {element_id} 排版失败: {reason}", "LAYOUT_ERROR")


# ===================
# 渲染池相关异常
# ===================
class PoolError(AppException):
    """渲染实例池错误异常."""

    def __init__(self, message: str, code: str = "POOL_ERROR") -> None:
        super().__init__(message, code)


class PoolExhaustedError(PoolError):
    """渲染实例获取超时."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"在 {timeout:g} 秒内未能获取渲染实例", "POOL_EXHAUSTED")


class PoolClosedError(PoolError):
    """渲染实例池已关闭."""

    def __init__(self) -> None:
        super().__init__("渲染实例池已关闭", "POOL_CLOSED")


# ===================
# 持久化相关异常
# ===================
class PersistenceError(AppException):
    """持久化错误异常."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "PERSISTENCE_ERROR")
