"""错误处理工具模块.

提供统一的错误处理机制，将异常映射为用户可读消息和 HTTP 等价状态码。
"""

from __future__ import annotations

import traceback
from typing import Any

from placard.utils.exceptions import (
    AppException,
    ConfigError,
    GeometryError,
    JobNotFoundError,
    PersistenceError,
    PoolError,
    RenderError,
    RenderTimeoutError,
    TemplateNotFoundError,
    ValidationError,
)
from placard.utils.logger import setup_logger

logger = setup_logger(__name__)


# 错误消息映射（按顺序匹配，子类在前）
ERROR_MESSAGES = {
    RenderTimeoutError: "渲染超时，请检查模板资源是否可访问",
    RenderError: "图片渲染失败",
    PoolError: "渲染资源不足，请稍后重试",
    GeometryError: "模板几何参数无效",
    PersistenceError: "数据保存失败",
    ConfigError: "配置错误，请检查配置文件",
}

# HTTP 等价状态码
STATUS_CODES = {
    TemplateNotFoundError: 404,
    JobNotFoundError: 404,
    ValidationError: 400,
    PoolError: 503,
    PersistenceError: 500,
}


def get_user_friendly_message(exception: Exception) -> str:
    """获取用户友好的错误消息.

    Args:
        exception: 异常对象

    Returns:
        用户友好的错误消息
    """
    # 校验错误直接返回原始消息，调用方需要知道缺少什么
    if isinstance(exception, ValidationError):
        return exception.message

    for exc_type, message in ERROR_MESSAGES.items():
        if isinstance(exception, exc_type):
            return message

    if isinstance(exception, AppException):
        return exception.message

    return "操作失败，请稍后重试"


def get_status_code(exception: Exception) -> int:
    """获取异常对应的 HTTP 等价状态码."""
    for exc_type, status in STATUS_CODES.items():
        if isinstance(exception, exc_type):
            return status
    return 500


def to_error_response(exception: Exception) -> tuple[int, dict[str, Any]]:
    """转换为 (状态码, 响应体) 形式.

    Args:
        exception: 异常对象

    Returns:
        状态码与 ``{"error": ...}`` 响应体
    """
    status = get_status_code(exception)
    if status >= 500:
        logger.error(f"请求处理失败: {exception}\n{traceback.format_exc()}")
    body: dict[str, Any] = {"error": get_user_friendly_message(exception)}
    if isinstance(exception, AppException):
        body["code"] = exception.code
    return status, body
