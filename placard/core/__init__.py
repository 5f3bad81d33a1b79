"""核心业务逻辑模块."""

from placard.core.variable_extractor import (
    detect_placeholder,
    extract_variables,
    seed_bindings,
)

__all__ = [
    # 变量提取
    "detect_placeholder",
    "extract_variables",
    "seed_bindings",
]
