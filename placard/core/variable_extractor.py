"""变量提取.

扫描场景文档，得到模板声明的占位变量集合，用于校验批量生成请求。

绑定的唯一来源是元素上的显式 ``binding`` 注解；文字内容中的 ``{{name}}``
只在元素尚无绑定时用于初始化注解（见 ``seed_bindings``），从不覆盖已有绑定。
"""

from __future__ import annotations

import re
from typing import Optional

from placard.models.scene_document import Binding, SceneDocument, TextElement

# 与编辑器一致：非贪婪匹配第一个 {{...}}
PLACEHOLDER_PATTERN = re.compile(r"\{\{(.*?)\}\}")


def extract_variables(document: SceneDocument) -> list[str]:
    """提取文档声明的变量名.

    遍历所有元素（含编组内部），收集生效绑定的变量名，按首次出现顺序去重。
    没有元素或没有绑定元素时返回空列表。

    Args:
        document: 场景文档

    Returns:
        去重后的变量名列表

    Example:
        >>> doc = SceneDocument(width=100, height=100)
        >>> extract_variables(doc)
        []
    """
    seen: dict[str, None] = {}
    for element in document.iter_elements():
        name = element.variable_name
        if name is not None and name not in seen:
            seen[name] = None
    return list(seen)


def detect_placeholder(text: str) -> Optional[str]:
    """检测文字中的第一个 ``{{name}}`` 占位符.

    Args:
        text: 文字内容

    Returns:
        去除首尾空白后的变量名，未检测到或为空时返回 None
    """
    match = PLACEHOLDER_PATTERN.search(text or "")
    if match is None:
        return None
    name = match.group(1).strip()
    return name or None


def seed_bindings(document: SceneDocument) -> SceneDocument:
    """为含占位符且尚无绑定的文字元素初始化绑定.

    返回新文档，不修改输入；已有绑定（即使变量名与文字中的占位符不同）保持不变。

    Args:
        document: 场景文档

    Returns:
        初始化绑定后的新文档
    """
    result = document.model_copy(deep=True)
    for element in result.iter_elements():
        if not isinstance(element, TextElement) or element.binding is not None:
            continue
        name = detect_placeholder(element.content)
        if name:
            element.binding = Binding(variable_name=name, is_dynamic=True)
    return result
