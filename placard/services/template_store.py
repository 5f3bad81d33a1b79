"""模板持久化服务.

提供模板的增删改查。每次保存都会用变量提取器重新计算 ``variables`` 缓存，
保证批量生成的校验依据与文档一致。

Features:
    - 创建、读取、列表、更新、删除
    - 保存时重新计算变量列表
    - 可选：根据文字中的 ``{{name}}`` 初始化未绑定元素
    - 从 JSON 文件导入模板
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from placard.core.variable_extractor import extract_variables, seed_bindings
from placard.models.database import TemplateRecord
from placard.models.scene_document import SceneDocument
from placard.models.template import Template, new_template_id
from placard.services.database_service import DatabaseService
from placard.utils.exceptions import PersistenceError, TemplateNotFoundError
from placard.utils.helpers import utc_now
from placard.utils.logger import setup_logger

logger = setup_logger(__name__)


def _to_model(record: TemplateRecord) -> Template:
    return Template(
        id=record.id,
        name=record.name,
        width=record.width,
        height=record.height,
        document=SceneDocument.model_validate_json(record.document_json),
        variables=json.loads(record.variables_json or "[]"),
        preview_ref=record.preview_ref,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class TemplateStore:
    """模板存储.

    Example:
        >>> store = TemplateStore(db)
        >>> template = store.create("新品海报", document)
        >>> template.variables
        ['headline', 'price']
    """

    def __init__(self, db: DatabaseService, seed_placeholders: bool = True) -> None:
        """初始化模板存储.

        Args:
            db: 数据库服务
            seed_placeholders: 保存时是否根据 ``{{name}}`` 初始化绑定
        """
        self._db = db
        self._seed_placeholders = seed_placeholders

    def _prepare_document(self, document: SceneDocument) -> tuple[SceneDocument, list[str]]:
        if self._seed_placeholders:
            document = seed_bindings(document)
        return document, extract_variables(document)

    def create(
        self,
        name: str,
        document: SceneDocument,
        preview_ref: Optional[str] = None,
        template_id: Optional[str] = None,
    ) -> Template:
        """创建模板.

        Args:
            name: 模板名称
            document: 场景文档
            preview_ref: 预览图引用
            template_id: 指定ID，默认自动生成

        Returns:
            保存后的模板
        """
        document, variables = self._prepare_document(document)
        now = utc_now()
        template = Template(
            id=template_id or new_template_id(),
            name=name,
            width=document.width,
            height=document.height,
            document=document,
            variables=variables,
            preview_ref=preview_ref,
            created_at=now,
            updated_at=now,
        )
        with self._db.session_scope() as session:
            session.add(
                TemplateRecord(
                    id=template.id,
                    name=template.name,
                    width=template.width,
                    height=template.height,
                    document_json=document.to_json(indent=None),
                    variables_json=json.dumps(variables, ensure_ascii=False),
                    preview_ref=preview_ref,
                    created_at=now,
                    updated_at=now,
                )
            )
        logger.info(f"模板已创建: {template.id} ({name})，变量: {variables}")
        return template

    def get(self, template_id: str) -> Template:
        """读取模板.

        Raises:
            TemplateNotFoundError: 模板不存在
        """
        with self._db.session_scope() as session:
            record = session.get(TemplateRecord, template_id)
            if record is None:
                raise TemplateNotFoundError(template_id)
            return _to_model(record)

    def find(self, template_id: str) -> Optional[Template]:
        """读取模板，不存在返回 None."""
        try:
            return self.get(template_id)
        except TemplateNotFoundError:
            return None

    def list(self) -> list[Template]:
        """按更新时间倒序列出所有模板."""
        with self._db.session_scope() as session:
            records = (
                session.query(TemplateRecord)
                .order_by(TemplateRecord.updated_at.desc())
                .all()
            )
            return [_to_model(r) for r in records]

    def update(
        self,
        template_id: str,
        name: Optional[str] = None,
        document: Optional[SceneDocument] = None,
        preview_ref: Optional[str] = None,
    ) -> Template:
        """更新模板.

        只更新给出的字段；任何一次保存都会重新计算变量列表。

        Raises:
            TemplateNotFoundError: 模板不存在
        """
        with self._db.session_scope() as session:
            record = session.get(TemplateRecord, template_id)
            if record is None:
                raise TemplateNotFoundError(template_id)

            if document is None:
                document = SceneDocument.model_validate_json(record.document_json)
            document, variables = self._prepare_document(document)

            if name is not None:
                record.name = name
            if preview_ref is not None:
                record.preview_ref = preview_ref
            record.width = document.width
            record.height = document.height
            record.document_json = document.to_json(indent=None)
            record.variables_json = json.dumps(variables, ensure_ascii=False)
            record.updated_at = utc_now()
            session.flush()
            template = _to_model(record)

        logger.info(f"模板已更新: {template_id}，变量: {template.variables}")
        return template

    def delete(self, template_id: str) -> bool:
        """删除模板.

        Returns:
            是否删除成功（不存在返回 False）
        """
        with self._db.session_scope() as session:
            record = session.get(TemplateRecord, template_id)
            if record is None:
                return False
            session.delete(record)
        logger.info(f"模板已删除: {template_id}")
        return True

    def import_file(self, file_path: Path | str, name: Optional[str] = None) -> Template:
        """从 JSON 文件导入模板.

        文件可以是裸场景文档，也可以是 ``{"name": ..., "document": {...}}``。

        Raises:
            PersistenceError: 文件无法读取或格式无效
        """
        path = Path(file_path)
        try:
            payload: Any = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"无法读取模板文件 {path}: {e}") from e

        if isinstance(payload, dict) and "document" in payload:
            doc_data = payload["document"]
            name = name or payload.get("name")
        else:
            doc_data = payload

        try:
            document = SceneDocument.model_validate(doc_data)
        except PydanticValidationError as e:
            raise PersistenceError(f"模板文件格式无效 {path}: {e}") from e

        return self.create(name or path.stem, document)
