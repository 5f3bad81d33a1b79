"""数据库 ORM 模型."""

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

from placard.utils.helpers import utc_now

Base = declarative_base()


class TemplateRecord(Base):
    """模板表.

    ``document_json`` 保存完整场景文档，``variables_json`` 是派生缓存。
    """

    __tablename__ = "templates"

    id = Column(String(32), primary_key=True)
    name = Column(String(200), nullable=False)
    width = Column(Integer, nullable=False, default=1080)
    height = Column(Integer, nullable=False, default=1080)
    document_json = Column(Text, nullable=False)
    variables_json = Column(Text, nullable=False, default="[]")
    preview_ref = Column(Text)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return f"<TemplateRecord(id={self.id}, name={self.name})>"


class JobRecord(Base):
    """批量生成任务表."""

    __tablename__ = "jobs"

    id = Column(String(32), primary_key=True)
    template_id = Column(String(32), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="processing")
    format = Column(String(10), nullable=False, default="png")
    total_items = Column(Integer, nullable=False)
    processed_items = Column(Integer, default=0)
    output_refs_json = Column(Text, default="[]")
    error_messages_json = Column(Text, default="[]")
    created_at = Column(DateTime, default=utc_now)
    completed_at = Column(DateTime)

    def __repr__(self) -> str:
        return f"<JobRecord(id={self.id}, status={self.status})>"
