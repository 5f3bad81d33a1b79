"""任务持久化服务."""

from __future__ import annotations

import json

from placard.models.database import JobRecord
from placard.models.template import Job, JobStatus, OutputFormat
from placard.services.database_service import DatabaseService
from placard.utils.exceptions import JobNotFoundError
from placard.utils.logger import setup_logger

logger = setup_logger(__name__)


def _to_model(record: JobRecord) -> Job:
    return Job(
        id=record.id,
        template_id=record.template_id,
        status=JobStatus(record.status),
        format=OutputFormat(record.format),
        total_items=record.total_items,
        processed_items=record.processed_items or 0,
        output_refs=json.loads(record.output_refs_json or "[]"),
        error_messages=json.loads(record.error_messages_json or "[]"),
        created_at=record.created_at,
        completed_at=record.completed_at,
    )


def _apply(record: JobRecord, job: Job) -> None:
    record.template_id = job.template_id
    record.status = job.status.value
    record.format = job.format.value
    record.total_items = job.total_items
    record.processed_items = job.processed_items
    record.output_refs_json = json.dumps(job.output_refs, ensure_ascii=False)
    record.error_messages_json = json.dumps(job.error_messages, ensure_ascii=False)
    record.created_at = job.created_at
    record.completed_at = job.completed_at


class JobStore:
    """任务存储.

    任务只追加进度、不回滚；``save`` 以整条记录覆盖写入。
    """

    def __init__(self, db: DatabaseService) -> None:
        self._db = db

    def create(self, job: Job) -> Job:
        """插入新任务."""
        with self._db.session_scope() as session:
            record = JobRecord(id=job.id)
            _apply(record, job)
            session.add(record)
        logger.debug(f"任务已创建: {job.id} ({job.total_items} 行)")
        return job

    def save(self, job: Job) -> Job:
        """保存任务进度或最终状态.

        Raises:
            JobNotFoundError: 任务不存在
        """
        with self._db.session_scope() as session:
            record = session.get(JobRecord, job.id)
            if record is None:
                raise JobNotFoundError(job.id)
            _apply(record, job)
        return job

    def get(self, job_id: str) -> Job:
        """读取任务.

        Raises:
            JobNotFoundError: 任务不存在
        """
        with self._db.session_scope() as session:
            record = session.get(JobRecord, job_id)
            if record is None:
                raise JobNotFoundError(job_id)
            return _to_model(record)

    def count(self) -> int:
        """任务总数."""
        with self._db.session_scope() as session:
            return session.query(JobRecord).count()

    def list_for_template(self, template_id: str) -> list[Job]:
        """列出某个模板的所有任务（新任务在前）."""
        with self._db.session_scope() as session:
            records = (
                session.query(JobRecord)
                .filter(JobRecord.template_id == template_id)
                .order_by(JobRecord.created_at.desc())
                .all()
            )
            return [_to_model(r) for r in records]
