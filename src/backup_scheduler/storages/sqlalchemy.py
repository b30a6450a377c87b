from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, delete
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.future import select
from sqlalchemy.orm import declarative_base, sessionmaker

from backup_scheduler.domain.history import BackupHistory
from backup_scheduler.domain.job import BackupJob, BackupStatus
from backup_scheduler.storages.protocol import Storage

Base = declarative_base()

class BackupJobModel(Base):
    __tablename__ = 'backup_jobs'

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, default="")
    is_enabled = Column(Boolean, default=True)
    source_paths = Column(JSON, nullable=False)
    destination_path = Column(String, nullable=False)
    schedule = Column(JSON, nullable=False)
    options = Column(JSON, nullable=False)
    last_run_time = Column(DateTime)
    last_run_status = Column(String, nullable=False)
    last_backup_size = Column(Integer, default=0)
    total_backup_count = Column(Integer, default=0)
    next_run_time = Column(DateTime)
    created_at = Column(DateTime, nullable=False)
    modified_at = Column(DateTime, nullable=False)

class BackupHistoryModel(Base):
    __tablename__ = 'backup_history'

    id = Column(String, primary_key=True)
    job_id = Column(String, nullable=False, index=True)
    job_name = Column(String, default="")
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime)
    status = Column(String, nullable=False)
    error_message = Column(String)
    total_files = Column(Integer, default=0)
    processed_files = Column(Integer, default=0)
    failed_files = Column(Integer, default=0)
    total_bytes = Column(Integer, default=0)
    processed_bytes = Column(Integer, default=0)
    warnings = Column(JSON)
    errors = Column(JSON)
    destination_path = Column(String, default="")

class SqlAlchemyStorage(Storage):
    def __init__(self, db_url: str):
        self.engine = create_async_engine(db_url)
        self.async_session = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()

    async def load_jobs(self) -> List[BackupJob]:
        async with self.async_session() as session:
            result = await session.execute(select(BackupJobModel).order_by(BackupJobModel.created_at))
            return [self._db_to_job(db_job) for db_job in result.scalars()]

    async def load_job(self, job_id: str) -> Optional[BackupJob]:
        async with self.async_session() as session:
            result = await session.execute(select(BackupJobModel).filter_by(id=job_id))
            db_job = result.scalar_one_or_none()
            return self._db_to_job(db_job) if db_job else None

    async def save_job(self, job: BackupJob) -> None:
        async with self.async_session() as session:
            result = await session.execute(select(BackupJobModel).filter_by(id=job.id))
            db_job = result.scalar_one_or_none()
            now = datetime.now()
            if db_job is None:
                job.created_at = now
                db_job = BackupJobModel(id=job.id)
                session.add(db_job)
            job.modified_at = now
            self._apply_job(db_job, job)
            await session.commit()

    async def delete_job(self, job_id: str) -> bool:
        async with self.async_session() as session:
            result = await session.execute(select(BackupJobModel).filter_by(id=job_id))
            db_job = result.scalar_one_or_none()
            if db_job:
                await session.delete(db_job)
                await session.commit()
                return True
            return False

    async def load_history(self, limit: int = 100) -> List[BackupHistory]:
        async with self.async_session() as session:
            result = await session.execute(
                select(BackupHistoryModel)
                .order_by(BackupHistoryModel.start_time.desc())
                .limit(limit)
            )
            return [self._db_to_history(db_history) for db_history in result.scalars()]

    async def load_history_for_job(self, job_id: str, limit: int = 50) -> List[BackupHistory]:
        async with self.async_session() as session:
            result = await session.execute(
                select(BackupHistoryModel)
                .filter_by(job_id=job_id)
                .order_by(BackupHistoryModel.start_time.desc())
                .limit(limit)
            )
            return [self._db_to_history(db_history) for db_history in result.scalars()]

    async def save_history(self, history: BackupHistory) -> None:
        async with self.async_session() as session:
            db_history = BackupHistoryModel(
                id=history.id,
                job_id=history.job_id,
                job_name=history.job_name,
                start_time=history.start_time,
                end_time=history.end_time,
                status=history.status.value,
                error_message=history.error_message,
                total_files=history.total_files,
                processed_files=history.processed_files,
                failed_files=history.failed_files,
                total_bytes=history.total_bytes,
                processed_bytes=history.processed_bytes,
                warnings=list(history.warnings),
                errors=list(history.errors),
                destination_path=history.destination_path
            )
            session.add(db_history)
            await session.commit()

    async def cleanup_history(self, keep_days: int = 90) -> int:
        cutoff = datetime.now() - timedelta(days=keep_days)
        async with self.async_session() as session:
            result = await session.execute(
                delete(BackupHistoryModel).where(BackupHistoryModel.start_time < cutoff)
            )
            await session.commit()
            return result.rowcount or 0

    def _apply_job(self, db_job: BackupJobModel, job: BackupJob) -> None:
        db_job.name = job.name
        db_job.description = job.description
        db_job.is_enabled = job.is_enabled
        db_job.source_paths = list(job.source_paths)
        db_job.destination_path = job.destination_path
        db_job.schedule = job.schedule.model_dump(mode="json")
        db_job.options = job.options.model_dump(mode="json")
        db_job.last_run_time = job.last_run_time
        db_job.last_run_status = job.last_run_status.value
        db_job.last_backup_size = job.last_backup_size
        db_job.total_backup_count = job.total_backup_count
        db_job.next_run_time = job.next_run_time
        db_job.created_at = job.created_at
        db_job.modified_at = job.modified_at

    def _db_to_job(self, db_job: BackupJobModel) -> BackupJob:
        return BackupJob.model_validate({
            "id": db_job.id,
            "name": db_job.name,
            "description": db_job.description or "",
            "is_enabled": db_job.is_enabled,
            "source_paths": db_job.source_paths or [],
            "destination_path": db_job.destination_path,
            "schedule": db_job.schedule,
            "options": db_job.options,
            "last_run_time": db_job.last_run_time,
            "last_run_status": BackupStatus(db_job.last_run_status),
            "last_backup_size": db_job.last_backup_size or 0,
            "total_backup_count": db_job.total_backup_count or 0,
            "next_run_time": db_job.next_run_time,
            "created_at": db_job.created_at,
            "modified_at": db_job.modified_at,
        })

    def _db_to_history(self, db_history: BackupHistoryModel) -> BackupHistory:
        return BackupHistory(
            id=db_history.id,
            job_id=db_history.job_id,
            job_name=db_history.job_name or "",
            start_time=db_history.start_time,
            end_time=db_history.end_time,
            status=BackupStatus(db_history.status),
            error_message=db_history.error_message,
            total_files=db_history.total_files or 0,
            processed_files=db_history.processed_files or 0,
            failed_files=db_history.failed_files or 0,
            total_bytes=db_history.total_bytes or 0,
            processed_bytes=db_history.processed_bytes or 0,
            warnings=db_history.warnings or [],
            errors=db_history.errors or [],
            destination_path=db_history.destination_path or ""
        )


class InMemoryStorage(SqlAlchemyStorage):
    def __init__(self):
        super().__init__("sqlite+aiosqlite:///:memory:")
