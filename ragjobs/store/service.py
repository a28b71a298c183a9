from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ragjobs.db.models import (
    ACTIVE_STATUSES,
    ArticleIntelligenceResult,
    Base,
    Process,
    ProcessStatus,
    ProcessType,
    ReviewArticleResult,
    StructuredSummaryResult,
)
from ragjobs.store.types import Collection

Record = dict[str, Any]

_MODELS: dict[Collection, type[Base]] = {
    Collection.PROCESSES: Process,
    Collection.ARTICLE_INTELLIGENCE: ArticleIntelligenceResult,
    Collection.STRUCTURED_SUMMARY: StructuredSummaryResult,
    Collection.REVIEW_ARTICLE: ReviewArticleResult,
}

_RESULT_META_KEYS = frozenset({"id", "process_id", "from_batch", "batch_id", "timestamp", "last_updated"})


class StoreError(RuntimeError):
    pass


class RecordNotFoundError(StoreError):
    pass


class RecordStore:
    """Durable keyed storage with one table per collection.

    Every write replaces the whole record. There is no locking across calls:
    two writers updating the same id concurrently resolve as last write wins.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def _now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def _coerce_utc(self, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def init(self) -> None:
        try:
            with self._session_factory() as session:
                Base.metadata.create_all(bind=session.get_bind())
        except SQLAlchemyError as exc:
            raise StoreError("Failed to initialize collections") from exc

    def put(self, collection: Collection | str, record: Record) -> Record:
        target = Collection(collection)
        record_id = record.get("id")
        if not record_id:
            raise ValueError("record id is required")
        model = _MODELS[target]
        now = self._now()
        try:
            with self._session_factory() as session:
                row = session.get(model, str(record_id))
                if row is None:
                    row = model(id=str(record_id))
                    session.add(row)
                if target == Collection.PROCESSES:
                    self._apply_process(row, record, now)
                else:
                    self._apply_result(target, row, record, now)
                session.commit()
                session.refresh(row)
                return self._to_record(target, row)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to write {target.value}/{record_id}") from exc

    def update(self, collection: Collection | str, record_id: str, changes: Record) -> Record:
        target = Collection(collection)
        current = self.get_by_id(target, record_id)
        if current is None:
            raise RecordNotFoundError(f"Record not found: {target.value}/{record_id}")
        return self.put(target, {**current, **changes, "id": record_id})

    def get_by_id(self, collection: Collection | str, record_id: str) -> Record | None:
        target = Collection(collection)
        try:
            with self._session_factory() as session:
                row = session.get(_MODELS[target], record_id)
                return None if row is None else self._to_record(target, row)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read {target.value}/{record_id}") from exc

    def get_all(self, collection: Collection | str) -> list[Record]:
        target = Collection(collection)
        model = _MODELS[target]
        try:
            with self._session_factory() as session:
                rows = session.scalars(select(model).order_by(model.timestamp.asc(), model.id.asc())).all()
                return [self._to_record(target, row) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list {target.value}") from exc

    def delete(self, collection: Collection | str, record_id: str) -> bool:
        target = Collection(collection)
        model = _MODELS[target]
        try:
            with self._session_factory() as session:
                result = session.execute(delete(model).where(model.id == record_id))
                session.commit()
                return bool(result.rowcount)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to delete {target.value}/{record_id}") from exc

    def clear(self, collection: Collection | str) -> int:
        target = Collection(collection)
        try:
            with self._session_factory() as session:
                result = session.execute(delete(_MODELS[target]))
                session.commit()
                return int(result.rowcount or 0)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to clear {target.value}") from exc

    def query_active(self, process_type: ProcessType | str | None = None) -> list[Record]:
        stmt = select(Process).where(Process.status.in_(list(ACTIVE_STATUSES)))
        if process_type is not None:
            stmt = stmt.where(Process.type == ProcessType(process_type))
        stmt = stmt.order_by(Process.timestamp.asc(), Process.id.asc())
        try:
            with self._session_factory() as session:
                return [self._to_record(Collection.PROCESSES, row) for row in session.scalars(stmt).all()]
        except SQLAlchemyError as exc:
            raise StoreError("Failed to query active processes") from exc

    def _apply_process(self, row: Process, record: Record, now: datetime) -> None:
        row.type = ProcessType(record["type"])
        row.status = ProcessStatus(record.get("status") or ProcessStatus.PENDING)
        row.action = str(record["action"])
        row.payload = dict(record.get("payload") or {})
        row.message = record.get("message")
        row.result = record.get("result")
        row.error = record.get("error")
        row.timestamp = record.get("timestamp") or row.timestamp or now
        row.last_updated = now
        row.completed_at = record.get("completed_at")

    def _apply_result(self, target: Collection, row: Any, record: Record, now: datetime) -> None:
        row.process_id = record.get("process_id")
        row.data = {key: value for key, value in record.items() if key not in _RESULT_META_KEYS}
        row.timestamp = record.get("timestamp") or row.timestamp or now
        row.last_updated = now
        if target == Collection.STRUCTURED_SUMMARY:
            row.from_batch = bool(record.get("from_batch", False))
            row.batch_id = record.get("batch_id")

    def _to_record(self, target: Collection, row: Any) -> Record:
        if target == Collection.PROCESSES:
            return {
                "id": row.id,
                "type": row.type,
                "status": row.status,
                "action": row.action,
                "payload": row.payload,
                "message": row.message,
                "result": row.result,
                "error": row.error,
                "timestamp": self._coerce_utc(row.timestamp),
                "last_updated": self._coerce_utc(row.last_updated),
                "completed_at": self._coerce_utc(row.completed_at),
            }

        record: Record = dict(row.data or {})
        record.update(
            {
                "id": row.id,
                "process_id": row.process_id,
                "timestamp": self._coerce_utc(row.timestamp),
                "last_updated": self._coerce_utc(row.last_updated),
            }
        )
        if target == Collection.STRUCTURED_SUMMARY:
            record["from_batch"] = row.from_batch
            record["batch_id"] = row.batch_id
        return record
