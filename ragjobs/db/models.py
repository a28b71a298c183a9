from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SAEnum,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class ProcessType(str, Enum):
    ARTICLE_INTELLIGENCE = "article_intelligence"
    STRUCTURED_SUMMARY = "structured_summary"
    REVIEW_ARTICLE = "review_article"
    BATCH_SUMMARY = "batch_summary"


class ProcessStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"
    TERMINATED = "terminated"


ACTIVE_STATUSES = frozenset({ProcessStatus.PENDING, ProcessStatus.RUNNING})
TERMINAL_STATUSES = frozenset(
    {ProcessStatus.COMPLETED, ProcessStatus.ERROR, ProcessStatus.CANCELLED, ProcessStatus.TERMINATED}
)


class Process(Base):
    __tablename__ = "processes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    type: Mapped[ProcessType] = mapped_column(
        SAEnum(ProcessType, native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    status: Mapped[ProcessStatus] = mapped_column(
        SAEnum(ProcessStatus, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=ProcessStatus.PENDING,
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON(none_as_null=True), nullable=False, default=dict)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    result: Mapped[Any | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_processes_type_status", "type", "status"),
        Index("ix_processes_status", "status"),
        Index("ix_processes_timestamp", "timestamp"),
    )


class ArticleIntelligenceResult(Base):
    __tablename__ = "article_intelligence"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    process_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON(none_as_null=True), nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("ix_article_intelligence_timestamp", "timestamp"),)


class StructuredSummaryResult(Base):
    __tablename__ = "structured_summary"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    process_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    from_batch: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    batch_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON(none_as_null=True), nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_structured_summary_timestamp", "timestamp"),
        Index("ix_structured_summary_batch", "batch_id"),
    )


class ReviewArticleResult(Base):
    __tablename__ = "review_article"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    process_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON(none_as_null=True), nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("ix_review_article_timestamp", "timestamp"),)
