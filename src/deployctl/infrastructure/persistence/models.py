"""SQLAlchemy ORM models."""

from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class ServiceORM(Base):
    __tablename__ = "services"

    name = Column(String(255), primary_key=True)
    cluster = Column(String(255), nullable=False)
    active_sequence = Column(Integer, nullable=True)
    active_artifact_ref = Column(String(512), nullable=True)
    revision_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class RevisionORM(Base):
    """Append-only ledger keyed by (service, sequence)."""

    __tablename__ = "revisions"

    service = Column(String(255), primary_key=True)
    sequence = Column(Integer, primary_key=True, autoincrement=False)
    artifact_ref = Column(String(512), nullable=False)
    outcome = Column(String(32), nullable=False)
    rolled_back_from = Column(Integer, nullable=True)
    operation_id = Column(String(36), nullable=False, default="")
    actor = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_revisions_service_outcome", "service", "outcome"),
    )


class LifecycleEventORM(Base):
    __tablename__ = "lifecycle_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), nullable=False, unique=True)
    event_type = Column(String(64), nullable=False)
    kind = Column(String(32), nullable=False)
    operation_id = Column(String(36), nullable=False, index=True)
    service = Column(String(255), nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    payload = Column(JSON, nullable=False)
    diagnostic = Column(Text, nullable=True, default="")

    __table_args__ = (
        Index("ix_lifecycle_events_service_id", "service", "id"),
    )
