"""EntityRecord ORM — one row per persisted entity, keyed by (kind, entity_id).

Invariants:
    - version is the optimistic-concurrency token; it only ever increases
    - payload is the entity codec's JSON; the ORM never interprets it

Design Decisions:
    - One generic table instead of a table per entity: the core works in
      whole aggregates loaded and saved by id, never in joins
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from agora.db.base import Base


class EntityRecord(Base):
    __tablename__ = "entity_records"

    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    entity_id: Mapped[str] = mapped_column(String(300), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
