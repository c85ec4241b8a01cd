"""Key-value slot table backing the marketplace collections."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from atlas.core.database import Base


class StorageSlot(Base):
    """One named slot holding a whole serialized collection."""

    __tablename__ = "storage_slots"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    records: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=list,
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StorageSlot(key={self.key!r}, records={len(self.records or [])})>"
