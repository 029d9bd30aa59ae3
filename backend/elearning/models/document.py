from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from elearning.db.base import Base


class Document(Base):
    """One leaf of the path-addressed document tree.

    Nested values are flattened into one row per scalar, so ``Progression/u1/c1/m1/score``
    is its own row. A row never has rows below it.
    """

    __tablename__ = "documents"

    path: Mapped[str] = mapped_column(String(1024), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
