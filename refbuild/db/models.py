from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from refbuild.db.base import Base


class ReferenceBuildRecord(Base):
    """Persisted reference build of an originating build."""

    __tablename__ = "reference_builds"

    owner_build_id: Mapped[str] = mapped_column(String(512), primary_key=True)
    reference_job_name: Mapped[str | None] = mapped_column(String(512))
    reference_build_id: Mapped[str | None] = mapped_column(String(512))
    messages: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
