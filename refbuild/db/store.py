"""Persistence of resolved reference builds.

A reference build is computed once per originating build and never changes
afterwards. Later trend and diff computations look it up by the originating
build id instead of resolving again.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy.engine import Engine

from refbuild.core.reference.engine import ReferenceBuild
from refbuild.db.base import Base, session_factory, session_scope
from refbuild.db.models import ReferenceBuildRecord

log = logger.bind(module="db.store")

__all__ = ["ReferenceStore", "ReferenceStoreError"]


class ReferenceStoreError(RuntimeError):
    """Raised when a stored reference build would be overwritten."""


def _to_reference(record: ReferenceBuildRecord) -> ReferenceBuild:
    return ReferenceBuild(
        owner=record.owner_build_id,
        reference_job_name=record.reference_job_name,
        reference_build_id=record.reference_build_id,
        messages=tuple(str(m) for m in record.messages or ()),
    )


class ReferenceStore:
    """Store of ``ReferenceBuild`` outcomes keyed by originating build id."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = session_factory(engine)

    def ensure_schema(self) -> None:
        """Create the reference table if needed; safe to call repeatedly."""
        Base.metadata.create_all(bind=self.engine, tables=[ReferenceBuildRecord.__table__])

    def save(self, reference: ReferenceBuild) -> ReferenceBuild:
        """Persist ``reference`` and return the stored value.

        Saving the same outcome twice is a no-op; a different outcome for an
        already stored build raises ``ReferenceStoreError``.
        """
        with session_scope(self._sessions) as session:
            existing = session.get(ReferenceBuildRecord, reference.owner)
            if existing is not None:
                stored = _to_reference(existing)
                if stored != reference:
                    raise ReferenceStoreError(
                        f"Reference build of {reference.owner!r} is already stored "
                        f"as {stored.reference_build_id_or_dash!r}.",
                    )
                return stored
            session.add(
                ReferenceBuildRecord(
                    owner_build_id=reference.owner,
                    reference_job_name=reference.reference_job_name,
                    reference_build_id=reference.reference_build_id,
                    messages=list(reference.messages),
                ),
            )
        log.info("Stored reference {} for {}", reference.reference_build_id_or_dash, reference.owner)
        return reference

    def get(self, owner_build_id: str) -> ReferenceBuild | None:
        with session_scope(self._sessions) as session:
            record = session.get(ReferenceBuildRecord, owner_build_id)
            return _to_reference(record) if record is not None else None
