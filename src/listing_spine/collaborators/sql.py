"""SQLAlchemy-backed draft and entity stores.

Each persist step is one short transaction. The unique ``draft_id`` column on
every entity table is what makes concurrent publishes of the same draft safe:
the loser's INSERT fails, and ``create`` reports it as ``DuplicateEntityError``
so the publishing workflow can fall back to an update.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from listing_spine.core.errors import DuplicateEntityError, NotFoundError
from listing_spine.core.logging import get_logger
from listing_spine.core.orm.base import from_db
from listing_spine.core.orm.tables import (
    DeveloperTable,
    DraftTable,
    PgHostelTable,
    ProjectTable,
    PropertyTable,
)
from listing_spine.domain.models import (
    Draft,
    DraftStatus,
    EntityKind,
    PublishableEntity,
    PublishStatus,
    VerificationStatus,
)

logger = get_logger(__name__)

ENTITY_TABLES = {
    EntityKind.PROPERTY: PropertyTable,
    EntityKind.PG: PgHostelTable,
    EntityKind.PROJECT: ProjectTable,
    EntityKind.DEVELOPER: DeveloperTable,
}


class SqlDraftStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._sessions = session_factory

    def add(self, draft: Draft) -> Draft:
        with self._sessions.begin() as session:
            session.merge(
                DraftTable(
                    draft_id=str(draft.id),
                    owner_id=str(draft.owner_id),
                    draft_type=draft.type_tag.value,
                    payload=draft.payload,
                    status=draft.status.value,
                )
            )
        return draft

    def find_draft(self, draft_id: str, owner_id: str, type_tag: EntityKind) -> Draft | None:
        with self._sessions() as session:
            row = session.execute(
                select(DraftTable).where(
                    DraftTable.draft_id == str(draft_id),
                    DraftTable.owner_id == str(owner_id),
                    DraftTable.draft_type == type_tag.value,
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            return Draft(
                id=row.draft_id,
                owner_id=row.owner_id,
                type_tag=EntityKind(row.draft_type),
                payload=row.payload,
                status=DraftStatus(row.status),
            )

    def mark_published(self, draft_id: str) -> None:
        with self._sessions.begin() as session:
            row = session.get(DraftTable, str(draft_id))
            if row is None:
                raise NotFoundError(f"Draft {draft_id} not found")
            row.status = DraftStatus.PUBLISHED.value


class SqlEntityStore:
    def __init__(self, kind: EntityKind, session_factory: sessionmaker[Session]) -> None:
        self.kind = kind
        self._table = ENTITY_TABLES[kind]
        self._sessions = session_factory

    def _to_entity(self, row: Any) -> PublishableEntity:
        return PublishableEntity(
            id=str(row.id),
            kind=self.kind,
            draft_id=row.draft_id,
            owner_id=row.owner_id,
            display_name=row.display_name,
            verification_status=VerificationStatus(row.verification_status),
            publish_status=PublishStatus(row.publish_status),
            attributes=dict(row.attributes or {}),
            created_at=from_db(row.created_at),
            updated_at=from_db(row.updated_at),
        )

    def find_by_draft_id(self, draft_id: str) -> PublishableEntity | None:
        with self._sessions() as session:
            row = session.execute(
                select(self._table).where(self._table.draft_id == str(draft_id))
            ).scalar_one_or_none()
            return self._to_entity(row) if row is not None else None

    def create(self, owner_id: str, draft_id: str, display_name: str,
               attributes: dict[str, Any]) -> PublishableEntity:
        row = self._table(
            draft_id=str(draft_id),
            owner_id=str(owner_id),
            display_name=display_name,
            verification_status=VerificationStatus.PENDING.value,
            publish_status=PublishStatus.PENDING_REVIEW.value,
            attributes=dict(attributes),
        )
        try:
            with self._sessions.begin() as session:
                session.add(row)
        except IntegrityError as exc:
            logger.warning("entity.duplicate_draft", kind=self.kind.value, draft_id=draft_id)
            raise DuplicateEntityError(
                f"{self.kind.value} already exists for draft {draft_id}",
                draft_id=str(draft_id),
                cause=exc,
            ) from exc
        return self._to_entity(row)

    def update(self, entity_id: str, owner_id: str, display_name: str,
               attributes: dict[str, Any]) -> PublishableEntity:
        with self._sessions.begin() as session:
            row = session.get(self._table, int(entity_id))
            if row is None or row.owner_id != str(owner_id):
                raise NotFoundError(f"{self.kind.value} {entity_id} not found or unauthorized")
            row.display_name = display_name
            # JSON columns are not mutation-tracked: assign a new dict.
            row.attributes = {**(row.attributes or {}), **attributes}
            session.flush()
            return self._to_entity(row)


def build_sql_entity_stores(session_factory: sessionmaker[Session]) -> dict[EntityKind, SqlEntityStore]:
    return {kind: SqlEntityStore(kind, session_factory) for kind in EntityKind}


__all__ = ["SqlDraftStore", "SqlEntityStore", "build_sql_entity_stores", "ENTITY_TABLES"]
