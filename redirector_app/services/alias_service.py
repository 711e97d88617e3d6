import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from redirector_app.database.connection import atomic
from redirector_app.errors import NotFound
from redirector_app.models import Alias, AuditEntryType, User
from redirector_app.services.access import ensure_allowed
from redirector_app.services.audit_trail import AuditTrailRecorder
from redirector_app.services.destination_service import claim_slug, find_live_destination


class AliasService:
    """
    Aliases: extra slugs resolving through a destination.

    Aliases share the slug namespace (and its burned-slug rule) with destinations.
    """

    def __init__(self, db: Session, audit_trail: Optional[AuditTrailRecorder] = None):
        self.db = db
        self.audit_trail = audit_trail or AuditTrailRecorder(db)

    def _find_alias(self, destination_id: uuid.UUID, alias_id: uuid.UUID) -> Alias:
        alias = self.db.query(Alias).filter(
            Alias.id == alias_id,
            Alias.destination_id == destination_id,
            Alias.deleted_at.is_(None)
        ).first()
        if not alias:
            raise NotFound("Alias not found")
        return alias

    async def create_alias(
        self,
        actor: User,
        destination_id: uuid.UUID,
        slug: str,
        ip_address: Optional[str] = None,
    ) -> Alias:
        """
        Create an alias for a live destination.

        Raises:
            NotFound: unknown or deleted destination
            InvalidSlug / SlugConflict: same rules as destinations
        """
        ensure_allowed(actor)

        with atomic(self.db):
            destination = find_live_destination(self.db, destination_id)
            normalized = claim_slug(self.db, slug)

            alias = Alias(user_id=actor.id, slug=normalized, destination_id=destination.id)
            self.db.add(alias)
            self.db.flush()

            self.audit_trail.record(
                actor,
                AuditEntryType.CREATE_ALIAS,
                destination=destination,
                alias=alias,
                ip_address=ip_address,
            )

        self.db.refresh(alias)
        return alias

    async def delete_alias(
        self,
        actor: User,
        destination_id: uuid.UUID,
        alias_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> None:
        """Soft delete; the alias slug stays burned"""
        ensure_allowed(actor)

        with atomic(self.db):
            destination = find_live_destination(self.db, destination_id)
            alias = self._find_alias(destination.id, alias_id)
            alias.soft_delete()
            self.db.flush()

            self.audit_trail.record(
                actor,
                AuditEntryType.DELETE_ALIAS,
                destination=destination,
                alias=alias,
                ip_address=ip_address,
            )

    async def get_alias(self, actor: User, destination_id: uuid.UUID, alias_id: uuid.UUID) -> Alias:
        ensure_allowed(actor)
        destination = find_live_destination(self.db, destination_id)
        return self._find_alias(destination.id, alias_id)

    async def list_aliases(self, actor: User, destination_id: uuid.UUID) -> List[Alias]:
        ensure_allowed(actor)
        destination = find_live_destination(self.db, destination_id)
        return self.db.query(Alias).filter(
            Alias.destination_id == destination.id,
            Alias.deleted_at.is_(None)
        ).order_by(Alias.created_at).all()
