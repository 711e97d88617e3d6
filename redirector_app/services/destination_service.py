import uuid
from typing import List, Optional

from sqlalchemy import func, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from redirector_app.config import settings
from redirector_app.database.connection import atomic
from redirector_app.errors import ImmutableField, NotFound, SlugConflict
from redirector_app.models import (
    Alias,
    AuditEntryType,
    ClaimedSlug,
    Destination,
    Hit,
    User,
)
from redirector_app.schemas.destination import DestinationStats
from redirector_app.services.access import ensure_allowed
from redirector_app.services.audit_trail import AuditTrailRecorder
from redirector_app.services.slugs import normalize_slug


def claim_slug(db: Session, raw_slug: str) -> str:
    """
    Normalize a slug and claim it in the shared destination/alias namespace.

    The claim is an INSERT against the slugs table: a concurrent or earlier claim
    (live or deleted owner) violates its primary key and surfaces as SlugConflict.
    Must run inside the caller's transaction.
    """
    slug = normalize_slug(raw_slug, settings.reserved_slug_prefix)
    try:
        db.execute(insert(ClaimedSlug).values(slug=slug))
    except IntegrityError as e:
        raise SlugConflict(f'Slug "{slug}" is already in use') from e
    return slug


def find_live_destination(db: Session, destination_id: uuid.UUID) -> Destination:
    destination = db.query(Destination).filter(
        Destination.id == destination_id,
        Destination.deleted_at.is_(None)
    ).first()
    if not destination:
        raise NotFound("Destination not found")
    return destination


class DestinationService:
    """
    Destination registry.

    Every mutation runs in one transaction together with its audit trail entry.
    """

    def __init__(self, db: Session, audit_trail: Optional[AuditTrailRecorder] = None):
        self.db = db
        self.audit_trail = audit_trail or AuditTrailRecorder(db)

    async def create_destination(
        self,
        actor: User,
        slug: str,
        url: str,
        is_permanent: bool = False,
        forward_query_parameters: bool = False,
        ip_address: Optional[str] = None,
    ) -> Destination:
        """
        Register a new destination.

        Raises:
            InvalidSlug: the slug fails normalization
            SlugConflict: the slug is (or was) claimed by a destination or alias
        """
        ensure_allowed(actor)

        with atomic(self.db):
            normalized = claim_slug(self.db, slug)
            destination = Destination(
                user_id=actor.id,
                slug=normalized,
                url=str(url),
                is_permanent=is_permanent,
                forward_query_parameters=forward_query_parameters,
            )
            self.db.add(destination)
            self.db.flush()

            self.audit_trail.record(
                actor,
                AuditEntryType.CREATE_DESTINATION,
                destination=destination,
                ip_address=ip_address,
            )

        self.db.refresh(destination)
        return destination

    async def update_destination(
        self,
        actor: User,
        destination_id: uuid.UUID,
        url: Optional[str] = None,
        is_permanent: Optional[bool] = None,
        forward_query_parameters: Optional[bool] = None,
        ip_address: Optional[str] = None,
    ) -> Destination:
        """
        Update url and/or flags. The slug can never be updated.

        Rules:
        - a permanent destination keeps its url forever
        - is_permanent only moves false -> true

        An audit entry is written only when something actually changed.

        Raises:
            NotFound: unknown or deleted destination
            ImmutableField: one of the rules above is violated
        """
        ensure_allowed(actor)

        with atomic(self.db):
            destination = find_live_destination(self.db, destination_id)
            changed = False

            if url is not None and str(url) != destination.url:
                if destination.is_permanent:
                    raise ImmutableField("Permanent URLs can not be updated")
                destination.url = str(url)
                changed = True

            if is_permanent is not None and is_permanent != destination.is_permanent:
                if destination.is_permanent:
                    raise ImmutableField("Permanent URLs can not be made temporary")
                destination.is_permanent = True
                changed = True

            if (
                forward_query_parameters is not None
                and forward_query_parameters != destination.forward_query_parameters
            ):
                destination.forward_query_parameters = forward_query_parameters
                changed = True

            if changed:
                self.db.flush()
                self.audit_trail.record(
                    actor,
                    AuditEntryType.UPDATE_DESTINATION,
                    destination=destination,
                    ip_address=ip_address,
                )

        self.db.refresh(destination)
        return destination

    async def delete_destination(
        self,
        actor: User,
        destination_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> None:
        """
        Soft delete. The slug stays burned; aliases are left as they are and
        stop resolving because their destination is gone.
        """
        ensure_allowed(actor)

        with atomic(self.db):
            destination = find_live_destination(self.db, destination_id)
            destination.soft_delete()
            self.db.flush()

            self.audit_trail.record(
                actor,
                AuditEntryType.DELETE_DESTINATION,
                destination=destination,
                ip_address=ip_address,
            )

    async def get_destination(self, actor: User, destination_id: uuid.UUID) -> Destination:
        ensure_allowed(actor)
        return find_live_destination(self.db, destination_id)

    async def list_destinations(self, actor: User) -> List[Destination]:
        ensure_allowed(actor)
        return self.db.query(Destination).filter(
            Destination.deleted_at.is_(None)
        ).order_by(Destination.created_at).all()

    async def list_live_aliases(self, destination: Destination) -> List[Alias]:
        return self.db.query(Alias).filter(
            Alias.destination_id == destination.id,
            Alias.deleted_at.is_(None)
        ).order_by(Alias.created_at).all()

    async def get_destination_stats(self, actor: User, destination_id: uuid.UUID) -> DestinationStats:
        """Hit statistics for a destination (hits through its aliases included)"""
        destination = await self.get_destination(actor, destination_id)

        total_hits, last_hit_at = self.db.query(
            func.count(Hit.id), func.max(Hit.created_at)
        ).filter(Hit.destination_id == destination.id).one()

        return DestinationStats(
            slug=destination.slug,
            total_hits=total_hits,
            created_at=destination.created_at,
            last_hit_at=last_hit_at,
        )
