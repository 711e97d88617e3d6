import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from redirector_app.models import Alias, AuditEntryType, AuditTrailEntry, Destination, Note, User


class AuditTrailRecorder:
    """
    Appends audit trail entries to the caller's transaction.

    The recorder never commits: the service performing the mutation commits the
    mutation and its entry together, and a failure here (it is never swallowed)
    rolls both back.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        actor: User,
        entry_type: AuditEntryType,
        *,
        user: Optional[User] = None,
        destination: Optional[Destination] = None,
        alias: Optional[Alias] = None,
        note: Optional[Note] = None,
        ip_address: Optional[str] = None,
    ) -> AuditTrailEntry:
        entry = AuditTrailEntry(
            created_by=actor.id,
            type=entry_type,
            user_id=user.id if user is not None else None,
            destination_id=destination.id if destination is not None else None,
            alias_id=alias.id if alias is not None else None,
            note_id=note.id if note is not None else None,
            ip_address=ip_address,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list(
        self,
        limit: int = 100,
        destination_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> List[AuditTrailEntry]:
        """
        Newest entries first, optionally narrowed to one destination, the user an
        entry is about (user_id) or the user who caused it (actor_id)
        """
        query = self.db.query(AuditTrailEntry)
        if destination_id is not None:
            query = query.filter(AuditTrailEntry.destination_id == destination_id)
        if user_id is not None:
            query = query.filter(AuditTrailEntry.user_id == user_id)
        if actor_id is not None:
            query = query.filter(AuditTrailEntry.created_by == actor_id)
        return query.order_by(AuditTrailEntry.created_at.desc()).limit(limit).all()
