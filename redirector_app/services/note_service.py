import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from redirector_app.database.connection import atomic
from redirector_app.errors import NotFound
from redirector_app.models import AuditEntryType, Note, User
from redirector_app.services.access import ensure_allowed
from redirector_app.services.audit_trail import AuditTrailRecorder
from redirector_app.services.destination_service import find_live_destination


class NoteService:
    """Free-text notes attached to a destination"""

    def __init__(self, db: Session, audit_trail: Optional[AuditTrailRecorder] = None):
        self.db = db
        self.audit_trail = audit_trail or AuditTrailRecorder(db)

    def _find_note(self, destination_id: uuid.UUID, note_id: uuid.UUID) -> Note:
        note = self.db.query(Note).filter(
            Note.id == note_id,
            Note.destination_id == destination_id,
            Note.deleted_at.is_(None)
        ).first()
        if not note:
            raise NotFound("Note not found")
        return note

    async def create_note(
        self,
        actor: User,
        destination_id: uuid.UUID,
        content: str,
        ip_address: Optional[str] = None,
    ) -> Note:
        ensure_allowed(actor)

        with atomic(self.db):
            destination = find_live_destination(self.db, destination_id)
            note = Note(user_id=actor.id, destination_id=destination.id, content=content)
            self.db.add(note)
            self.db.flush()

            self.audit_trail.record(
                actor,
                AuditEntryType.CREATE_NOTE,
                destination=destination,
                note=note,
                ip_address=ip_address,
            )

        self.db.refresh(note)
        return note

    async def update_note(
        self,
        actor: User,
        destination_id: uuid.UUID,
        note_id: uuid.UUID,
        content: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Note:
        """Update content; unchanged content writes no audit entry"""
        ensure_allowed(actor)

        with atomic(self.db):
            destination = find_live_destination(self.db, destination_id)
            note = self._find_note(destination.id, note_id)

            if content is not None and content != note.content:
                note.content = content
                self.db.flush()

                self.audit_trail.record(
                    actor,
                    AuditEntryType.UPDATE_NOTE,
                    destination=destination,
                    note=note,
                    ip_address=ip_address,
                )

        self.db.refresh(note)
        return note

    async def delete_note(
        self,
        actor: User,
        destination_id: uuid.UUID,
        note_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> None:
        ensure_allowed(actor)

        with atomic(self.db):
            destination = find_live_destination(self.db, destination_id)
            note = self._find_note(destination.id, note_id)
            note.soft_delete()
            self.db.flush()

            self.audit_trail.record(
                actor,
                AuditEntryType.DELETE_NOTE,
                destination=destination,
                note=note,
                ip_address=ip_address,
            )

    async def get_note(self, actor: User, destination_id: uuid.UUID, note_id: uuid.UUID) -> Note:
        ensure_allowed(actor)
        destination = find_live_destination(self.db, destination_id)
        return self._find_note(destination.id, note_id)

    async def list_notes(self, actor: User, destination_id: uuid.UUID) -> List[Note]:
        ensure_allowed(actor)
        destination = find_live_destination(self.db, destination_id)
        return self.db.query(Note).filter(
            Note.destination_id == destination.id,
            Note.deleted_at.is_(None)
        ).order_by(Note.created_at).all()
