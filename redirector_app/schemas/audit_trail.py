import uuid
from datetime import datetime
from typing import Optional

from redirector_app.models.enums import AuditEntryType
from redirector_app.schemas.common import CamelModel


class AuditTrailEntryResponse(CamelModel):
    id: uuid.UUID
    type: AuditEntryType
    created_by: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    destination_id: Optional[uuid.UUID] = None
    alias_id: Optional[uuid.UUID] = None
    note_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = None
    created_at: datetime
