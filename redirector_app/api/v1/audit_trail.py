import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from redirector_app.dependencies import get_audit_trail, get_current_admin
from redirector_app.models import User
from redirector_app.schemas.audit_trail import AuditTrailEntryResponse
from redirector_app.services.audit_trail import AuditTrailRecorder

router = APIRouter(prefix="/audit-trail", tags=["audit-trail"])


@router.get("", response_model=List[AuditTrailEntryResponse])
async def list_audit_trail(
    limit: int = Query(100, ge=1, le=1000),
    destination_id: Optional[uuid.UUID] = Query(None, alias="destinationId"),
    user_id: Optional[uuid.UUID] = Query(None, alias="userId"),
    actor_id: Optional[uuid.UUID] = Query(None, alias="actorId"),
    current_user: User = Depends(get_current_admin),
    audit_trail: AuditTrailRecorder = Depends(get_audit_trail)
):
    """
    Most recent audit trail entries (admins only).

    userId selects entries about a user (created, deleted, password changed),
    actorId selects entries made by a user.
    """
    return audit_trail.list(
        limit=limit, destination_id=destination_id, user_id=user_id, actor_id=actor_id
    )
