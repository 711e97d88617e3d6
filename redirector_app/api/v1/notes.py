import uuid
from typing import List

from fastapi import APIRouter, Depends, Request, Response, status

from redirector_app.dependencies import get_client_ip, get_current_user, get_note_service
from redirector_app.models import User
from redirector_app.schemas.note import NoteCreate, NoteResponse, NoteUpdate
from redirector_app.services.note_service import NoteService

router = APIRouter(prefix="/destinations/{destination_id}/notes", tags=["notes"])


@router.get("", response_model=List[NoteResponse])
async def list_notes(
    destination_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    note_service: NoteService = Depends(get_note_service)
):
    return await note_service.list_notes(current_user, destination_id)


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    destination_id: uuid.UUID,
    note_data: NoteCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    note_service: NoteService = Depends(get_note_service)
):
    return await note_service.create_note(
        current_user, destination_id, note_data.content, ip_address=get_client_ip(request)
    )


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    destination_id: uuid.UUID,
    note_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    note_service: NoteService = Depends(get_note_service)
):
    return await note_service.get_note(current_user, destination_id, note_id)


@router.patch("/{note_id}", response_model=NoteResponse)
async def update_note(
    destination_id: uuid.UUID,
    note_id: uuid.UUID,
    note_data: NoteUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    note_service: NoteService = Depends(get_note_service)
):
    return await note_service.update_note(
        current_user,
        destination_id,
        note_id,
        content=note_data.content,
        ip_address=get_client_ip(request),
    )


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    destination_id: uuid.UUID,
    note_id: uuid.UUID,
    request: Request,
    current_user: User = Depends(get_current_user),
    note_service: NoteService = Depends(get_note_service)
):
    await note_service.delete_note(
        current_user, destination_id, note_id, ip_address=get_client_ip(request)
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
