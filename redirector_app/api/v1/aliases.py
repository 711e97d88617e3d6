import uuid
from typing import List

from fastapi import APIRouter, Depends, Request, Response, status

from redirector_app.dependencies import get_alias_service, get_client_ip, get_current_user
from redirector_app.models import User
from redirector_app.schemas.alias import AliasCreate, AliasResponse
from redirector_app.services.alias_service import AliasService

router = APIRouter(prefix="/destinations/{destination_id}/aliases", tags=["aliases"])


@router.get("", response_model=List[AliasResponse])
async def list_aliases(
    destination_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    alias_service: AliasService = Depends(get_alias_service)
):
    return await alias_service.list_aliases(current_user, destination_id)


@router.post("", response_model=AliasResponse, status_code=status.HTTP_201_CREATED)
async def create_alias(
    destination_id: uuid.UUID,
    alias_data: AliasCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    alias_service: AliasService = Depends(get_alias_service)
):
    return await alias_service.create_alias(
        current_user, destination_id, alias_data.slug, ip_address=get_client_ip(request)
    )


@router.get("/{alias_id}", response_model=AliasResponse)
async def get_alias(
    destination_id: uuid.UUID,
    alias_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    alias_service: AliasService = Depends(get_alias_service)
):
    return await alias_service.get_alias(current_user, destination_id, alias_id)


@router.delete("/{alias_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alias(
    destination_id: uuid.UUID,
    alias_id: uuid.UUID,
    request: Request,
    current_user: User = Depends(get_current_user),
    alias_service: AliasService = Depends(get_alias_service)
):
    await alias_service.delete_alias(
        current_user, destination_id, alias_id, ip_address=get_client_ip(request)
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
