import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from redirector_app.dependencies import get_client_ip, get_current_user, get_destination_service
from redirector_app.errors import ImmutableField
from redirector_app.models import User
from redirector_app.schemas.destination import (
    DestinationCreate,
    DestinationResponse,
    DestinationStats,
    DestinationUpdate,
)
from redirector_app.services.destination_service import DestinationService

router = APIRouter(prefix="/destinations", tags=["destinations"])


def wants_aliases(include: Optional[str]) -> bool:
    """`?include=aliases` (comma separated list)"""
    return bool(include) and "aliases" in [part.strip() for part in include.split(",")]


@router.get("", response_model=List[DestinationResponse], response_model_exclude_none=True)
async def list_destinations(
    include: Optional[str] = Query(None, description="Use `aliases` to embed live aliases"),
    current_user: User = Depends(get_current_user),
    destination_service: DestinationService = Depends(get_destination_service)
):
    destinations = await destination_service.list_destinations(current_user)
    include_aliases = wants_aliases(include)
    return [
        DestinationResponse.from_destination(
            destination,
            await destination_service.list_live_aliases(destination) if include_aliases else None,
        )
        for destination in destinations
    ]


@router.post("", response_model=DestinationResponse, status_code=status.HTTP_201_CREATED,
             response_model_exclude_none=True)
async def create_destination(
    destination_data: DestinationCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    destination_service: DestinationService = Depends(get_destination_service)
):
    """Register a slug; 400 for an invalid slug, 409 when it is (or was) taken"""
    destination = await destination_service.create_destination(
        current_user,
        slug=destination_data.slug,
        url=str(destination_data.url),
        is_permanent=destination_data.is_permanent,
        forward_query_parameters=destination_data.forward_query_parameters,
        ip_address=get_client_ip(request),
    )
    return DestinationResponse.from_destination(destination)


@router.get("/{destination_id}", response_model=DestinationResponse, response_model_exclude_none=True)
async def get_destination(
    destination_id: uuid.UUID,
    include: Optional[str] = Query(None, description="Use `aliases` to embed live aliases"),
    current_user: User = Depends(get_current_user),
    destination_service: DestinationService = Depends(get_destination_service)
):
    destination = await destination_service.get_destination(current_user, destination_id)
    aliases = None
    if wants_aliases(include):
        aliases = await destination_service.list_live_aliases(destination)
    return DestinationResponse.from_destination(destination, aliases)


@router.patch("/{destination_id}", response_model=DestinationResponse, response_model_exclude_none=True)
async def update_destination(
    destination_id: uuid.UUID,
    destination_data: DestinationUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    destination_service: DestinationService = Depends(get_destination_service)
):
    """
    Update url / isPermanent / forwardQueryParameters.

    The slug can never change and permanent destinations keep their url.
    """
    if destination_data.slug is not None:
        raise ImmutableField("Slug can not be updated")

    destination = await destination_service.update_destination(
        current_user,
        destination_id,
        url=str(destination_data.url) if destination_data.url is not None else None,
        is_permanent=destination_data.is_permanent,
        forward_query_parameters=destination_data.forward_query_parameters,
        ip_address=get_client_ip(request),
    )
    return DestinationResponse.from_destination(destination)


@router.delete("/{destination_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_destination(
    destination_id: uuid.UUID,
    request: Request,
    current_user: User = Depends(get_current_user),
    destination_service: DestinationService = Depends(get_destination_service)
):
    """Soft delete; the slug can never be registered again"""
    await destination_service.delete_destination(
        current_user, destination_id, ip_address=get_client_ip(request)
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{destination_id}/stats", response_model=DestinationStats)
async def get_destination_stats(
    destination_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    destination_service: DestinationService = Depends(get_destination_service)
):
    """Hit statistics (hits are written asynchronously, counts may lag)"""
    return await destination_service.get_destination_stats(current_user, destination_id)
