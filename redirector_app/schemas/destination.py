import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import HttpUrl

from redirector_app.schemas.alias import AliasResponse
from redirector_app.schemas.common import CamelModel


class DestinationCreate(CamelModel):
    slug: str
    url: HttpUrl
    is_permanent: bool = False
    forward_query_parameters: bool = False


class DestinationUpdate(CamelModel):
    """
    All fields optional; omitted fields are left untouched.

    slug is only declared so a request trying to change it can be refused
    explicitly instead of being silently ignored.
    """
    url: Optional[HttpUrl] = None
    is_permanent: Optional[bool] = None
    forward_query_parameters: Optional[bool] = None
    slug: Optional[str] = None


class DestinationResponse(CamelModel):
    id: uuid.UUID
    slug: str
    url: str
    is_permanent: bool
    forward_query_parameters: bool
    created_at: datetime
    updated_at: datetime
    # Only present with ?include=aliases
    aliases: Optional[List[AliasResponse]] = None

    @classmethod
    def from_destination(cls, destination, aliases=None) -> "DestinationResponse":
        # Built field by field: the ORM relationship also holds deleted aliases
        return cls(
            id=destination.id,
            slug=destination.slug,
            url=destination.url,
            is_permanent=destination.is_permanent,
            forward_query_parameters=destination.forward_query_parameters,
            created_at=destination.created_at,
            updated_at=destination.updated_at,
            aliases=(
                [AliasResponse.model_validate(alias) for alias in aliases]
                if aliases is not None else None
            ),
        )


class DestinationStats(CamelModel):
    slug: str
    total_hits: int
    created_at: datetime
    last_hit_at: Optional[datetime] = None
