import uuid
from datetime import datetime

from redirector_app.schemas.common import CamelModel


class AliasCreate(CamelModel):
    slug: str


class AliasResponse(CamelModel):
    id: uuid.UUID
    destination_id: uuid.UUID
    slug: str
    created_at: datetime
    updated_at: datetime
