import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from redirector_app.schemas.common import CamelModel


class NoteCreate(CamelModel):
    content: str = Field(..., min_length=1)


class NoteUpdate(CamelModel):
    content: Optional[str] = Field(None, min_length=1)


class NoteResponse(CamelModel):
    id: uuid.UUID
    destination_id: uuid.UUID
    content: str
    created_at: datetime
    updated_at: datetime
