"""
FastAPI dependencies for dependency injection.

Process-scoped collaborators (codecs, hit queue) are created once from
settings and cached; services are built per request around the request's
database session.
"""

import logging
import secrets
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from redirector_app.config import settings
from redirector_app.database.connection import get_db
from redirector_app.errors import Unauthorized
from redirector_app.models import User, UserRole
from redirector_app.queue.factory import create_hit_queue
from redirector_app.queue.strategies import QueueStrategy
from redirector_app.security import PasswordCodec, TokenCodec
from redirector_app.services.access import ensure_allowed
from redirector_app.services.alias_service import AliasService
from redirector_app.services.audit_trail import AuditTrailRecorder
from redirector_app.services.destination_service import DestinationService
from redirector_app.services.note_service import NoteService
from redirector_app.services.redirect_service import RedirectService
from redirector_app.services.user_service import UserService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache()
def get_password_codec() -> PasswordCodec:
    return PasswordCodec()


@lru_cache()
def get_token_codec() -> TokenCodec:
    """
    Token codec (singleton).

    Without a configured secret a temporary one is generated: tokens then only
    survive as long as the process.
    """
    secret = settings.jwt_secret
    if not secret:
        secret = secrets.token_urlsafe(32)
        logger.info("JWT secret is not set, generated a temporary one")
    return TokenCodec(
        secret=secret,
        algorithm=settings.jwt_algorithm,
        ttl_seconds=settings.access_token_ttl_seconds,
    )


@lru_cache()
def get_queue() -> QueueStrategy:
    """Hit queue (singleton), backend chosen by settings"""
    return create_hit_queue()


def get_client_ip(request: Request) -> Optional[str]:
    """
    Best-effort client IP.

    X-Forwarded-For is only trusted when configured (service behind a proxy).
    """
    if settings.trust_forwarded_for:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None


def get_audit_trail(db: Session = Depends(get_db)) -> AuditTrailRecorder:
    return AuditTrailRecorder(db)


def get_user_service(
    db: Session = Depends(get_db),
    passwords: PasswordCodec = Depends(get_password_codec),
    tokens: TokenCodec = Depends(get_token_codec),
) -> UserService:
    return UserService(db=db, passwords=passwords, tokens=tokens)


def get_destination_service(db: Session = Depends(get_db)) -> DestinationService:
    return DestinationService(db=db)


def get_alias_service(db: Session = Depends(get_db)) -> AliasService:
    return AliasService(db=db)


def get_note_service(db: Session = Depends(get_db)) -> NoteService:
    return NoteService(db=db)


def get_redirect_service(
    db: Session = Depends(get_db),
    queue: QueueStrategy = Depends(get_queue),
) -> RedirectService:
    return RedirectService(db=db, queue=queue)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    user_service: UserService = Depends(get_user_service),
) -> User:
    """Authenticated user behind the `Authorization: Bearer <token>` header"""
    if credentials is None:
        raise Unauthorized("Missing API token")
    return await user_service.authorize(credentials.credentials)


async def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    ensure_allowed(current_user, UserRole.ADMIN)
    return current_user
