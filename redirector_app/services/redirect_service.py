import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy.orm import Session

from redirector_app.config import settings
from redirector_app.errors import InvalidSlug, NotFound
from redirector_app.models import Alias, Destination
from redirector_app.models.mixins import utcnow
from redirector_app.queue.models import HitEvent
from redirector_app.queue.strategies import QueueStrategy
from redirector_app.services.slugs import SEPARATOR, normalize_slug

logger = logging.getLogger(__name__)

TEMPORARY_REDIRECT = 307
PERMANENT_REDIRECT = 308


@dataclass(frozen=True)
class Resolution:
    url: str
    status_code: int
    destination_id: uuid.UUID
    alias_id: Optional[uuid.UUID] = None
    resolved_at: datetime = field(default_factory=utcnow)


def forward_query(url: str, query_string: str) -> str:
    """
    Append the visitor's query parameters to the target url.

    Parameters the target url already defines win: incoming values for those
    keys are dropped.
    """
    incoming = parse_qsl(query_string, keep_blank_values=True)
    if not incoming:
        return url

    parts = urlsplit(url)
    existing = parse_qsl(parts.query, keep_blank_values=True)
    existing_keys = {key for key, _ in existing}
    extra = [(key, value) for key, value in incoming if key not in existing_keys]
    if not extra:
        return url

    query = parts.query + "&" + urlencode(extra) if parts.query else urlencode(extra)
    return urlunsplit(parts._replace(query=query))


class RedirectService:
    """
    Resolves visitor paths to redirects.

    Lookups go straight to the store (no redirect cache). Hits are published to
    the hit queue and written later by the hit worker, so recording a hit never
    delays or fails a redirect.
    """

    def __init__(self, db: Session, queue: Optional[QueueStrategy] = None):
        self.db = db
        self.queue = queue

    def _find_target(self, slug: str) -> Tuple[Optional[Destination], Optional[Alias]]:
        destination = self.db.query(Destination).filter(
            Destination.slug == slug,
            Destination.deleted_at.is_(None)
        ).first()
        if destination:
            return destination, None

        alias = self.db.query(Alias).filter(
            Alias.slug == slug,
            Alias.deleted_at.is_(None)
        ).first()
        # A live alias of a deleted destination resolves to nothing
        if alias and not alias.destination.is_deleted:
            return alias.destination, alias

        return None, None

    async def resolve(self, path: str, query_string: str = "") -> Resolution:
        """
        Resolve a request path. Recording the hit is left to record_hit(), which
        the request boundary runs after the response is sent.

        Raises:
            NotFound: unknown, deleted or burned slug, an alias whose destination
                is deleted, or a path that is not a valid slug
        """
        try:
            slug = normalize_slug(path.lstrip(SEPARATOR), settings.reserved_slug_prefix)
        except InvalidSlug as e:
            raise NotFound("Page not found") from e

        logger.debug("Looking for slug: /%s", slug)

        destination, alias = self._find_target(slug)
        if destination is None:
            logger.debug('Slug "%s" not found', slug)
            raise NotFound("Page not found")

        url = destination.url
        if destination.forward_query_parameters and query_string:
            url = forward_query(url, query_string)

        resolution = Resolution(
            url=url,
            status_code=PERMANENT_REDIRECT if destination.is_permanent else TEMPORARY_REDIRECT,
            destination_id=destination.id,
            alias_id=alias.id if alias else None,
        )
        logger.debug('Slug "%s" redirecting to: %s', slug, url)
        return resolution

    async def record_hit(
        self,
        resolution: Resolution,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        """Publish the hit to the hit queue. Best effort: failures are logged, never raised"""
        if self.queue is None:
            return

        hit_event = HitEvent(
            destination_id=resolution.destination_id,
            alias_id=resolution.alias_id,
            timestamp=resolution.resolved_at,
            ip_address=client_ip,
            user_agent=user_agent,
        )
        try:
            published = await self.queue.publish(settings.queue_name, hit_event)
        except Exception:
            logger.exception("Could not record hit for destination %s", resolution.destination_id)
            return

        if not published:
            logger.warning("Hit for destination %s was not queued", resolution.destination_id)
