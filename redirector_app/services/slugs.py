"""
Slug normalization shared by registration and resolution.

A slug is the path a visitor requests, minus surrounding separators. The same
normalization runs when a slug is claimed and when it is resolved, so
"/Hello-World/" and "hello-world" are the same slug.
"""

import unicodedata

from redirector_app.errors import InvalidSlug

SEPARATOR = "/"
FORBIDDEN_CHARACTERS = ("?", "#")


def normalize_slug(raw: str, reserved_prefix: str = "api") -> str:
    """
    Normalize a slug and validate it.

    Steps: Unicode case-fold, canonical (NFC) normalization, trim surrounding
    whitespace and "/" separators. The empty slug is valid and matches the root.

    Raises:
        InvalidSlug: forbidden characters, control characters, or a slug
            inside the reserved management prefix
    """
    slug = unicodedata.normalize("NFC", raw.casefold())
    slug = slug.strip().strip(SEPARATOR).strip()

    for character in FORBIDDEN_CHARACTERS:
        if character in slug:
            raise InvalidSlug(f'Slug can not contain "{character}"')

    if any(unicodedata.category(character) == "Cc" for character in slug):
        raise InvalidSlug("Slug can not contain control characters")

    if reserved_prefix and is_reserved(slug, reserved_prefix):
        raise InvalidSlug(f"Slug can not start with '{reserved_prefix}/'")

    return slug


def is_reserved(slug: str, reserved_prefix: str) -> bool:
    prefix = reserved_prefix.casefold().strip(SEPARATOR)
    return slug == prefix or slug.startswith(prefix + SEPARATOR)
