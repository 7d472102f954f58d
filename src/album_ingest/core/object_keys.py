"""Object key layout for raw, verified and thumbnail objects."""

import re
from typing import Optional

from pydantic import BaseModel

from .exceptions import MalformedEventError

RAW_PREFIX = "raws/"
VERIFIED_PREFIX = "verified/"
THUMBNAIL_PREFIX = "thumbnails/"
THUMBNAIL_EXTENSION = "jpg"

_CONTENT_KEY_PATTERN = re.compile(
    r"^(?P<verified>verified/)?raws/(?P<batch_id>[^/]+)/(?P<content_id>[^./]+)(?:\.(?P<ext>[^./]+))?$"
)


class ObjectKey(BaseModel):
    """A parsed ``raws/{batch_id}/{content_id}.{ext}`` key (optionally verified)."""

    batch_id: str
    content_id: str
    extension: Optional[str] = None
    verified: bool = False

    @property
    def raw_key(self) -> str:
        return raw_key(self.batch_id, self.content_id, self.extension)

    @property
    def verified_key(self) -> str:
        return verified_key(self.batch_id, self.content_id, self.extension)

    @property
    def thumbnail_key(self) -> str:
        return thumbnail_key(self.batch_id, self.content_id)

    def with_extension(self, extension: str) -> "ObjectKey":
        """Same object with its extension replaced (e.g. by the sniffed one)."""
        return self.model_copy(update={"extension": extension.lower()})


def parse_object_key(key: str) -> ObjectKey:
    """
    Parse a raw or verified content key.

    Args:
        key: Decoded object key, e.g. ``raws/b1/c1.jpg``

    Returns:
        ObjectKey with batch id, content id and extension

    Raises:
        MalformedEventError: If the key does not follow the content layout
    """
    match = _CONTENT_KEY_PATTERN.match(key)
    if not match:
        raise MalformedEventError(f"Invalid object key format: {key}")
    return ObjectKey(
        batch_id=match.group("batch_id"),
        content_id=match.group("content_id"),
        extension=match.group("ext"),
        verified=match.group("verified") is not None,
    )


def raw_key(batch_id: str, content_id: str, extension: Optional[str]) -> str:
    suffix = f".{extension}" if extension else ""
    return f"{RAW_PREFIX}{batch_id}/{content_id}{suffix}"


def verified_key(batch_id: str, content_id: str, extension: Optional[str]) -> str:
    return f"{VERIFIED_PREFIX}{raw_key(batch_id, content_id, extension)}"


def thumbnail_key(batch_id: str, content_id: str) -> str:
    return f"{THUMBNAIL_PREFIX}{batch_id}/{content_id}.{THUMBNAIL_EXTENSION}"


def is_thumbnail_key(key: str) -> bool:
    return key.startswith(THUMBNAIL_PREFIX)
