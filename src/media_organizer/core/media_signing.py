"""Replace public media URLs in API payloads with presigned GET URLs."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlparse

from ..exceptions import StorageError
from ..infrastructure.object_store.base import ObjectStore
from ..models.media_file import parse_provider_metadata

logger = logging.getLogger(__name__)


def is_media_object(value: Any) -> bool:
    if not isinstance(value, dict) or not isinstance(value.get("url"), str):
        return False
    return "mime" in value or value.get("provider") == "aws-s3" or "formats" in value


def resolve_media_key(file: Dict[str, Any]) -> Optional[str]:
    """Store key of a media object.

    Tries the provider metadata, then ``path/hash+ext``, then the URL path.
    """
    key = parse_provider_metadata(file.get("provider_metadata")).get("key")
    if isinstance(key, str) and key:
        return key

    content_hash = file.get("hash")
    if content_hash:
        name = f"{content_hash}{file.get('ext') or ''}"
        path = (file.get("path") or "").strip("/")
        return f"{path}/{name}" if path else name

    url = file.get("url")
    if url:
        path = unquote(urlparse(url).path).lstrip("/")
        return path or None
    return None


async def _sign(file: Dict[str, Any], store: ObjectStore, expires_in: int) -> None:
    key = resolve_media_key(file)
    if not key:
        return
    try:
        file["url"] = await store.presigned_url(key, expires_in)
    except StorageError as e:
        logger.warning(f"Could not sign media URL for {key}: {e}")


async def sign_media_urls(payload: Any, store: ObjectStore, expires_in: int = 3600) -> Any:
    """Walk ``payload`` and sign every media object found, in place."""
    if isinstance(payload, list):
        for item in payload:
            await sign_media_urls(item, store, expires_in)
        return payload

    if not isinstance(payload, dict):
        return payload

    if is_media_object(payload):
        await _sign(payload, store, expires_in)
        formats = payload.get("formats")
        if isinstance(formats, dict):
            for variant in formats.values():
                if isinstance(variant, dict) and variant.get("url"):
                    await _sign(variant, store, expires_in)
        return payload

    for value in payload.values():
        await sign_media_urls(value, store, expires_in)
    return payload
