"""Media object storage on the local filesystem.

Objects are addressed by a relative key and published under PUBLIC_BASE_URL/media/<key>.
"""

import mimetypes
import re
from pathlib import Path
from typing import Optional
from uuid import uuid4

from whatsapp_desk.config import settings
from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.services import whatsapp_service

logger = get_logger("media_service")

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_.\-/]")


def _storage_root() -> Path:
    return Path(settings.media_storage_dir).resolve()


def _safe_key(key: str) -> str:
    cleaned = _UNSAFE_KEY_CHARS.sub("_", (key or "").strip().lstrip("/"))
    parts = [part for part in cleaned.split("/") if part not in {"", ".", ".."}]
    return "/".join(parts)


def _path_for(key: str) -> Optional[Path]:
    safe = _safe_key(key)
    if not safe:
        return None
    root = _storage_root()
    path = (root / safe).resolve()
    if root not in path.parents:
        return None
    return path


def public_url(key: str) -> str:
    return f"{settings.public_base_url.rstrip('/')}/media/{_safe_key(key)}"


def put(key: str, data: bytes) -> str:
    """Store bytes under key and return the public URL."""
    path = _path_for(key)
    if path is None:
        raise ValueError(f"Invalid media key: {key!r}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return public_url(key)


def get(key: str) -> Optional[bytes]:
    path = _path_for(key)
    if path is None or not path.is_file():
        return None
    return path.read_bytes()


def guess_content_type(key: str) -> str:
    return mimetypes.guess_type(key)[0] or "application/octet-stream"


def is_remote_url(ref: Optional[str]) -> bool:
    return bool(ref) and ref.startswith(("http://", "https://"))


def resolve_media_url(phone: str, media_ref: Optional[str]) -> Optional[str]:
    """Turn an inbound media reference into a URL the dashboard can open.

    http(s) links are kept as-is. Graph media ids are downloaded and stored; if that
    fails the raw reference is returned so the inbound row still records it.
    """
    if not media_ref or is_remote_url(media_ref):
        return media_ref

    data, mime_type, error = whatsapp_service.fetch_media(media_ref, settings.media_max_bytes)
    if error or data is None:
        logger.warning(
            "Media download failed, keeping raw reference",
            extra={"context": {"phone": phone, "media_ref": media_ref, "error": error}},
        )
        return media_ref

    ext = mimetypes.guess_extension((mime_type or "").split(";")[0].strip()) or ".bin"
    key = f"whatsapp/{_safe_key(phone) or 'unknown'}/{_safe_key(media_ref) or uuid4().hex}{ext}"
    try:
        return put(key, data)
    except OSError as e:
        logger.warning(
            "Media store failed, keeping raw reference",
            extra={"context": {"phone": phone, "media_ref": media_ref, "error": str(e)}},
        )
        return media_ref
