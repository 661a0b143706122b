"""
Media aggregation: turns the different shapes clients send for media into the
canonical ``{url, type, filename}`` list stored on a capsule.

Accepted shapes:
- canonical items ``{"url", "type", "filename"}``
- upload results ``{"cloudinaryUrl" | "url", "name", "size", "type": "<mime>"}``
- legacy memories ``{"type", "title", "content": {"fileUrl", "fileName", "text"}}``
"""
import logging
import mimetypes
from typing import Any, Iterable, List, Optional

from ..models import Capsule, MediaItem, MediaType

logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER = "/assets/capsule-placeholder.jpg"

_CANONICAL = {t.value for t in MediaType}
_NOTE_ALIASES = {"text", "document", "note", "raw"}


def media_type_for(mime: Optional[str]) -> MediaType:
    """Map a MIME type onto a media type; unknown families are notes."""
    family = (mime or "").strip().lower().split("/", 1)[0]
    if family == "image":
        return MediaType.IMAGE
    if family == "video":
        return MediaType.VIDEO
    if family == "audio":
        return MediaType.AUDIO
    return MediaType.NOTE


def _resolve_type(declared: Any, url: str, filename: Optional[str]) -> MediaType:
    if isinstance(declared, MediaType):
        return declared
    value = declared.strip().lower() if isinstance(declared, str) else ""
    if value in _CANONICAL:
        return MediaType(value)
    if value in _NOTE_ALIASES:
        return MediaType.NOTE
    if "/" in value:
        return media_type_for(value)
    # no usable type: guess from the file name
    guessed, _ = mimetypes.guess_type(filename or url)
    return media_type_for(guessed)


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def normalize_entry(raw: Any) -> Optional[MediaItem]:
    """One raw entry to a MediaItem, or None when the shape is not recognised."""
    if isinstance(raw, MediaItem):
        return MediaItem(url=raw.url, type=raw.type, filename=raw.filename)
    if not isinstance(raw, dict):
        return None

    content = raw.get("content")
    if isinstance(content, dict):
        url = _text(content.get("fileUrl"))
        filename = _text(content.get("fileName")) or _text(raw.get("title"))
        declared = raw.get("type") or content.get("mimeType")
        if url is None:
            # text memories keep their body in the url slot
            note = _text(content.get("text"))
            if note is None:
                return None
            return MediaItem(url=note, type=MediaType.NOTE, filename=filename)
        return MediaItem(url=url, type=_resolve_type(declared, url, filename), filename=filename)

    url = _text(raw.get("url")) or _text(raw.get("cloudinaryUrl")) or _text(raw.get("secure_url"))
    if url is None:
        return None
    filename = _text(raw.get("filename")) or _text(raw.get("name")) or _text(raw.get("originalname"))
    declared = raw.get("type") or raw.get("mimeType") or raw.get("mimetype") or raw.get("resourceType")
    return MediaItem(url=url, type=_resolve_type(declared, url, filename), filename=filename)


def normalize(raw_media: Optional[Iterable[Any]]) -> List[MediaItem]:
    """
    Normalize a batch of raw media entries.

    Unrecognised entries are logged and skipped; they never fail the batch.
    Duplicate urls are dropped, the first occurrence wins.
    """
    items: List[MediaItem] = []
    seen = set()
    for index, raw in enumerate(raw_media or []):
        try:
            item = normalize_entry(raw)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Skipping media entry %d: %s", index, e)
            continue
        if item is None:
            logger.warning("Skipping unrecognised media entry %d: %r", index, raw)
            continue
        if item.url in seen:
            continue
        seen.add(item.url)
        items.append(item)
    return items


def cover_url(capsule: Capsule, placeholder: str = DEFAULT_PLACEHOLDER) -> str:
    """Thumbnail for list views: first media url, placeholder when empty."""
    if capsule.media:
        return capsule.media[0]["url"]
    return placeholder
