"""
Request bodies and response shapes for the HTTP layer.

Clients have sent capsules under several names over time (``name``/``title``,
``unlockDate``/``unsealingDate``, ``media``/``memories``/``mediaUrls``); this
module is the one place those names are mapped onto the canonical fields, in
both directions.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from .models import Capsule, CapsuleStatus, MediaType, User
from .services import media as media_aggregator
from .services.visibility import evaluate, unlock_progress


# ---------- requests ----------

class CapsuleCreateIn(BaseModel):
    # fields stay loose so the capsule service owns the validation messages
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, validation_alias=AliasChoices("title", "name"))
    description: Optional[str] = ""
    unsealing_date: Optional[Any] = Field(
        default=None, validation_alias=AliasChoices("unlockDate", "unsealingDate", "unsealing_date")
    )
    is_public: bool = Field(default=False, validation_alias=AliasChoices("isPublic", "is_public"))
    media: Optional[List[Any]] = Field(
        default=None, validation_alias=AliasChoices("media", "memories", "mediaUrls")
    )


class RegisterBody(BaseModel):
    name: str
    email: EmailStr
    password: str

class LoginBody(BaseModel):
    email: EmailStr
    password: str

class RefreshBody(BaseModel):
    refreshToken: str

class ProfileUpdate(BaseModel):
    name: str


# ---------- responses ----------

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() + "Z" if value else None


def user_view(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "createdAt": _iso(user.created_at),
        "lastLogin": _iso(user.last_login),
    }


def _memory_view(index: int, item: Dict[str, Any], capsule: Capsule) -> Dict[str, Any]:
    is_note = item.get("type") == MediaType.NOTE.value
    return {
        "_id": f"{capsule.id}-{index}",
        "title": item.get("filename") or "Media Item",
        "type": item.get("type"),
        "content": {
            "fileUrl": item.get("url"),
            "fileName": item.get("filename"),
            "text": item.get("url") if is_note else None,
        },
        "createdAt": _iso(capsule.created_at),
    }


def capsule_view(
    capsule: Capsule,
    viewer_id: Optional[str] = None,
    owner_name: Optional[str] = None,
    now: Optional[datetime] = None,
    placeholder: str = media_aggregator.DEFAULT_PLACEHOLDER,
) -> Dict[str, Any]:
    """
    Render a capsule for the API.

    Media is included when the contents are visible, or for the owner while
    the capsule is still unsealed (being filled). Otherwise only the count
    is reported.
    """
    visibility = evaluate(capsule, now)
    editable_by_viewer = viewer_id == capsule.owner_id and capsule.status == CapsuleStatus.UNSEALED.value
    show_media = visibility.is_content_visible or editable_by_viewer
    media = [dict(m) for m in capsule.media] if show_media else []
    remaining = visibility.time_remaining

    return {
        "_id": capsule.id,
        "id": capsule.id,
        "title": capsule.title,
        "name": capsule.title,
        "description": capsule.description,
        "owner": {"_id": capsule.owner_id, "id": capsule.owner_id, "name": owner_name},
        "unsealingDate": _iso(capsule.unsealing_date),
        "unlockDate": _iso(capsule.unsealing_date),
        "isPublic": capsule.is_public,
        "status": capsule.status,
        "createdAt": _iso(capsule.created_at),
        "updatedAt": _iso(capsule.updated_at),
        "media": media,
        "memories": [_memory_view(i, m, capsule) for i, m in enumerate(media)],
        "mediaCount": len(capsule.media),
        "coverUrl": media_aggregator.cover_url(capsule, placeholder) if show_media else placeholder,
        "isContentVisible": visibility.is_content_visible,
        "timeRemaining": int(remaining.total_seconds()) if remaining is not None else None,
        "timeRemainingLabel": visibility.time_remaining_label,
        "unlockProgress": unlock_progress(capsule, now),
    }
