# golden_glimpses/routers/capsules.py
import logging
import math
from typing import Any, Dict, Iterable, List, Optional

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile

from ..config import Settings
from ..deps import get_blobs, get_capsules, get_settings_dep, get_users
from ..errors import CapsuleError
from ..models import Capsule, User
from ..schemas import CapsuleCreateIn, capsule_view
from ..security import optional_user, require_user
from ..services.capsules import MAX_PAGE_SIZE, CapsuleService
from ..services.users import UserService
from ..utils.storage import BlobStore
from .media import read_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/capsules", tags=["capsules"])


class _Renderer:
    """Renders capsules for one request, looking each owner's name up once."""

    def __init__(self, users: UserService, settings: Settings, viewer: Optional[User]):
        self.users = users
        self.settings = settings
        self.viewer_id = viewer.id if viewer else None
        self._names: Dict[str, Optional[str]] = {}

    def _owner_name(self, owner_id: str) -> Optional[str]:
        if owner_id not in self._names:
            owner = self.users.get(owner_id)
            self._names[owner_id] = owner.name if owner else None
        return self._names[owner_id]

    def one(self, capsule: Capsule) -> Dict[str, Any]:
        return capsule_view(
            capsule,
            viewer_id=self.viewer_id,
            owner_name=self._owner_name(capsule.owner_id),
            placeholder=self.settings.capsule_placeholder_url,
        )

    def many(self, capsules: Iterable[Capsule]) -> List[Dict[str, Any]]:
        return [self.one(c) for c in capsules]


def renderer(
    viewer: Optional[User] = Depends(optional_user),
    users: UserService = Depends(get_users),
    settings: Settings = Depends(get_settings_dep),
) -> _Renderer:
    return _Renderer(users, settings, viewer)


@router.post("", status_code=201)
def create_capsule(
    body: CapsuleCreateIn,
    user: User = Depends(require_user),
    capsules: CapsuleService = Depends(get_capsules),
    render: _Renderer = Depends(renderer),
):
    capsule = capsules.create(
        owner_id=user.id,
        title=body.title,
        description=body.description,
        unsealing_date=body.unsealing_date,
        is_public=body.is_public,
        initial_media=body.media,
    )
    return {"success": True, "message": "Capsule created successfully", "data": render.one(capsule)}


@router.get("/my-capsules")
def my_capsules(
    user: User = Depends(require_user),
    capsules: CapsuleService = Depends(get_capsules),
    render: _Renderer = Depends(renderer),
):
    return render.many(capsules.list_by_owner(user.id))


@router.get("/explore")
def explore(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    search: str = Query(""),
    capsules: CapsuleService = Depends(get_capsules),
    render: _Renderer = Depends(renderer),
):
    items, total = capsules.list_public(page, limit, search)
    return {
        "success": True,
        "capsules": render.many(items),
        "pagination": {
            "current": page,
            "total": math.ceil(total / limit),
            "limit": limit,
            "totalItems": total,
        },
    }


@router.get("/{capsule_id}")
def get_capsule(
    capsule_id: str,
    capsules: CapsuleService = Depends(get_capsules),
    render: _Renderer = Depends(renderer),
):
    return {"success": True, "capsule": render.one(capsules.get(capsule_id))}


@router.post("/{capsule_id}/media")
def add_media(
    capsule_id: str,
    item: Dict[str, Any] = Body(...),
    user: User = Depends(require_user),
    capsules: CapsuleService = Depends(get_capsules),
    render: _Renderer = Depends(renderer),
):
    """Attach an already uploaded media item (any accepted shape)."""
    capsule = capsules.add_media(capsule_id, user.id, item)
    return {"success": True, "capsule": render.one(capsule)}


@router.put("/{capsule_id}/media")
def upload_and_add_media(
    capsule_id: str,
    file: UploadFile = File(...),
    user: User = Depends(require_user),
    capsules: CapsuleService = Depends(get_capsules),
    blobs: BlobStore = Depends(get_blobs),
    settings: Settings = Depends(get_settings_dep),
    render: _Renderer = Depends(renderer),
):
    """Upload a file straight into a capsule."""
    data, content_type = read_upload(file, settings)
    result = blobs.upload(user.id, data, content_type, file.filename)
    item = {"url": result.url, "type": content_type, "filename": file.filename}
    try:
        capsule = capsules.add_media(capsule_id, user.id, item)
    except CapsuleError:
        # the capsule refused the file, so drop the stored copy
        blobs.delete(user.id, result.public_id)
        raise
    return {"success": True, "capsule": render.one(capsule)}


@router.put("/{capsule_id}/seal")
def seal_capsule(
    capsule_id: str,
    user: User = Depends(require_user),
    capsules: CapsuleService = Depends(get_capsules),
    render: _Renderer = Depends(renderer),
):
    return {"success": True, "capsule": render.one(capsules.seal(capsule_id, user.id))}


@router.delete("/{capsule_id}")
def delete_capsule(
    capsule_id: str,
    user: User = Depends(require_user),
    capsules: CapsuleService = Depends(get_capsules),
):
    capsules.delete(capsule_id, user.id)
    return {"success": True, "message": "Capsule deleted successfully"}
