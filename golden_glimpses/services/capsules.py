"""
Capsule service: validates and persists capsules and mediates every change
made to one (create, add media, seal, delete) plus the listing queries.
"""
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Tuple

from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..models import (
    DESCRIPTION_MAX,
    TITLE_MAX,
    Capsule,
    CapsuleStatus,
    MediaItem,
    to_naive_utc,
    utcnow,
)
from ..store import CapsuleQuery, CapsuleStore
from . import media as media_aggregator

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
LOCK_STRIPES = 64


class CapsuleService:
    def __init__(
        self,
        store: CapsuleStore,
        require_future_unsealing: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.require_future_unsealing = require_future_unsealing
        self.clock = clock
        # fixed pool; capsules hashing to the same stripe share a lock
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(LOCK_STRIPES)]

    # ---------- helpers ----------

    def _lock_for(self, capsule_id: str) -> threading.Lock:
        return self._locks[hash(capsule_id) % LOCK_STRIPES]

    def _owned(self, capsule_id: str, requester_id: str) -> Capsule:
        capsule = self.get(capsule_id)
        if capsule.owner_id != requester_id:
            raise AuthorizationError("Not authorized to modify this capsule")
        return capsule

    def _append(self, capsule: Capsule, items: Iterable[MediaItem]) -> Capsule:
        """Append items whose url is not on the capsule yet and persist."""
        urls = capsule.media_urls()
        fresh = []
        for item in items:
            if item.url in urls:
                continue
            urls.add(item.url)
            fresh.append(item.as_dict())
        if not fresh:
            return capsule
        capsule.media = [*capsule.media, *fresh]
        capsule.updated_at = self.clock()
        return self.store.save(capsule)

    def _validate(self, title: Any, description: Any, unsealing_date: Any) -> Tuple[str, str, datetime]:
        title = title.strip() if isinstance(title, str) else ""
        if not title:
            raise ValidationError("Title is required")
        if len(title) > TITLE_MAX:
            raise ValidationError(f"Title cannot exceed {TITLE_MAX} characters")

        description = description.strip() if isinstance(description, str) else ""
        if len(description) > DESCRIPTION_MAX:
            raise ValidationError(f"Description cannot exceed {DESCRIPTION_MAX} characters")

        if unsealing_date is None or unsealing_date == "":
            raise ValidationError("Unsealing date is required")
        when = to_naive_utc(unsealing_date)
        if when is None:
            raise ValidationError("Unsealing date is not a valid date")
        if self.require_future_unsealing and when <= self.clock():
            raise ValidationError("Unsealing date must be in the future")
        return title, description, when

    # ---------- operations ----------

    def create(
        self,
        owner_id: str,
        title: Any,
        description: Any = "",
        unsealing_date: Any = None,
        is_public: bool = False,
        initial_media: Optional[Iterable[Any]] = None,
    ) -> Capsule:
        """
        Create a capsule in ``unsealed`` status.

        The bare capsule is written first; initial media is then attached
        through the same path as ``add_media``. If attaching fails the capsule
        is removed again and the error propagates.
        """
        title, description, when = self._validate(title, description, unsealing_date)
        now = self.clock()
        capsule = self.store.save(Capsule(
            owner_id=owner_id,
            title=title,
            description=description,
            unsealing_date=when,
            is_public=bool(is_public),
            status=CapsuleStatus.UNSEALED.value,
            media=[],
            created_at=now,
            updated_at=now,
        ))
        logger.info("Capsule %s created by %s", capsule.id, owner_id)

        items = media_aggregator.normalize(initial_media)
        if items:
            try:
                with self._lock_for(capsule.id):
                    capsule = self._append(capsule, items)
            except Exception:
                logger.exception("Attaching media to capsule %s failed; rolling back", capsule.id)
                self.store.delete_by_id(capsule.id)
                raise
        return capsule

    def get(self, capsule_id: str) -> Capsule:
        capsule = self.store.find_by_id(capsule_id)
        if capsule is None:
            raise NotFoundError("Capsule not found")
        return capsule

    def add_media(self, capsule_id: str, requester_id: str, media_item: Any) -> Capsule:
        item = media_aggregator.normalize_entry(media_item)
        if item is None:
            raise ValidationError("Media item needs a url")
        with self._lock_for(capsule_id):
            capsule = self._owned(capsule_id, requester_id)
            if capsule.status != CapsuleStatus.UNSEALED.value:
                raise ConflictError("Capsule is sealed and cannot be modified")
            return self._append(capsule, [item])

    def seal(self, capsule_id: str, requester_id: str) -> Capsule:
        with self._lock_for(capsule_id):
            capsule = self._owned(capsule_id, requester_id)
            if capsule.is_sealed:
                return capsule
            capsule.status = CapsuleStatus.SEALED.value
            capsule.updated_at = self.clock()
            capsule = self.store.save(capsule)
        logger.info("Capsule %s sealed", capsule_id)
        return capsule

    def delete(self, capsule_id: str, requester_id: str) -> None:
        with self._lock_for(capsule_id):
            capsule = self._owned(capsule_id, requester_id)
            self.store.delete_by_id(capsule_id)
        # blob-store objects behind the media urls are left in place
        logger.info("Capsule %s deleted (%d media urls not purged)", capsule_id, len(capsule.media))

    def delete_all_by_owner(self, owner_id: str) -> int:
        """Remove every capsule ``owner_id`` owns; returns how many went."""
        removed = 0
        for capsule in self.list_by_owner(owner_id):
            self.delete(capsule.id, owner_id)
            removed += 1
        return removed

    def list_by_owner(self, owner_id: str) -> List[Capsule]:
        return self.store.find(CapsuleQuery(owner_id=owner_id))

    def list_public(
        self, page: int = 1, page_size: int = 10, search_text: Optional[str] = None
    ) -> Tuple[List[Capsule], int]:
        """One page of public capsules plus the total number of matches."""
        page = max(1, int(page))
        page_size = min(MAX_PAGE_SIZE, max(1, int(page_size)))
        query = CapsuleQuery(is_public=True, search=(search_text or "").strip() or None)
        skip = (page - 1) * page_size
        return self.store.find(query, skip=skip, limit=page_size), self.store.count(query)
