from sqlmodel import SQLModel, Field
from typing import List, Optional
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, JSON
import enum
import uuid


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every stored datetime takes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


def _naive_dt(nullable: bool = False, index: bool = False) -> Column:
    # plain DateTime: values are naive UTC, no tz check on bind
    return Column(DateTime(timezone=False), nullable=nullable, index=index)


class CapsuleStatus(str, enum.Enum):
    UNSEALED = "unsealed"  # media still editable
    SEALED = "sealed"      # media immutable


class MediaType(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    NOTE = "note"


TITLE_MAX = 100
DESCRIPTION_MAX = 500


class MediaItem(SQLModel):
    url: str
    type: MediaType
    filename: Optional[str] = None

    def as_dict(self) -> dict:
        return {"url": self.url, "type": self.type.value, "filename": self.filename}


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    name: str = Field(max_length=50)
    email: str = Field(index=True, unique=True, max_length=254)
    hashed_password: str
    is_active: bool = Field(default=True)
    last_login: Optional[datetime] = Field(default=None, sa_column=_naive_dt(nullable=True))

    created_at: datetime = Field(default_factory=utcnow, sa_column=_naive_dt())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=_naive_dt())


class Capsule(SQLModel, table=True):
    __tablename__ = "capsules"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    owner_id: str = Field(index=True, max_length=32)

    title: str = Field(max_length=TITLE_MAX)
    description: str = Field(default="", max_length=DESCRIPTION_MAX)
    unsealing_date: datetime = Field(sa_column=_naive_dt())
    is_public: bool = Field(default=False, index=True)
    status: str = Field(default=CapsuleStatus.UNSEALED.value, max_length=16)

    # Embedded media list, insertion order = upload order
    media: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    created_at: datetime = Field(default_factory=utcnow, sa_column=_naive_dt(index=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=_naive_dt())

    def media_urls(self) -> set:
        return {m["url"] for m in self.media}

    @property
    def is_sealed(self) -> bool:
        return self.status == CapsuleStatus.SEALED.value


def to_naive_utc(value) -> Optional[datetime]:
    """
    Coerce a datetime, ISO-8601 string or epoch milliseconds to naive UTC;
    None if unreadable.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            value = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
