"""
Storage for capsules and users.

Two interchangeable backends sit behind the same interface: SQLModel over a
SQLAlchemy engine, and an in-memory store for development. The backend is
picked once by ``build_stores`` and passed to the services that need it.
"""
import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from .config import Settings
from .db import init_db, make_engine
from .models import Capsule, User

logger = logging.getLogger(__name__)


@dataclass
class CapsuleQuery:
    owner_id: Optional[str] = None
    is_public: Optional[bool] = None
    search: Optional[str] = None  # case-insensitive substring of title or description


class CapsuleStore(ABC):
    @abstractmethod
    def find_by_id(self, capsule_id: str) -> Optional[Capsule]: ...

    @abstractmethod
    def find(self, query: CapsuleQuery, skip: int = 0, limit: Optional[int] = None) -> List[Capsule]:
        """Matching capsules, newest ``created_at`` first."""

    @abstractmethod
    def count(self, query: CapsuleQuery) -> int: ...

    @abstractmethod
    def save(self, capsule: Capsule) -> Capsule: ...

    @abstractmethod
    def delete_by_id(self, capsule_id: str) -> bool: ...


class UserStore(ABC):
    @abstractmethod
    def find_by_id(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def save(self, user: User) -> User: ...

    @abstractmethod
    def delete_by_id(self, user_id: str) -> bool: ...


# ---------- in-memory ----------

def _clone_capsule(c: Capsule) -> Capsule:
    data = c.model_dump()
    data["media"] = copy.deepcopy(c.media)
    return Capsule(**data)


def _clone_user(u: User) -> User:
    return User(**u.model_dump())


def _matches(c: Capsule, q: CapsuleQuery) -> bool:
    if q.owner_id is not None and c.owner_id != q.owner_id:
        return False
    if q.is_public is not None and c.is_public != q.is_public:
        return False
    if q.search:
        needle = q.search.lower()
        if needle not in (c.title or "").lower() and needle not in (c.description or "").lower():
            return False
    return True


class InMemoryCapsuleStore(CapsuleStore):
    """Volatile store; data is gone when the process exits."""

    def __init__(self):
        self._rows: Dict[str, Capsule] = {}
        self._lock = threading.RLock()

    def find_by_id(self, capsule_id: str) -> Optional[Capsule]:
        with self._lock:
            row = self._rows.get(capsule_id)
            return _clone_capsule(row) if row else None

    def _select(self, q: CapsuleQuery) -> List[Capsule]:
        rows = [c for c in self._rows.values() if _matches(c, q)]
        rows.sort(key=lambda c: c.created_at, reverse=True)
        return rows

    def find(self, query: CapsuleQuery, skip: int = 0, limit: Optional[int] = None) -> List[Capsule]:
        with self._lock:
            rows = self._select(query)
            end = None if limit is None else skip + limit
            return [_clone_capsule(c) for c in rows[skip:end]]

    def count(self, query: CapsuleQuery) -> int:
        with self._lock:
            return len(self._select(query))

    def save(self, capsule: Capsule) -> Capsule:
        with self._lock:
            self._rows[capsule.id] = _clone_capsule(capsule)
            return _clone_capsule(capsule)

    def delete_by_id(self, capsule_id: str) -> bool:
        with self._lock:
            return self._rows.pop(capsule_id, None) is not None


class InMemoryUserStore(UserStore):
    def __init__(self):
        self._rows: Dict[str, User] = {}
        self._lock = threading.RLock()

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            row = self._rows.get(user_id)
            return _clone_user(row) if row else None

    def find_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        with self._lock:
            for row in self._rows.values():
                if row.email == email:
                    return _clone_user(row)
        return None

    def save(self, user: User) -> User:
        with self._lock:
            self._rows[user.id] = _clone_user(user)
            return _clone_user(user)

    def delete_by_id(self, user_id: str) -> bool:
        with self._lock:
            return self._rows.pop(user_id, None) is not None


# ---------- SQLModel ----------

def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _where(stmt, q: CapsuleQuery):
    if q.owner_id is not None:
        stmt = stmt.where(Capsule.owner_id == q.owner_id)
    if q.is_public is not None:
        stmt = stmt.where(Capsule.is_public == q.is_public)
    if q.search:
        pattern = f"%{_escape_like(q.search)}%"
        stmt = stmt.where(or_(
            col(Capsule.title).ilike(pattern, escape="\\"),
            col(Capsule.description).ilike(pattern, escape="\\"),
        ))
    return stmt


class SQLCapsuleStore(CapsuleStore):
    def __init__(self, engine: Engine):
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def find_by_id(self, capsule_id: str) -> Optional[Capsule]:
        with self._session() as db:
            return db.get(Capsule, capsule_id)

    def find(self, query: CapsuleQuery, skip: int = 0, limit: Optional[int] = None) -> List[Capsule]:
        stmt = _where(select(Capsule), query).order_by(col(Capsule.created_at).desc()).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session() as db:
            return list(db.exec(stmt).all())

    def count(self, query: CapsuleQuery) -> int:
        stmt = _where(select(func.count()).select_from(Capsule), query)
        with self._session() as db:
            return db.exec(stmt).one()

    def save(self, capsule: Capsule) -> Capsule:
        with self._session() as db:
            row = db.merge(capsule)
            db.commit()
            db.refresh(row)
            return row

    def delete_by_id(self, capsule_id: str) -> bool:
        with self._session() as db:
            row = db.get(Capsule, capsule_id)
            if not row:
                return False
            db.delete(row)
            db.commit()
            return True


class SQLUserStore(UserStore):
    def __init__(self, engine: Engine):
        self.engine = engine

    def find_by_id(self, user_id: str) -> Optional[User]:
        with Session(self.engine, expire_on_commit=False) as db:
            return db.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        with Session(self.engine, expire_on_commit=False) as db:
            return db.exec(select(User).where(User.email == email.strip().lower())).first()

    def save(self, user: User) -> User:
        with Session(self.engine, expire_on_commit=False) as db:
            row = db.merge(user)
            db.commit()
            db.refresh(row)
            return row

    def delete_by_id(self, user_id: str) -> bool:
        with Session(self.engine, expire_on_commit=False) as db:
            row = db.get(User, user_id)
            if not row:
                return False
            db.delete(row)
            db.commit()
            return True


def build_stores(settings: Settings) -> Tuple[CapsuleStore, UserStore]:
    """
    Pick the storage backend once, at startup.

    ``memory`` always uses the volatile store, ``sql`` requires the database,
    ``auto`` tries the database and falls back to memory when allowed.
    """
    backend = settings.storage_backend.lower()
    if backend == "memory":
        logger.warning("Using in-memory storage; data will not persist between restarts")
        return InMemoryCapsuleStore(), InMemoryUserStore()

    try:
        engine = make_engine(settings.database_url)
        init_db(engine)
    except SQLAlchemyError:
        if backend == "sql" or not settings.allow_memory_fallback:
            raise
        logger.exception("Database unavailable; falling back to in-memory storage")
        return InMemoryCapsuleStore(), InMemoryUserStore()

    return SQLCapsuleStore(engine), SQLUserStore(engine)
