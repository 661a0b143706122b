"""
User accounts: registration, password check, profile updates.
"""
import logging
from typing import Optional
from passlib.context import CryptContext

from ..errors import NotFoundError, ValidationError
from ..models import User, utcnow
from ..store import UserStore

logger = logging.getLogger(__name__)

NAME_MIN, NAME_MAX = 2, 50
PASSWORD_MIN = 6

class UserService:
    def __init__(self, store: UserStore, bcrypt_rounds: int = 12):
        self.store = store
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=bcrypt_rounds)

    @staticmethod
    def _clean_name(name: str) -> str:
        name = (name or "").strip()
        if not NAME_MIN <= len(name) <= NAME_MAX:
            raise ValidationError(f"Name must be between {NAME_MIN} and {NAME_MAX} characters")
        return name

    def register(self, name: str, email: str, password: str) -> User:
        name = self._clean_name(name)
        email = email.strip().lower()
        if len(password or "") < PASSWORD_MIN:
            raise ValidationError(f"Password must be at least {PASSWORD_MIN} characters long")
        if self.store.find_by_email(email):
            raise ValidationError("User already exists with this email address")

        user = self.store.save(User(
            name=name,
            email=email,
            hashed_password=self.pwd_context.hash(password),
        ))
        logger.info("Registered user %s", user.id)
        return user

    def authenticate(self, email: str, password: str) -> User:
        """Check credentials and stamp last_login. Same message for unknown email and bad password."""
        user = self.store.find_by_email(email)
        if not user or not user.is_active or not self.pwd_context.verify(password, user.hashed_password):
            raise ValidationError("Invalid email or password")
        user.last_login = utcnow()
        return self.store.save(user)

    def get(self, user_id: str) -> Optional[User]:
        return self.store.find_by_id(user_id)

    def update_profile(self, user_id: str, name: str) -> User:
        user = self.store.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        user.name = self._clean_name(name)
        user.updated_at = utcnow()
        return self.store.save(user)

    def delete_account(self, user_id: str) -> None:
        if not self.store.delete_by_id(user_id):
            raise NotFoundError("User not found")
        logger.info("Deleted user %s", user_id)
