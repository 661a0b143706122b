# golden_glimpses/deps.py
"""Request-scoped accessors for the objects create_app puts on app.state."""
from fastapi import Request

from .config import Settings
from .services.capsules import CapsuleService
from .services.users import UserService
from .utils.storage import BlobStore

def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings

def get_capsules(request: Request) -> CapsuleService:
    return request.app.state.capsules

def get_users(request: Request) -> UserService:
    return request.app.state.users

def get_blobs(request: Request) -> BlobStore:
    return request.app.state.blobs
