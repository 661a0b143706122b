# golden_glimpses/security.py
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt  # PyJWT
from fastapi import HTTPException, Header, Cookie, Request
from fastapi.security.utils import get_authorization_scheme_param
from .config import Settings
from .models import User

COOKIE_NAME = "access_token"

ACCESS = "access"
REFRESH = "refresh"

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _encode(settings: Settings, sub: str, token_type: str, expires: timedelta) -> str:
    payload = {
        "sub": sub,
        "type": token_type,
        "iat": int(_now().timestamp()),
        "exp": int((_now() + expires).timestamp()),
        "iss": settings.jwt_issuer,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)

def create_access_token(settings: Settings, sub: str, expires_minutes: Optional[int] = None) -> str:
    exp_mins = expires_minutes or settings.jwt_expires_minutes
    return _encode(settings, sub, ACCESS, timedelta(minutes=exp_mins))

def create_refresh_token(settings: Settings, sub: str) -> str:
    return _encode(settings, sub, REFRESH, timedelta(days=settings.jwt_refresh_expires_days))

def decode_token(settings: Settings, token: str, expected_type: str = ACCESS) -> dict:
    try:
        payload = jwt.decode(
            token, settings.jwt_secret,
            algorithms=[settings.jwt_alg],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired, please log in again")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("type") != expected_type:
        raise HTTPException(status_code=403, detail=f"Invalid token type for {expected_type}")
    return payload

def _token_from(authorization: Optional[str], cookie: Optional[str]) -> Optional[str]:
    # 1) Bearer header
    if authorization:
        scheme, token = get_authorization_scheme_param(authorization)
        if scheme.lower() == "bearer" and token:
            return token
    # 2) Cookie (for browser forms)
    return cookie or None

def _user_for(request: Request, token: str) -> User:
    state = request.app.state
    payload = decode_token(state.settings, token)
    user = state.users.get(payload.get("sub", ""))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account has been deactivated")
    return user

def require_user(
    request: Request,
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
    access_token_cookie: Optional[str] = Cookie(default=None, alias=COOKIE_NAME),
) -> User:
    token = _token_from(authorization, access_token_cookie)
    if not token:
        raise HTTPException(status_code=401, detail="Access token required")
    return _user_for(request, token)

def optional_user(
    request: Request,
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
    access_token_cookie: Optional[str] = Cookie(default=None, alias=COOKIE_NAME),
) -> Optional[User]:
    """Like require_user, but anonymous or bad credentials yield None."""
    token = _token_from(authorization, access_token_cookie)
    if not token:
        return None
    try:
        return _user_for(request, token)
    except HTTPException:
        return None
