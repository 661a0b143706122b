# golden_glimpses/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..config import Settings
from ..deps import get_settings_dep, get_users
from ..models import User
from ..schemas import LoginBody, RefreshBody, RegisterBody, user_view
from ..security import (
    COOKIE_NAME, REFRESH, create_access_token, create_refresh_token, decode_token, require_user,
)
from ..services.users import UserService

router = APIRouter(prefix="/api/auth", tags=["auth"])

def _token_response(settings: Settings, user: User, message: str, status_code: int = 200) -> JSONResponse:
    access = create_access_token(settings, sub=user.id)
    refresh = create_refresh_token(settings, sub=user.id)
    resp = JSONResponse(
        status_code=status_code,
        content={
            "success": True,
            "msg": message,
            "accessToken": access,
            "refreshToken": refresh,
            "user": user_view(user),
        },
    )
    resp.set_cookie(
        key=COOKIE_NAME, value=access,
        httponly=True, secure=settings.env != "dev",
        samesite="lax", max_age=settings.jwt_expires_minutes * 60, path="/",
    )
    return resp

@router.post("/register")
def register(
    body: RegisterBody,
    users: UserService = Depends(get_users),
    settings: Settings = Depends(get_settings_dep),
):
    user = users.register(body.name, body.email, body.password)
    return _token_response(settings, user, "User registered successfully", status_code=201)

@router.post("/login")
def login(
    body: LoginBody,
    users: UserService = Depends(get_users),
    settings: Settings = Depends(get_settings_dep),
):
    user = users.authenticate(body.email, body.password)
    return _token_response(settings, user, "Login successful")

@router.post("/refresh")
def refresh(
    body: RefreshBody,
    users: UserService = Depends(get_users),
    settings: Settings = Depends(get_settings_dep),
):
    """Trade a refresh token for a new access token."""
    payload = decode_token(settings, body.refreshToken, expected_type=REFRESH)
    user = users.get(payload.get("sub", ""))
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    return {"success": True, "accessToken": create_access_token(settings, sub=user.id)}

@router.get("/me")
def me(user: User = Depends(require_user)):
    return {"success": True, "user": user_view(user)}

@router.post("/logout")
def logout():
    resp = JSONResponse(content={"success": True})
    resp.delete_cookie(COOKIE_NAME, path="/")
    return resp
