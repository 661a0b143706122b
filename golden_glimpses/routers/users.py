# golden_glimpses/routers/users.py
from fastapi import APIRouter, Depends

from ..deps import get_capsules, get_users
from ..models import User
from ..schemas import ProfileUpdate, user_view
from ..security import require_user
from ..services.capsules import CapsuleService
from ..services.users import UserService

router = APIRouter(prefix="/api/users", tags=["users"])

@router.get("/profile")
def get_profile(user: User = Depends(require_user)):
    return {"success": True, "user": user_view(user)}

@router.put("/profile")
def update_profile(
    body: ProfileUpdate,
    user: User = Depends(require_user),
    users: UserService = Depends(get_users),
):
    updated = users.update_profile(user.id, body.name)
    return {"success": True, "msg": "Profile updated successfully", "user": user_view(updated)}

@router.delete("/account")
def delete_account(
    user: User = Depends(require_user),
    users: UserService = Depends(get_users),
    capsules: CapsuleService = Depends(get_capsules),
):
    """Delete the account together with every capsule it owns."""
    # capsules first, so a failure leaves the account in place to retry
    removed = capsules.delete_all_by_owner(user.id)
    users.delete_account(user.id)
    return {"success": True, "msg": "Account deleted successfully", "capsulesDeleted": removed}
