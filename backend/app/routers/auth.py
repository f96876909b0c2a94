"""Auth routes for the signed-in user.

Route overview:
  GET /me           — the current user's profile
  GET /permissions  — the current user's resolved permission snapshot,
                      fetched once per session by the client permission cache
"""

from fastapi import APIRouter, Depends

from app.auth.deps import get_current_user, get_permission_service
from app.models.user import User
from app.schemas.auth import UserOut
from app.schemas.permissions import PermissionSnapshotOut
from app.services.permissions import PermissionService

router = APIRouter()


# ── GET /me ──────────────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    """Return the current authenticated user's profile."""
    return UserOut.model_validate(user)


# ── GET /permissions ─────────────────────────────────────────

@router.get("/permissions", response_model=PermissionSnapshotOut)
async def my_permissions(
    user: User = Depends(get_current_user),
    service: PermissionService = Depends(get_permission_service),
):
    """Return every permission the caller holds, globally and per project.

    Needs authentication only: a user may always learn their own grants.
    """
    snapshot = await service.get_permissions(user.id)
    return PermissionSnapshotOut.model_validate(snapshot.to_wire())
