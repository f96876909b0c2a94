"""User role administration.

Endpoints:
    PUT /api/users/{user_id}/role    Change a user's organization-wide role
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import PermissionContext, require_permission
from app.auth.permissions import Permission, Role, parse_role
from app.database import get_db
from app.middleware.exceptions import PermissionDeniedError, ResourceNotFoundError
from app.models.user import User
from app.schemas.auth import UserOut
from app.schemas.permissions import RoleAssignmentUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.put("/{user_id}/role", response_model=UserOut)
async def update_user_role(
    user_id: str,
    body: RoleAssignmentUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: PermissionContext = Depends(require_permission(Permission.USER_MANAGE_ROLES)),
):
    """Assign a new global role. Takes effect on the target's next request."""
    role = parse_role(body.role)
    if role is None:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid role. Choose: {', '.join(r.value for r in Role)}",
        )

    result = await db.execute(
        select(User).where(
            User.id == user_id,
            User.organization_id == ctx.user.organization_id,
        )
    )
    user = result.scalar_one_or_none()
    if not user:
        raise ResourceNotFoundError("User", user_id)

    # Only a super admin can hand out (or take away) super admin
    touches_super_admin = Role.SUPER_ADMIN in (role, parse_role(user.role))
    if touches_super_admin and ctx.permissions.role is not Role.SUPER_ADMIN:
        raise PermissionDeniedError()

    previous = user.role
    user.role = role.value
    await db.flush()

    logger.info(
        f"Role of user {user.id} changed from {previous} to {role.value} by {ctx.user_id}",
        extra={"user_id": user.id, "changed_by": ctx.user_id},
    )
    return UserOut.model_validate(user)
