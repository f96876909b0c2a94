"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user              → decode JWT, check revocation, load User (401 on failure)
  get_permission_service        → request-scoped PermissionService
  require_permission(p)         → one permission, optionally project-scoped
  require_permissions(ps, mode) → several permissions, ANY or ALL
  require_project_access(...)   → project access (or management) only

Every guard runs the same sequence before the route body:

  authenticate → extract project id → resolve → check permission(s)
  → re-check project access (and management) → return PermissionContext

A route that depends on a guard never starts unless the guard returned.
Denials raise PermissionDeniedError (403, uniform message). Anything
unexpected inside the check is logged and turned into a generic 500.
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import decode_token
from app.auth.permissions import Permission, PermissionMode
from app.auth.revocation import TokenRevocation
from app.auth.snapshot import ResolvedPermissions
from app.database import get_db
from app.middleware.exceptions import (
    KanvaroException,
    PermissionDeniedError,
    PermissionResolutionError,
)
from app.models.user import User
from app.services.permissions import PermissionService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


@dataclass(frozen=True)
class PermissionContext:
    """What a guarded route learns about its caller."""

    user: User
    permissions: ResolvedPermissions
    project_id: str | None = None
    required: tuple[Permission, ...] = field(default_factory=tuple)

    @property
    def user_id(self) -> str:
        return self.user.id


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the JWT, reject revoked tokens, and load the active user."""
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if await TokenRevocation.is_revoked(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if await TokenRevocation.is_user_revoked(user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please log in again.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_permission_service(db: AsyncSession = Depends(get_db)) -> PermissionService:
    """One PermissionService per request (snapshot memoised for the request)."""
    return PermissionService.for_session(db)


# ── Shared guard body ───────────────────────────────────────

def _project_id_from(request: Request, param: str | None) -> str | None:
    if not param:
        return None
    value = request.path_params.get(param)
    return str(value) if value else None


def _required_project_id(request: Request, param: str) -> str:
    project_id = _project_id_from(request, param)
    if project_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Project ID required",
        )
    return project_id


async def _authorize(
    service: PermissionService,
    user: User,
    required: Sequence[Permission],
    mode: PermissionMode,
    project_id: str | None,
    require_management: bool = False,
) -> PermissionContext:
    try:
        snapshot = await service.get_permissions(user.id)

        if mode is PermissionMode.ALL:
            granted = snapshot.has_all_permissions(required, project_id)
        else:
            granted = snapshot.has_any_permission(required, project_id)

        if granted and project_id is not None:
            granted = snapshot.can_access_project(project_id)
            if granted and require_management:
                granted = snapshot.can_manage_project(project_id)

    except KanvaroException:
        raise
    except Exception as e:
        logger.error(
            f"Permission check failed for user {user.id}: {e}",
            extra={"user_id": user.id, "project_id": project_id},
            exc_info=True,
        )
        raise PermissionResolutionError(f"unexpected error during permission check: {e!r}") from e

    if not granted:
        logger.debug(
            f"Denied user {user.id}",
            extra={
                "user_id": user.id,
                "project_id": project_id,
                "required": [p.value for p in required],
                "mode": mode.value,
            },
        )
        raise PermissionDeniedError()

    return PermissionContext(
        user=user,
        permissions=snapshot,
        project_id=project_id,
        required=tuple(required),
    )


# ── Permission-based access control ─────────────────────────

def require_permission(
    permission: Permission,
    project_id_param: str | None = None,
    require_management: bool = False,
):
    """Dependency factory — restrict to users holding one permission.

    With `project_id_param`, the named path parameter scopes the check to
    that project (global grants still count) and project access is
    re-verified before the route runs; `require_management` also
    re-verifies that the caller can manage the project.

    Usage:
        @router.get("/{project_id}/sprints")
        async def list_sprints(
            ctx: PermissionContext = Depends(
                require_permission(Permission.SPRINT_READ, project_id_param="project_id")
            ),
        ):
            ...
    """
    return require_permissions(
        [permission], PermissionMode.ALL, project_id_param, require_management
    )


def require_permissions(
    permissions: Sequence[Permission],
    mode: PermissionMode = PermissionMode.ANY,
    project_id_param: str | None = None,
    require_management: bool = False,
):
    """Dependency factory — restrict to users holding ANY or ALL of `permissions`.

    Note the empty-list edge: ANY of nothing is never satisfied, ALL of
    nothing always is.

    Returns 400 if `project_id_param` is given but the route has no value
    for it.
    """
    required = tuple(permissions)

    async def _check(
        request: Request,
        user: User = Depends(get_current_user),
        service: PermissionService = Depends(get_permission_service),
    ) -> PermissionContext:
        project_id = _required_project_id(request, project_id_param) if project_id_param else None
        return await _authorize(service, user, required, mode, project_id, require_management)

    return _check


def require_project_access(project_id_param: str = "project_id", require_management: bool = False):
    """Dependency factory — restrict to users who can open (or manage) a project.

    Returns 400 if the route has no value for `project_id_param`.
    """

    async def _check(
        request: Request,
        user: User = Depends(get_current_user),
        service: PermissionService = Depends(get_permission_service),
    ) -> PermissionContext:
        project_id = _required_project_id(request, project_id_param)
        # ALL over no permissions: only the project checks apply
        return await _authorize(
            service, user, (), PermissionMode.ALL, project_id, require_management
        )

    return _check
