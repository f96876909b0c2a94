"""Permission query service: yes/no questions about a user's permissions.

Used by route guards and application code. Each instance memoises the
snapshots it resolves, so one instance per request resolves each user at
most once for that request and never serves a snapshot across requests.

The `require_*` variants raise PermissionDeniedError instead of returning
False, for code that cannot continue without the grant.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.permissions import Permission
from app.auth.resolver import PermissionResolver, SQLRoleAssignmentStore
from app.auth.snapshot import ResolvedPermissions
from app.middleware.exceptions import PermissionDeniedError


class PermissionService:
    def __init__(self, resolver: PermissionResolver):
        self.resolver = resolver
        self._snapshots: dict[str, ResolvedPermissions] = {}

    @classmethod
    def for_session(cls, db: AsyncSession) -> "PermissionService":
        return cls(PermissionResolver(SQLRoleAssignmentStore(db)))

    async def get_permissions(self, user_id: str) -> ResolvedPermissions:
        snapshot = self._snapshots.get(user_id)
        if snapshot is None:
            snapshot = await self.resolver.resolve(user_id)
            self._snapshots[user_id] = snapshot
        return snapshot

    # ── Boolean checks ───────────────────────────────────────

    async def has_permission(
        self, user_id: str, permission: Permission, project_id: str | None = None
    ) -> bool:
        return (await self.get_permissions(user_id)).has_permission(permission, project_id)

    async def has_any_permission(
        self, user_id: str, permissions: Iterable[Permission], project_id: str | None = None
    ) -> bool:
        return (await self.get_permissions(user_id)).has_any_permission(permissions, project_id)

    async def has_all_permissions(
        self, user_id: str, permissions: Iterable[Permission], project_id: str | None = None
    ) -> bool:
        return (await self.get_permissions(user_id)).has_all_permissions(permissions, project_id)

    async def can_access_project(self, user_id: str, project_id: str) -> bool:
        return (await self.get_permissions(user_id)).can_access_project(project_id)

    async def can_manage_project(self, user_id: str, project_id: str) -> bool:
        return (await self.get_permissions(user_id)).can_manage_project(project_id)

    async def get_accessible_projects(self, user_id: str) -> list[str]:
        return sorted((await self.get_permissions(user_id)).accessible_projects)

    async def filter_projects_by_access(self, user_id: str, project_ids: Iterable[str]) -> list[str]:
        return (await self.get_permissions(user_id)).filter_accessible(project_ids)

    # ── Raising variants ─────────────────────────────────────

    async def require_permission(
        self, user_id: str, permission: Permission, project_id: str | None = None
    ) -> None:
        if not await self.has_permission(user_id, permission, project_id):
            raise PermissionDeniedError()

    async def require_any_permission(
        self, user_id: str, permissions: Iterable[Permission], project_id: str | None = None
    ) -> None:
        if not await self.has_any_permission(user_id, permissions, project_id):
            raise PermissionDeniedError()

    async def require_all_permissions(
        self, user_id: str, permissions: Iterable[Permission], project_id: str | None = None
    ) -> None:
        if not await self.has_all_permissions(user_id, permissions, project_id):
            raise PermissionDeniedError()

    async def require_project_access(self, user_id: str, project_id: str) -> None:
        if not await self.can_access_project(user_id, project_id):
            raise PermissionDeniedError()

    async def require_project_management(self, user_id: str, project_id: str) -> None:
        if not await self.can_manage_project(user_id, project_id):
            raise PermissionDeniedError()
