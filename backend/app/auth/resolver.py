"""Permission resolution: role assignments → ResolvedPermissions.

Algorithm (per user):
  1. Global role → ROLE_PERMISSIONS[role]. An unknown or empty role string
     resolves to no global permissions.
  2. Each project membership row → PROJECT_ROLE_PERMISSIONS[project_role].
     Rows whose project role is unknown are skipped.
  3. accessible projects = projects with a membership row, plus every
     project of the user's organization when the global role grants
     PROJECT_VIEW_ALL.

Resolution is read-only and idempotent, so concurrent requests resolving
the same user need no coordination. A missing user or a failing store is
an error, never an empty-but-valid snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.permissions import (
    PROJECT_ROLE_PERMISSIONS,
    ROLE_PERMISSIONS,
    Permission,
    ProjectRole,
    parse_project_role,
    parse_role,
)
from app.auth.snapshot import ResolvedPermissions
from app.middleware.exceptions import PermissionResolutionError, UserNotFoundError
from app.models.project import Project, ProjectMember
from app.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserRecord:
    id: str
    organization_id: str
    role: str | None


@dataclass(frozen=True)
class MembershipRecord:
    project_id: str
    project_role: str


class RoleAssignmentStore(Protocol):
    """Read access to the rows permission resolution depends on."""

    async def get_user(self, user_id: str) -> UserRecord | None: ...

    async def list_memberships(self, user_id: str) -> list[MembershipRecord]: ...

    async def list_project_ids(self, organization_id: str) -> list[str]: ...


class SQLRoleAssignmentStore:
    """RoleAssignmentStore over the request's AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> UserRecord | None:
        result = await self.db.execute(
            select(User.id, User.organization_id, User.role).where(User.id == user_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return UserRecord(id=row.id, organization_id=row.organization_id, role=row.role)

    async def list_memberships(self, user_id: str) -> list[MembershipRecord]:
        # Join on projects so memberships can't point outside the user's org
        result = await self.db.execute(
            select(ProjectMember.project_id, ProjectMember.project_role)
            .join(Project, Project.id == ProjectMember.project_id)
            .join(User, User.id == ProjectMember.user_id)
            .where(
                ProjectMember.user_id == user_id,
                Project.organization_id == User.organization_id,
            )
        )
        return [
            MembershipRecord(project_id=row.project_id, project_role=row.project_role)
            for row in result.all()
        ]

    async def list_project_ids(self, organization_id: str) -> list[str]:
        result = await self.db.execute(
            select(Project.id).where(Project.organization_id == organization_id)
        )
        return list(result.scalars().all())


class PermissionResolver:
    """Compute a user's ResolvedPermissions from a RoleAssignmentStore."""

    def __init__(self, store: RoleAssignmentStore):
        self.store = store

    async def resolve(self, user_id: str) -> ResolvedPermissions:
        try:
            user = await self.store.get_user(user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            memberships = await self.store.list_memberships(user_id)

            role = parse_role(user.role)
            if role is None:
                logger.warning(
                    f"User {user_id} has unknown role {user.role!r}; no global permissions granted",
                    extra={"user_id": user_id, "role": user.role},
                )
                global_permissions: frozenset[Permission] = frozenset()
            else:
                global_permissions = ROLE_PERMISSIONS.get(role, frozenset())

            project_permissions: dict[str, frozenset[Permission]] = {}
            project_roles: dict[str, ProjectRole] = {}
            for membership in memberships:
                project_role = parse_project_role(membership.project_role)
                if project_role is None:
                    logger.warning(
                        f"Skipping membership of {user_id} on {membership.project_id}: "
                        f"unknown project role {membership.project_role!r}",
                        extra={"user_id": user_id, "project_id": membership.project_id},
                    )
                    continue
                project_permissions[membership.project_id] = PROJECT_ROLE_PERMISSIONS.get(
                    project_role, frozenset()
                )
                project_roles[membership.project_id] = project_role

            accessible = set(project_permissions)
            if Permission.PROJECT_VIEW_ALL in global_permissions:
                accessible.update(await self.store.list_project_ids(user.organization_id))

        except SQLAlchemyError as e:
            raise PermissionResolutionError(f"role assignment lookup failed for {user_id}: {e}") from e

        return ResolvedPermissions(
            user_id=user_id,
            role=role,
            global_permissions=global_permissions,
            project_permissions=project_permissions,
            project_roles=project_roles,
            accessible_projects=frozenset(accessible),
        )
