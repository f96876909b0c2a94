"""Resolved permission snapshot: one user's effective permissions.

A snapshot is a pure value computed from role assignments at a point in
time. The server builds one per request (see `app.auth.resolver`); the
client cache holds one per session (see `app.client.permissions`). Both
sides answer yes/no questions with the methods below, so the answers are
identical on either side of the wire.

Semantics:
  - union, not override: a project role can add permissions on its
    project but never remove a global grant
  - has_any_permission([]) is False, has_all_permissions([]) is True
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from app.auth.permissions import (
    Permission,
    ProjectRole,
    Role,
    parse_permissions,
    parse_project_role,
    parse_role,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectView:
    """What one user may do on one project."""
    project_id: str
    can_access: bool = False
    can_manage: bool = False
    role: ProjectRole | None = None
    permissions: frozenset[Permission] = frozenset()


@dataclass(frozen=True)
class ResolvedPermissions:
    user_id: str
    role: Role | None
    global_permissions: frozenset[Permission] = frozenset()
    project_permissions: Mapping[str, frozenset[Permission]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    project_roles: Mapping[str, ProjectRole] = field(
        default_factory=lambda: MappingProxyType({})
    )
    accessible_projects: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        # Freeze caller-supplied dicts so a snapshot can't be edited in place
        object.__setattr__(
            self,
            "project_permissions",
            MappingProxyType({pid: frozenset(ps) for pid, ps in self.project_permissions.items()}),
        )
        object.__setattr__(self, "project_roles", MappingProxyType(dict(self.project_roles)))
        object.__setattr__(self, "global_permissions", frozenset(self.global_permissions))
        object.__setattr__(self, "accessible_projects", frozenset(self.accessible_projects))

    # ── Queries ──────────────────────────────────────────────

    def has_permission(self, permission: Permission, project_id: str | None = None) -> bool:
        if permission in self.global_permissions:
            return True
        if project_id is None:
            return False
        return permission in self.project_permissions.get(project_id, frozenset())

    def has_any_permission(
        self, permissions: Iterable[Permission], project_id: str | None = None
    ) -> bool:
        return any(self.has_permission(p, project_id) for p in permissions)

    def has_all_permissions(
        self, permissions: Iterable[Permission], project_id: str | None = None
    ) -> bool:
        return all(self.has_permission(p, project_id) for p in permissions)

    def can_access_project(self, project_id: str) -> bool:
        return project_id in self.accessible_projects

    def can_manage_project(self, project_id: str) -> bool:
        return self.has_permission(Permission.PROJECT_UPDATE, project_id)

    def project_role(self, project_id: str) -> ProjectRole | None:
        return self.project_roles.get(project_id)

    def filter_accessible(self, project_ids: Iterable[str]) -> list[str]:
        """Keep only the project ids this user can open, preserving order."""
        return [pid for pid in project_ids if pid in self.accessible_projects]

    def effective_permissions(self, project_id: str | None = None) -> frozenset[Permission]:
        if project_id is None:
            return self.global_permissions
        return self.global_permissions | self.project_permissions.get(project_id, frozenset())

    def project_view(self, project_id: str) -> ProjectView:
        return ProjectView(
            project_id=project_id,
            can_access=self.can_access_project(project_id),
            can_manage=self.can_manage_project(project_id),
            role=self.project_role(project_id),
            permissions=self.effective_permissions(project_id),
        )

    # ── Wire format ──────────────────────────────────────────

    def to_wire(self) -> dict:
        """Serialize to the JSON document served by GET /api/auth/permissions."""
        return {
            "globalPermissions": sorted(p.value for p in self.global_permissions),
            "projectPermissions": {
                pid: sorted(p.value for p in perms)
                for pid, perms in sorted(self.project_permissions.items())
            },
            "projectRoles": {
                pid: role.value for pid, role in sorted(self.project_roles.items())
            },
            "userRole": self.role.value if self.role else None,
            "accessibleProjects": sorted(self.accessible_projects),
        }

    @classmethod
    def from_wire(cls, payload: Mapping, user_id: str = "") -> "ResolvedPermissions":
        """Parse the wire document. Unknown permission or role strings are
        dropped (denied) rather than rejected, so a newer server never makes
        an older client grant more than it understands.
        """
        global_perms, unknown = parse_permissions(payload.get("globalPermissions") or [])
        dropped = list(unknown)

        project_perms: dict[str, frozenset[Permission]] = {}
        for pid, values in (payload.get("projectPermissions") or {}).items():
            perms, unknown = parse_permissions(values or [])
            project_perms[str(pid)] = perms
            dropped.extend(unknown)

        project_roles: dict[str, ProjectRole] = {}
        for pid, value in (payload.get("projectRoles") or {}).items():
            role = parse_project_role(value)
            if role is None:
                dropped.append(str(value))
                continue
            project_roles[str(pid)] = role

        if dropped:
            logger.warning(f"Ignoring unknown permission values from server: {sorted(set(dropped))}")

        return cls(
            user_id=user_id,
            role=parse_role(payload.get("userRole")),
            global_permissions=global_perms,
            project_permissions=project_perms,
            project_roles=project_roles,
            accessible_projects=frozenset(str(p) for p in payload.get("accessibleProjects") or []),
        )
