from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# ── Resolved snapshot (wire format) ─────────────────────────

class PermissionSnapshotOut(BaseModel):
    """GET /api/auth/permissions body. Keys are camelCase on the wire:
    globalPermissions, projectPermissions, projectRoles, userRole,
    accessibleProjects.
    """
    global_permissions: list[str]
    project_permissions: dict[str, list[str]]
    project_roles: dict[str, str]
    user_role: str | None = None
    accessible_projects: list[str]

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Role catalog ─────────────────────────────────────────────

class RoleOut(BaseModel):
    id: str
    scope: str                 # "global" | "project"
    permissions: list[str]


class RoleCatalogOut(BaseModel):
    roles: list[RoleOut]
    project_roles: list[RoleOut]


# ── Role assignments ────────────────────────────────────────

class RoleAssignmentUpdate(BaseModel):
    """Change a user's organization-wide role."""
    role: str


class ProjectMemberUpdate(BaseModel):
    """Grant or change a user's role on one project."""
    project_role: str


class ProjectMemberOut(BaseModel):
    user_id: str
    project_id: str
    project_role: str

    model_config = {"from_attributes": True}
