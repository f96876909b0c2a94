"""Permission catalog for Kanvaro RBAC.

Design:
  - Every capability is a `Permission` (`<category>:<action>`), a closed
    enum. Unknown strings never reach the tables.
  - Each organization-wide `Role` maps to a fixed permission set
    (`ROLE_PERMISSIONS`).
  - Each `ProjectRole` maps to a project-scoped set
    (`PROJECT_ROLE_PERMISSIONS`), independent of the global table.
  - Both tables are read-only mappings built once at import.

There is no default-allow fallback: a permission left out of a role's table
is denied for that role. When adding a permission, add it to every table
that should grant it.
"""

from __future__ import annotations

import enum
from types import MappingProxyType
from typing import Iterable, Mapping


class RoleTableError(RuntimeError):
    """A role table violates a catalog invariant."""


# ── Categories ──────────────────────────────────────────────

class PermissionCategory(str, enum.Enum):
    SYSTEM = "system"
    USER = "user"
    ORGANIZATION = "organization"
    PROJECT = "project"
    TASK = "task"
    TEAM = "team"
    TIME_TRACKING = "time_tracking"
    FINANCIAL = "financial"
    REPORTING = "reporting"
    SETTINGS = "settings"
    EPIC = "epic"
    SPRINT = "sprint"
    STORY = "story"
    CALENDAR = "calendar"
    KANBAN = "kanban"
    BACKLOG = "backlog"
    TEST_MANAGEMENT = "test_management"


# ── All known permissions ───────────────────────────────────

class Permission(str, enum.Enum):
    # System
    SYSTEM_ADMIN = "system:admin"
    SYSTEM_MONITOR = "system:monitor"
    SYSTEM_MAINTENANCE = "system:maintenance"

    # User management
    USER_CREATE = "user:create"
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"
    USER_INVITE = "user:invite"
    USER_ACTIVATE = "user:activate"
    USER_DEACTIVATE = "user:deactivate"
    USER_MANAGE_ROLES = "user:manage_roles"

    # Organization
    ORGANIZATION_READ = "organization:read"
    ORGANIZATION_UPDATE = "organization:update"
    ORGANIZATION_DELETE = "organization:delete"
    ORGANIZATION_MANAGE_SETTINGS = "organization:manage_settings"
    ORGANIZATION_MANAGE_BILLING = "organization:manage_billing"

    # Projects
    PROJECT_CREATE = "project:create"
    PROJECT_READ = "project:read"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"
    PROJECT_MANAGE_TEAM = "project:manage_team"
    PROJECT_MANAGE_BUDGET = "project:manage_budget"
    PROJECT_ARCHIVE = "project:archive"
    PROJECT_RESTORE = "project:restore"
    PROJECT_VIEW_ALL = "project:view_all"  # every project in the organization

    # Tasks
    TASK_CREATE = "task:create"
    TASK_READ = "task:read"
    TASK_UPDATE = "task:update"
    TASK_DELETE = "task:delete"
    TASK_ASSIGN = "task:assign"
    TASK_CHANGE_STATUS = "task:change_status"
    TASK_MANAGE_COMMENTS = "task:manage_comments"
    TASK_MANAGE_ATTACHMENTS = "task:manage_attachments"

    # Team
    TEAM_READ = "team:read"
    TEAM_INVITE = "team:invite"
    TEAM_REMOVE = "team:remove"
    TEAM_MANAGE_PERMISSIONS = "team:manage_permissions"
    TEAM_VIEW_ACTIVITY = "team:view_activity"

    # Time tracking
    TIME_TRACKING_CREATE = "time_tracking:create"
    TIME_TRACKING_READ = "time_tracking:read"
    TIME_TRACKING_UPDATE = "time_tracking:update"
    TIME_TRACKING_DELETE = "time_tracking:delete"
    TIME_TRACKING_APPROVE = "time_tracking:approve"
    TIME_TRACKING_EXPORT = "time_tracking:export"
    TIME_TRACKING_VIEW_ALL = "time_tracking:view_all"

    # Financial
    FINANCIAL_READ = "financial:read"
    FINANCIAL_MANAGE_BUDGET = "financial:manage_budget"
    FINANCIAL_CREATE_EXPENSE = "financial:create_expense"
    FINANCIAL_APPROVE_EXPENSE = "financial:approve_expense"
    FINANCIAL_CREATE_INVOICE = "financial:create_invoice"
    FINANCIAL_SEND_INVOICE = "financial:send_invoice"
    FINANCIAL_MANAGE_PAYMENTS = "financial:manage_payments"

    # Reporting
    REPORTING_VIEW = "reporting:view"
    REPORTING_CREATE = "reporting:create"
    REPORTING_EXPORT = "reporting:export"
    REPORTING_SHARE = "reporting:share"

    # Settings
    SETTINGS_READ = "settings:read"
    SETTINGS_UPDATE = "settings:update"
    SETTINGS_MANAGE_EMAIL = "settings:manage_email"
    SETTINGS_MANAGE_DATABASE = "settings:manage_database"
    SETTINGS_MANAGE_SECURITY = "settings:manage_security"

    # Epics
    EPIC_CREATE = "epic:create"
    EPIC_READ = "epic:read"
    EPIC_UPDATE = "epic:update"
    EPIC_DELETE = "epic:delete"

    # Sprints
    SPRINT_CREATE = "sprint:create"
    SPRINT_READ = "sprint:read"
    SPRINT_UPDATE = "sprint:update"
    SPRINT_DELETE = "sprint:delete"
    SPRINT_MANAGE = "sprint:manage"

    # Stories
    STORY_CREATE = "story:create"
    STORY_READ = "story:read"
    STORY_UPDATE = "story:update"
    STORY_DELETE = "story:delete"

    # Calendar
    CALENDAR_READ = "calendar:read"
    CALENDAR_CREATE = "calendar:create"
    CALENDAR_UPDATE = "calendar:update"
    CALENDAR_DELETE = "calendar:delete"

    # Kanban
    KANBAN_READ = "kanban:read"
    KANBAN_MANAGE = "kanban:manage"

    # Backlog
    BACKLOG_READ = "backlog:read"
    BACKLOG_MANAGE = "backlog:manage"

    # Test management
    TEST_SUITE_CREATE = "test_suite:create"
    TEST_SUITE_READ = "test_suite:read"
    TEST_SUITE_UPDATE = "test_suite:update"
    TEST_SUITE_DELETE = "test_suite:delete"
    TEST_CASE_CREATE = "test_case:create"
    TEST_CASE_READ = "test_case:read"
    TEST_CASE_UPDATE = "test_case:update"
    TEST_CASE_DELETE = "test_case:delete"
    TEST_PLAN_CREATE = "test_plan:create"
    TEST_PLAN_READ = "test_plan:read"
    TEST_PLAN_UPDATE = "test_plan:update"
    TEST_PLAN_DELETE = "test_plan:delete"
    TEST_PLAN_MANAGE = "test_plan:manage"
    TEST_EXECUTION_CREATE = "test_execution:create"
    TEST_EXECUTION_READ = "test_execution:read"
    TEST_EXECUTION_UPDATE = "test_execution:update"
    TEST_REPORT_VIEW = "test_report:view"
    TEST_REPORT_EXPORT = "test_report:export"


class Role(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    PROJECT_MANAGER = "project_manager"
    TEAM_MEMBER = "team_member"
    CLIENT = "client"
    VIEWER = "viewer"
    QA_ENGINEER = "qa_engineer"
    TESTER = "tester"


class ProjectRole(str, enum.Enum):
    PROJECT_MANAGER = "project_manager"
    PROJECT_MEMBER = "project_member"
    PROJECT_VIEWER = "project_viewer"
    PROJECT_CLIENT = "project_client"
    PROJECT_QA_LEAD = "project_qa_lead"
    PROJECT_TESTER = "project_tester"


ALL_PERMISSIONS: frozenset[Permission] = frozenset(Permission)

# Test-management permissions use their own prefixes (test_suite, test_case, …)
_TEST_MANAGEMENT_PREFIXES = ("test_suite", "test_case", "test_plan", "test_execution", "test_report")


def category_of(permission: Permission) -> PermissionCategory:
    prefix = permission.value.split(":", 1)[0]
    if prefix in _TEST_MANAGEMENT_PREFIXES:
        return PermissionCategory.TEST_MANAGEMENT
    return PermissionCategory(prefix)


def permissions_by_category() -> dict[PermissionCategory, list[Permission]]:
    """Group the catalog by category, in declaration order."""
    grouped: dict[PermissionCategory, list[Permission]] = {c: [] for c in PermissionCategory}
    for permission in Permission:
        grouped[category_of(permission)].append(permission)
    return grouped


# Never grantable through a project role: user management, org settings,
# billing, system administration.
ORGANIZATION_ONLY_CATEGORIES = frozenset({
    PermissionCategory.SYSTEM,
    PermissionCategory.USER,
    PermissionCategory.ORGANIZATION,
    PermissionCategory.SETTINGS,
})

ORGANIZATION_ONLY_PERMISSIONS: frozenset[Permission] = frozenset(
    p for p in Permission if category_of(p) in ORGANIZATION_ONLY_CATEGORIES
)


# ── Role → permissions ──────────────────────────────────────

# Read access shared by the read-mostly roles (client, viewer, qa, tester)
_READ_ONLY_WORKSPACE = (
    Permission.USER_READ,
    Permission.ORGANIZATION_READ,
    Permission.PROJECT_READ,
    Permission.TEAM_READ,
    Permission.TIME_TRACKING_READ,
    Permission.FINANCIAL_READ,
    Permission.REPORTING_VIEW,
    Permission.SETTINGS_READ,
    Permission.EPIC_READ,
    Permission.SPRINT_READ,
    Permission.STORY_READ,
    Permission.CALENDAR_READ,
    Permission.KANBAN_READ,
    Permission.BACKLOG_READ,
)

_ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.SUPER_ADMIN: ALL_PERMISSIONS,

    Role.ADMIN: frozenset({
        Permission.USER_CREATE, Permission.USER_READ, Permission.USER_UPDATE,
        Permission.USER_DELETE, Permission.USER_INVITE, Permission.USER_ACTIVATE,
        Permission.USER_DEACTIVATE, Permission.USER_MANAGE_ROLES,

        Permission.ORGANIZATION_READ, Permission.ORGANIZATION_UPDATE,
        Permission.ORGANIZATION_MANAGE_SETTINGS, Permission.ORGANIZATION_MANAGE_BILLING,

        Permission.PROJECT_CREATE, Permission.PROJECT_READ, Permission.PROJECT_UPDATE,
        Permission.PROJECT_DELETE, Permission.PROJECT_MANAGE_TEAM,
        Permission.PROJECT_MANAGE_BUDGET, Permission.PROJECT_ARCHIVE,
        Permission.PROJECT_RESTORE, Permission.PROJECT_VIEW_ALL,

        Permission.TASK_CREATE, Permission.TASK_READ, Permission.TASK_UPDATE,
        Permission.TASK_DELETE, Permission.TASK_ASSIGN, Permission.TASK_CHANGE_STATUS,
        Permission.TASK_MANAGE_COMMENTS, Permission.TASK_MANAGE_ATTACHMENTS,

        Permission.TEAM_READ, Permission.TEAM_INVITE, Permission.TEAM_REMOVE,
        Permission.TEAM_MANAGE_PERMISSIONS, Permission.TEAM_VIEW_ACTIVITY,

        Permission.TIME_TRACKING_CREATE, Permission.TIME_TRACKING_READ,
        Permission.TIME_TRACKING_UPDATE, Permission.TIME_TRACKING_DELETE,
        Permission.TIME_TRACKING_APPROVE, Permission.TIME_TRACKING_EXPORT,
        Permission.TIME_TRACKING_VIEW_ALL,

        Permission.FINANCIAL_READ, Permission.FINANCIAL_MANAGE_BUDGET,
        Permission.FINANCIAL_CREATE_EXPENSE, Permission.FINANCIAL_APPROVE_EXPENSE,
        Permission.FINANCIAL_CREATE_INVOICE, Permission.FINANCIAL_SEND_INVOICE,
        Permission.FINANCIAL_MANAGE_PAYMENTS,

        Permission.REPORTING_VIEW, Permission.REPORTING_CREATE,
        Permission.REPORTING_EXPORT, Permission.REPORTING_SHARE,

        Permission.SETTINGS_READ, Permission.SETTINGS_UPDATE,
        Permission.SETTINGS_MANAGE_EMAIL, Permission.SETTINGS_MANAGE_DATABASE,
        Permission.SETTINGS_MANAGE_SECURITY,

        Permission.EPIC_CREATE, Permission.EPIC_READ, Permission.EPIC_UPDATE,
        Permission.EPIC_DELETE,
        Permission.SPRINT_CREATE, Permission.SPRINT_READ, Permission.SPRINT_UPDATE,
        Permission.SPRINT_DELETE, Permission.SPRINT_MANAGE,
        Permission.STORY_CREATE, Permission.STORY_READ, Permission.STORY_UPDATE,
        Permission.STORY_DELETE,
        Permission.CALENDAR_READ, Permission.CALENDAR_CREATE,
        Permission.CALENDAR_UPDATE, Permission.CALENDAR_DELETE,
        Permission.KANBAN_READ, Permission.KANBAN_MANAGE,
        Permission.BACKLOG_READ, Permission.BACKLOG_MANAGE,
        # no test management: that belongs to qa_engineer / tester
    }),

    Role.PROJECT_MANAGER: frozenset({
        Permission.USER_READ, Permission.USER_INVITE,
        Permission.ORGANIZATION_READ,

        Permission.PROJECT_CREATE, Permission.PROJECT_READ, Permission.PROJECT_UPDATE,
        Permission.PROJECT_MANAGE_TEAM, Permission.PROJECT_MANAGE_BUDGET,

        Permission.TASK_CREATE, Permission.TASK_READ, Permission.TASK_UPDATE,
        Permission.TASK_DELETE, Permission.TASK_ASSIGN, Permission.TASK_CHANGE_STATUS,
        Permission.TASK_MANAGE_COMMENTS, Permission.TASK_MANAGE_ATTACHMENTS,

        Permission.TEAM_READ, Permission.TEAM_INVITE, Permission.TEAM_REMOVE,
        Permission.TEAM_VIEW_ACTIVITY,

        Permission.TIME_TRACKING_CREATE, Permission.TIME_TRACKING_READ,
        Permission.TIME_TRACKING_UPDATE, Permission.TIME_TRACKING_DELETE,
        Permission.TIME_TRACKING_APPROVE, Permission.TIME_TRACKING_EXPORT,

        Permission.FINANCIAL_READ, Permission.FINANCIAL_MANAGE_BUDGET,
        Permission.FINANCIAL_CREATE_EXPENSE, Permission.FINANCIAL_APPROVE_EXPENSE,

        Permission.REPORTING_VIEW, Permission.REPORTING_CREATE, Permission.REPORTING_EXPORT,

        Permission.SETTINGS_READ,

        Permission.EPIC_CREATE, Permission.EPIC_READ, Permission.EPIC_UPDATE,
        Permission.EPIC_DELETE,
        Permission.SPRINT_CREATE, Permission.SPRINT_READ, Permission.SPRINT_UPDATE,
        Permission.SPRINT_DELETE, Permission.SPRINT_MANAGE,
        Permission.STORY_CREATE, Permission.STORY_READ, Permission.STORY_UPDATE,
        Permission.STORY_DELETE,
        Permission.CALENDAR_READ, Permission.CALENDAR_CREATE,
        Permission.CALENDAR_UPDATE, Permission.CALENDAR_DELETE,
        Permission.KANBAN_READ, Permission.KANBAN_MANAGE,
        Permission.BACKLOG_READ, Permission.BACKLOG_MANAGE,
    }),

    # No delete/admin actions
    Role.TEAM_MEMBER: frozenset({
        Permission.USER_READ,
        Permission.ORGANIZATION_READ,
        Permission.PROJECT_READ,
        Permission.TASK_CREATE, Permission.TASK_READ, Permission.TASK_UPDATE,
        Permission.TASK_CHANGE_STATUS, Permission.TASK_MANAGE_COMMENTS,
        Permission.TEAM_READ,
        Permission.TIME_TRACKING_CREATE, Permission.TIME_TRACKING_READ,
        Permission.TIME_TRACKING_UPDATE, Permission.TIME_TRACKING_DELETE,
        Permission.FINANCIAL_READ,
        Permission.REPORTING_VIEW,
        Permission.SETTINGS_READ,
        Permission.EPIC_READ,
        Permission.SPRINT_READ,
        Permission.STORY_READ,
        Permission.CALENDAR_READ,
        Permission.KANBAN_READ,
        Permission.BACKLOG_READ,
    }),

    Role.CLIENT: frozenset({*_READ_ONLY_WORKSPACE, Permission.TASK_READ}),

    Role.VIEWER: frozenset({*_READ_ONLY_WORKSPACE, Permission.TASK_READ}),

    Role.QA_ENGINEER: frozenset({
        *_READ_ONLY_WORKSPACE,
        Permission.TASK_CREATE, Permission.TASK_READ, Permission.TASK_UPDATE,
        Permission.TASK_ASSIGN, Permission.TASK_CHANGE_STATUS,
        Permission.TASK_MANAGE_COMMENTS, Permission.TASK_MANAGE_ATTACHMENTS,

        Permission.TEST_SUITE_CREATE, Permission.TEST_SUITE_READ,
        Permission.TEST_SUITE_UPDATE, Permission.TEST_SUITE_DELETE,
        Permission.TEST_CASE_CREATE, Permission.TEST_CASE_READ,
        Permission.TEST_CASE_UPDATE, Permission.TEST_CASE_DELETE,
        Permission.TEST_PLAN_CREATE, Permission.TEST_PLAN_READ,
        Permission.TEST_PLAN_UPDATE, Permission.TEST_PLAN_DELETE,
        Permission.TEST_PLAN_MANAGE,
        Permission.TEST_EXECUTION_CREATE, Permission.TEST_EXECUTION_READ,
        Permission.TEST_EXECUTION_UPDATE,
        Permission.TEST_REPORT_VIEW, Permission.TEST_REPORT_EXPORT,
    }),

    Role.TESTER: frozenset({
        *_READ_ONLY_WORKSPACE,
        Permission.TASK_CREATE, Permission.TASK_READ, Permission.TASK_UPDATE,
        Permission.TASK_MANAGE_COMMENTS, Permission.TASK_MANAGE_ATTACHMENTS,

        Permission.TEST_SUITE_READ, Permission.TEST_CASE_READ, Permission.TEST_PLAN_READ,
        Permission.TEST_EXECUTION_CREATE, Permission.TEST_EXECUTION_READ,
        Permission.TEST_EXECUTION_UPDATE,
        Permission.TEST_REPORT_VIEW,
    }),
}


# ── Project role → permissions ──────────────────────────────

_PROJECT_READ_ONLY = (
    Permission.PROJECT_READ,
    Permission.TASK_READ,
    Permission.TEAM_READ,
    Permission.TIME_TRACKING_READ,
    Permission.FINANCIAL_READ,
    Permission.EPIC_READ,
    Permission.SPRINT_READ,
    Permission.STORY_READ,
    Permission.CALENDAR_READ,
    Permission.KANBAN_READ,
    Permission.BACKLOG_READ,
)

_PROJECT_ROLE_PERMISSIONS: dict[ProjectRole, frozenset[Permission]] = {
    ProjectRole.PROJECT_MANAGER: frozenset({
        *_PROJECT_READ_ONLY,
        Permission.PROJECT_UPDATE, Permission.PROJECT_MANAGE_TEAM,
        Permission.PROJECT_MANAGE_BUDGET,
        Permission.TASK_CREATE, Permission.TASK_UPDATE, Permission.TASK_DELETE,
        Permission.TASK_ASSIGN, Permission.TASK_CHANGE_STATUS,
        Permission.TASK_MANAGE_COMMENTS, Permission.TASK_MANAGE_ATTACHMENTS,
        Permission.TEAM_INVITE, Permission.TEAM_REMOVE,
        Permission.TIME_TRACKING_APPROVE, Permission.TIME_TRACKING_EXPORT,
        Permission.FINANCIAL_MANAGE_BUDGET,
        Permission.EPIC_CREATE, Permission.EPIC_UPDATE, Permission.EPIC_DELETE,
        Permission.SPRINT_CREATE, Permission.SPRINT_UPDATE, Permission.SPRINT_DELETE,
        Permission.SPRINT_MANAGE,
        Permission.STORY_CREATE, Permission.STORY_UPDATE, Permission.STORY_DELETE,
        Permission.CALENDAR_CREATE, Permission.CALENDAR_UPDATE, Permission.CALENDAR_DELETE,
        Permission.KANBAN_MANAGE,
        Permission.BACKLOG_MANAGE,
    }),

    ProjectRole.PROJECT_MEMBER: frozenset({
        *_PROJECT_READ_ONLY,
        Permission.TASK_CREATE, Permission.TASK_UPDATE, Permission.TASK_CHANGE_STATUS,
        Permission.TASK_MANAGE_COMMENTS,
        Permission.TIME_TRACKING_CREATE, Permission.TIME_TRACKING_UPDATE,
        Permission.TIME_TRACKING_DELETE,
        Permission.STORY_CREATE, Permission.STORY_UPDATE,
    }),

    ProjectRole.PROJECT_VIEWER: frozenset(_PROJECT_READ_ONLY),

    ProjectRole.PROJECT_CLIENT: frozenset(_PROJECT_READ_ONLY),

    ProjectRole.PROJECT_QA_LEAD: frozenset({
        *_PROJECT_READ_ONLY,
        Permission.TASK_CREATE, Permission.TASK_UPDATE, Permission.TASK_ASSIGN,
        Permission.TASK_CHANGE_STATUS, Permission.TASK_MANAGE_COMMENTS,
        Permission.TASK_MANAGE_ATTACHMENTS,
        Permission.TEST_SUITE_CREATE, Permission.TEST_SUITE_READ,
        Permission.TEST_SUITE_UPDATE, Permission.TEST_SUITE_DELETE,
        Permission.TEST_CASE_CREATE, Permission.TEST_CASE_READ,
        Permission.TEST_CASE_UPDATE, Permission.TEST_CASE_DELETE,
        Permission.TEST_PLAN_CREATE, Permission.TEST_PLAN_READ,
        Permission.TEST_PLAN_UPDATE, Permission.TEST_PLAN_DELETE,
        Permission.TEST_PLAN_MANAGE,
        Permission.TEST_EXECUTION_CREATE, Permission.TEST_EXECUTION_READ,
        Permission.TEST_EXECUTION_UPDATE,
        Permission.TEST_REPORT_VIEW, Permission.TEST_REPORT_EXPORT,
    }),

    ProjectRole.PROJECT_TESTER: frozenset({
        *_PROJECT_READ_ONLY,
        Permission.TASK_CREATE, Permission.TASK_UPDATE, Permission.TASK_MANAGE_COMMENTS,
        Permission.TASK_MANAGE_ATTACHMENTS,
        Permission.TEST_SUITE_READ, Permission.TEST_CASE_READ, Permission.TEST_PLAN_READ,
        Permission.TEST_EXECUTION_CREATE, Permission.TEST_EXECUTION_READ,
        Permission.TEST_EXECUTION_UPDATE,
        Permission.TEST_REPORT_VIEW,
    }),
}

ROLE_PERMISSIONS: Mapping[Role, frozenset[Permission]] = MappingProxyType(_ROLE_PERMISSIONS)
PROJECT_ROLE_PERMISSIONS: Mapping[ProjectRole, frozenset[Permission]] = MappingProxyType(
    _PROJECT_ROLE_PERMISSIONS
)


# ── Parsing stored values ───────────────────────────────────

def parse_role(value: str | None) -> Role | None:
    """Map a stored role string to a Role, or None when it is not one."""
    if value is None:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def parse_project_role(value: str | None) -> ProjectRole | None:
    if value is None:
        return None
    try:
        return ProjectRole(value)
    except ValueError:
        return None


def parse_permissions(values: Iterable[str]) -> tuple[frozenset[Permission], list[str]]:
    """Split raw strings into known permissions and unknown leftovers."""
    known: set[Permission] = set()
    unknown: list[str] = []
    for value in values:
        try:
            known.add(Permission(value))
        except ValueError:
            unknown.append(value)
    return frozenset(known), unknown


# ── Combining several permissions ───────────────────────

class PermissionMode(str, enum.Enum):
    """How a list of required permissions is combined."""
    ANY = "any"
    ALL = "all"


# ── Scope classification ────────────────────────────────────

class PermissionScope(str, enum.Enum):
    GLOBAL = "global"    # organization-wide
    PROJECT = "project"  # one project at a time
    OWN = "own"          # the caller's own resources


_GLOBAL_SCOPE = frozenset({
    Permission.USER_CREATE,
    Permission.USER_DELETE,
    Permission.USER_MANAGE_ROLES,
    Permission.ORGANIZATION_UPDATE,
    Permission.ORGANIZATION_DELETE,
    Permission.ORGANIZATION_MANAGE_SETTINGS,
    Permission.ORGANIZATION_MANAGE_BILLING,
    Permission.PROJECT_VIEW_ALL,
    Permission.TIME_TRACKING_VIEW_ALL,
    Permission.FINANCIAL_READ,
    Permission.REPORTING_VIEW,
    Permission.REPORTING_CREATE,
    Permission.REPORTING_EXPORT,
    Permission.REPORTING_SHARE,
    Permission.SETTINGS_MANAGE_EMAIL,
    Permission.SETTINGS_MANAGE_DATABASE,
    Permission.SETTINGS_MANAGE_SECURITY,
})

_OWN_SCOPE = frozenset({
    Permission.USER_READ,
    Permission.USER_UPDATE,
    Permission.TIME_TRACKING_CREATE,
    Permission.TIME_TRACKING_UPDATE,
    Permission.TIME_TRACKING_DELETE,
    Permission.SETTINGS_READ,
})


def get_permission_scope(permission: Permission) -> PermissionScope:
    """Classify a permission for display. Resolution ignores scope."""
    if permission in _GLOBAL_SCOPE:
        return PermissionScope.GLOBAL
    if permission in _OWN_SCOPE:
        return PermissionScope.OWN
    return PermissionScope.PROJECT


# ── Invariants ──────────────────────────────────────────────

def check_role_tables(
    role_table: Mapping[Role, frozenset[Permission]] = ROLE_PERMISSIONS,
    project_role_table: Mapping[ProjectRole, frozenset[Permission]] = PROJECT_ROLE_PERMISSIONS,
) -> None:
    """Raise RoleTableError if the tables break a catalog invariant.

    - every Role and ProjectRole has an entry
    - super_admin holds the whole catalog
    - no project role grants an organization-only permission
    """
    missing_roles = [r.value for r in Role if r not in role_table]
    missing_project_roles = [r.value for r in ProjectRole if r not in project_role_table]
    if missing_roles or missing_project_roles:
        raise RoleTableError(
            f"Roles without a permission table: {', '.join(missing_roles + missing_project_roles)}"
        )

    for role, granted in role_table.items():
        unknown = [p for p in granted if not isinstance(p, Permission)]
        if unknown:
            raise RoleTableError(f"{role.value} grants non-catalog permissions: {unknown!r}")

    if role_table[Role.SUPER_ADMIN] != ALL_PERMISSIONS:
        raise RoleTableError("super_admin must hold every permission")

    for project_role, granted in project_role_table.items():
        unknown = [p for p in granted if not isinstance(p, Permission)]
        if unknown:
            raise RoleTableError(f"{project_role.value} grants non-catalog permissions: {unknown!r}")
        leaked = sorted(p.value for p in granted & ORGANIZATION_ONLY_PERMISSIONS)
        if leaked:
            raise RoleTableError(
                f"Project role {project_role.value} grants organization-only permissions: "
                f"{', '.join(leaked)}"
            )


check_role_tables()
