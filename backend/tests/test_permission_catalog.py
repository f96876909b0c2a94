"""Tests for the permission catalog and role tables."""

from types import MappingProxyType

import pytest

from app.auth.permissions import (
    ALL_PERMISSIONS,
    ORGANIZATION_ONLY_PERMISSIONS,
    PROJECT_ROLE_PERMISSIONS,
    ROLE_PERMISSIONS,
    Permission,
    PermissionCategory,
    PermissionScope,
    ProjectRole,
    Role,
    RoleTableError,
    category_of,
    check_role_tables,
    get_permission_scope,
    parse_permissions,
    parse_project_role,
    parse_role,
    permissions_by_category,
)


@pytest.mark.unit
class TestCatalog:

    def test_catalog_size(self):
        assert len(ALL_PERMISSIONS) == 100
        assert ALL_PERMISSIONS == frozenset(Permission)

    def test_permission_values_are_category_action(self):
        for permission in Permission:
            category, _, action = permission.value.partition(":")
            assert category and action

    def test_category_of(self):
        assert category_of(Permission.USER_MANAGE_ROLES) is PermissionCategory.USER
        assert category_of(Permission.TIME_TRACKING_APPROVE) is PermissionCategory.TIME_TRACKING
        assert category_of(Permission.TEST_PLAN_MANAGE) is PermissionCategory.TEST_MANAGEMENT

    def test_permissions_by_category_covers_catalog(self):
        grouped = permissions_by_category()
        flattened = [p for perms in grouped.values() for p in perms]
        assert sorted(flattened) == sorted(Permission)

    def test_organization_only_permissions(self):
        assert Permission.SYSTEM_ADMIN in ORGANIZATION_ONLY_PERMISSIONS
        assert Permission.SETTINGS_READ in ORGANIZATION_ONLY_PERMISSIONS
        assert Permission.TASK_READ not in ORGANIZATION_ONLY_PERMISSIONS

    def test_scope(self):
        assert get_permission_scope(Permission.USER_MANAGE_ROLES) is PermissionScope.GLOBAL
        assert get_permission_scope(Permission.USER_READ) is PermissionScope.OWN
        assert get_permission_scope(Permission.TASK_UPDATE) is PermissionScope.PROJECT


@pytest.mark.unit
class TestRoleTables:

    def test_every_role_has_a_table(self):
        assert set(ROLE_PERMISSIONS) == set(Role)
        assert set(PROJECT_ROLE_PERMISSIONS) == set(ProjectRole)

    def test_super_admin_holds_everything(self):
        assert ROLE_PERMISSIONS[Role.SUPER_ADMIN] == ALL_PERMISSIONS

    def test_admin_has_no_test_management(self):
        admin = ROLE_PERMISSIONS[Role.ADMIN]
        assert not any(category_of(p) is PermissionCategory.TEST_MANAGEMENT for p in admin)
        assert Permission.USER_MANAGE_ROLES in admin

    def test_project_roles_never_grant_organization_only(self):
        for granted in PROJECT_ROLE_PERMISSIONS.values():
            assert not granted & ORGANIZATION_ONLY_PERMISSIONS

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            ROLE_PERMISSIONS[Role.VIEWER] = ALL_PERMISSIONS

    def test_check_rejects_leaking_project_role(self):
        leaky = dict(PROJECT_ROLE_PERMISSIONS)
        leaky[ProjectRole.PROJECT_VIEWER] = leaky[ProjectRole.PROJECT_VIEWER] | {
            Permission.USER_MANAGE_ROLES
        }
        with pytest.raises(RoleTableError, match="organization-only"):
            check_role_tables(project_role_table=MappingProxyType(leaky))

    def test_check_rejects_missing_role(self):
        partial = {r: p for r, p in ROLE_PERMISSIONS.items() if r is not Role.TESTER}
        with pytest.raises(RoleTableError, match="tester"):
            check_role_tables(role_table=partial)

    def test_check_rejects_non_catalog_entry(self):
        bad = dict(ROLE_PERMISSIONS)
        bad[Role.VIEWER] = frozenset({"project:teleport"})
        with pytest.raises(RoleTableError, match="non-catalog"):
            check_role_tables(role_table=bad)

    def test_check_rejects_partial_super_admin(self):
        bad = dict(ROLE_PERMISSIONS)
        bad[Role.SUPER_ADMIN] = ALL_PERMISSIONS - {Permission.SYSTEM_ADMIN}
        with pytest.raises(RoleTableError, match="super_admin"):
            check_role_tables(role_table=bad)


@pytest.mark.unit
class TestParsing:

    def test_parse_role(self):
        assert parse_role("admin") is Role.ADMIN
        assert parse_role("owner") is None
        assert parse_role(None) is None
        assert parse_role("") is None

    def test_parse_project_role(self):
        assert parse_project_role("project_qa_lead") is ProjectRole.PROJECT_QA_LEAD
        assert parse_project_role("project_owner") is None

    def test_parse_permissions_splits_unknown(self):
        known, unknown = parse_permissions(["task:read", "task:teleport", "kanban:manage"])
        assert known == {Permission.TASK_READ, Permission.KANBAN_MANAGE}
        assert unknown == ["task:teleport"]
