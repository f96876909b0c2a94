"""Tests for permission resolution from role assignments."""

import pytest
from sqlalchemy.exc import OperationalError

from app.auth.permissions import (
    PROJECT_ROLE_PERMISSIONS,
    ROLE_PERMISSIONS,
    Permission,
    ProjectRole,
    Role,
)
from app.auth.resolver import (
    MembershipRecord,
    PermissionResolver,
    SQLRoleAssignmentStore,
    UserRecord,
)
from app.middleware.exceptions import PermissionResolutionError, UserNotFoundError
from app.models.project import ProjectMember


class InMemoryStore:
    """RoleAssignmentStore backed by plain dicts."""

    def __init__(self, users=(), memberships=None, projects=None):
        self.users = {u.id: u for u in users}
        self.memberships = memberships or {}
        self.projects = projects or {}

    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def list_memberships(self, user_id):
        return list(self.memberships.get(user_id, []))

    async def list_project_ids(self, organization_id):
        return list(self.projects.get(organization_id, []))


class BrokenStore(InMemoryStore):
    async def get_user(self, user_id):
        raise OperationalError("SELECT users", {}, Exception("connection refused"))


@pytest.mark.unit
@pytest.mark.asyncio
class TestResolver:

    async def test_team_member_with_project_role(self):
        store = InMemoryStore(
            users=[UserRecord(id="u1", organization_id="o1", role="team_member")],
            memberships={"u1": [MembershipRecord("p1", "project_manager")]},
            projects={"o1": ["p1", "p2"]},
        )
        snap = await PermissionResolver(store).resolve("u1")

        assert snap.role is Role.TEAM_MEMBER
        assert snap.global_permissions == ROLE_PERMISSIONS[Role.TEAM_MEMBER]
        assert snap.project_permissions["p1"] == PROJECT_ROLE_PERMISSIONS[ProjectRole.PROJECT_MANAGER]
        assert snap.project_roles == {"p1": ProjectRole.PROJECT_MANAGER}
        assert snap.accessible_projects == {"p1"}

        assert snap.has_permission(Permission.TASK_DELETE, "p1")
        assert not snap.has_permission(Permission.TASK_DELETE, "p2")
        assert not snap.has_permission(Permission.TASK_DELETE)
        assert snap.can_manage_project("p1")

    async def test_view_all_grants_every_org_project(self):
        store = InMemoryStore(
            users=[UserRecord(id="a1", organization_id="o1", role="admin")],
            projects={"o1": ["p1", "p2", "p3"], "o2": ["x1"]},
        )
        snap = await PermissionResolver(store).resolve("a1")

        assert snap.accessible_projects == {"p1", "p2", "p3"}
        assert snap.project_permissions == {}
        # Global grants count on any project
        assert snap.has_permission(Permission.PROJECT_UPDATE, "p2")

    async def test_unknown_global_role_grants_nothing(self, caplog):
        store = InMemoryStore(
            users=[UserRecord(id="u1", organization_id="o1", role="owner")],
            projects={"o1": ["p1"]},
        )
        snap = await PermissionResolver(store).resolve("u1")

        assert snap.role is None
        assert snap.global_permissions == frozenset()
        assert snap.accessible_projects == frozenset()
        assert "unknown role" in caplog.text

    async def test_unknown_project_role_row_is_skipped(self):
        store = InMemoryStore(
            users=[UserRecord(id="u1", organization_id="o1", role="viewer")],
            memberships={"u1": [
                MembershipRecord("p1", "project_overlord"),
                MembershipRecord("p2", "project_member"),
            ]},
        )
        snap = await PermissionResolver(store).resolve("u1")

        assert "p1" not in snap.project_permissions
        assert not snap.can_access_project("p1")
        assert snap.can_access_project("p2")

    async def test_missing_user_raises(self):
        with pytest.raises(UserNotFoundError):
            await PermissionResolver(InMemoryStore()).resolve("ghost")

    async def test_store_failure_raises_resolution_error(self):
        with pytest.raises(PermissionResolutionError) as exc_info:
            await PermissionResolver(BrokenStore()).resolve("u1")
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert exc_info.value.status_code == 500

    async def test_resolution_is_idempotent(self):
        store = InMemoryStore(
            users=[UserRecord(id="u1", organization_id="o1", role="tester")],
            memberships={"u1": [MembershipRecord("p1", "project_tester")]},
        )
        resolver = PermissionResolver(store)
        assert await resolver.resolve("u1") == await resolver.resolve("u1")


@pytest.mark.unit
@pytest.mark.asyncio
class TestRoleCombinations:

    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("project_role", list(ProjectRole))
    async def test_nothing_granted_outside_both_tables(self, role, project_role):
        store = InMemoryStore(
            users=[UserRecord(id="u1", organization_id="o1", role=role.value)],
            memberships={"u1": [MembershipRecord("P1", project_role.value)]},
            projects={"o1": ["P1", "P2"]},
        )
        snap = await PermissionResolver(store).resolve("u1")

        granted_on_p1 = ROLE_PERMISSIONS[role] | PROJECT_ROLE_PERMISSIONS[project_role]
        for permission in Permission:
            assert snap.has_permission(permission, "P1") == (permission in granted_on_p1)
            assert snap.has_permission(permission, "P2") == (permission in ROLE_PERMISSIONS[role])
            assert snap.has_permission(permission) == (permission in ROLE_PERMISSIONS[role])

    async def test_super_admin_holds_every_permission(self):
        store = InMemoryStore(users=[UserRecord(id="s1", organization_id="o1", role="super_admin")])
        snap = await PermissionResolver(store).resolve("s1")
        assert all(snap.has_permission(p) for p in Permission)

    async def test_team_member_managing_one_project(self):
        store = InMemoryStore(
            users=[UserRecord(id="u1", organization_id="o1", role="team_member")],
            memberships={"u1": [MembershipRecord("P1", "project_manager")]},
            projects={"o1": ["P1", "P2"]},
        )
        snap = await PermissionResolver(store).resolve("u1")

        assert snap.has_permission(Permission.PROJECT_UPDATE, "P1") is True
        assert snap.has_permission(Permission.PROJECT_UPDATE, "P2") is False
        assert snap.can_access_project("P1") is True
        assert snap.can_access_project("P2") is False

    async def test_admin_without_memberships(self):
        store = InMemoryStore(
            users=[UserRecord(id="a1", organization_id="o1", role="admin")],
            projects={"o1": ["P1", "P2", "P3"]},
        )
        snap = await PermissionResolver(store).resolve("a1")

        assert all(snap.can_access_project(pid) for pid in ("P1", "P2", "P3"))
        assert snap.has_permission(Permission.USER_DELETE) is True
        assert snap.has_permission(Permission.TEST_EXECUTION_CREATE) is False


@pytest.mark.integration
@pytest.mark.asyncio
class TestSQLStore:

    async def test_resolves_from_database(self, db_session, seed):
        resolver = PermissionResolver(SQLRoleAssignmentStore(db_session))

        member = await resolver.resolve(seed.member.id)
        assert member.accessible_projects == {seed.p1.id}
        assert member.project_roles[seed.p1.id] is ProjectRole.PROJECT_MANAGER

        admin = await resolver.resolve(seed.admin.id)
        assert admin.accessible_projects == {seed.p1.id, seed.p2.id, seed.p3.id}
        assert seed.foreign.id not in admin.accessible_projects

    async def test_cross_org_membership_is_ignored(self, db_session, seed):
        db_session.add(ProjectMember(
            user_id=seed.viewer.id, project_id=seed.foreign.id, project_role="project_member",
        ))
        await db_session.flush()

        snap = await PermissionResolver(SQLRoleAssignmentStore(db_session)).resolve(seed.viewer.id)
        assert snap.accessible_projects == {seed.p2.id}

    async def test_role_change_applies_to_next_resolution(self, db_session, seed):
        resolver = PermissionResolver(SQLRoleAssignmentStore(db_session))
        before = await resolver.resolve(seed.viewer.id)
        assert not before.has_permission(Permission.TASK_CREATE)

        seed.viewer.role = "team_member"
        await db_session.flush()

        after = await resolver.resolve(seed.viewer.id)
        assert after.has_permission(Permission.TASK_CREATE)
