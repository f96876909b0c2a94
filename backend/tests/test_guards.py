"""Tests for the authorization guards (FastAPI dependencies)."""

from types import SimpleNamespace

import pytest
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from app.auth.deps import (
    PermissionContext,
    get_current_user,
    get_permission_service,
    require_permission,
    require_permissions,
    require_project_access,
)
from app.auth.permissions import Permission, PermissionMode
from app.auth.resolver import MembershipRecord, PermissionResolver, UserRecord
from app.auth.revocation import TokenRevocation
from app.auth.jwt import create_access_token
from app.main import app
from app.middleware.exceptions import register_exception_handlers
from app.services.permissions import PermissionService


class StaticStore:
    """team_member who manages p1 and views p2."""

    async def get_user(self, user_id):
        return UserRecord(id=user_id, organization_id="o1", role="team_member")

    async def list_memberships(self, user_id):
        return [MembershipRecord("p1", "project_manager"), MembershipRecord("p2", "project_viewer")]

    async def list_project_ids(self, organization_id):
        return ["p1", "p2", "p3"]


class ExplodingStore(StaticStore):
    async def get_user(self, user_id):
        raise RuntimeError("role store offline")


# ── Guards in isolation ─────────────────────────────────────

@pytest.fixture
def calls():
    return []


@pytest.fixture
def guarded_app(calls):
    """Small app whose routes record that their body ran."""
    test_app = FastAPI()
    register_exception_handlers(test_app)

    @test_app.get("/any")
    async def any_route(ctx: PermissionContext = Depends(require_permissions(
        [Permission.USER_DELETE, Permission.TASK_READ], PermissionMode.ANY,
    ))):
        calls.append("any")
        return {"required": [p.value for p in ctx.required]}

    @test_app.get("/all")
    async def all_route(ctx: PermissionContext = Depends(require_permissions(
        [Permission.USER_DELETE, Permission.TASK_READ], PermissionMode.ALL,
    ))):
        calls.append("all")
        return {}

    @test_app.get("/empty-any")
    async def empty_any(ctx: PermissionContext = Depends(require_permissions([], PermissionMode.ANY))):
        calls.append("empty-any")
        return {}

    @test_app.get("/empty-all")
    async def empty_all(ctx: PermissionContext = Depends(require_permissions([], PermissionMode.ALL))):
        calls.append("empty-all")
        return {}

    @test_app.get("/projects/{project_id}/tasks")
    async def delete_tasks(ctx: PermissionContext = Depends(
        require_permission(Permission.TASK_DELETE, project_id_param="project_id")
    )):
        calls.append(ctx.project_id)
        return {"project_id": ctx.project_id}

    @test_app.get("/projects/{project_id}/settings")
    async def manage(ctx: PermissionContext = Depends(
        require_project_access("project_id", require_management=True)
    )):
        calls.append("manage")
        return {}

    @test_app.get("/misnamed/{project_id}")
    async def misnamed(ctx: PermissionContext = Depends(
        require_permission(Permission.TASK_READ, project_id_param="projectId")
    )):
        calls.append("misnamed")
        return {}

    @test_app.get("/no-project")
    async def no_project(ctx: PermissionContext = Depends(require_project_access("project_id"))):
        calls.append("no-project")
        return {}

    test_app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(
        id="u1", organization_id="o1", is_active=True
    )
    test_app.dependency_overrides[get_permission_service] = lambda: PermissionService(
        PermissionResolver(StaticStore())
    )
    return test_app


async def _get(test_app, path):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as c:
        return await c.get(path)


@pytest.mark.unit
@pytest.mark.asyncio
class TestGuardSemantics:

    async def test_any_mode(self, guarded_app, calls):
        response = await _get(guarded_app, "/any")
        assert response.status_code == 200
        assert response.json()["required"] == ["user:delete", "task:read"]
        assert calls == ["any"]

    async def test_all_mode_denies(self, guarded_app, calls):
        response = await _get(guarded_app, "/all")
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Insufficient permissions"
        assert calls == []

    async def test_empty_lists(self, guarded_app, calls):
        assert (await _get(guarded_app, "/empty-any")).status_code == 403
        assert (await _get(guarded_app, "/empty-all")).status_code == 200
        assert calls == ["empty-all"]

    async def test_project_scoped_permission(self, guarded_app, calls):
        assert (await _get(guarded_app, "/projects/p1/tasks")).status_code == 200
        assert (await _get(guarded_app, "/projects/p2/tasks")).status_code == 403
        assert (await _get(guarded_app, "/projects/p3/tasks")).status_code == 403
        assert calls == ["p1"]

    async def test_management_guard(self, guarded_app, calls):
        assert (await _get(guarded_app, "/projects/p1/settings")).status_code == 200
        assert (await _get(guarded_app, "/projects/p2/settings")).status_code == 403
        assert calls == ["manage"]

    async def test_missing_project_param_is_bad_request(self, guarded_app, calls):
        response = await _get(guarded_app, "/no-project")
        assert response.status_code == 400
        assert calls == []

    async def test_guard_naming_absent_param_is_bad_request(self, guarded_app, calls):
        response = await _get(guarded_app, "/misnamed/p1")
        assert response.status_code == 400
        assert calls == []

    async def test_denials_are_indistinguishable(self, guarded_app):
        bodies = [
            (await _get(guarded_app, path)).json()
            for path in ("/all", "/empty-any", "/projects/p3/tasks", "/projects/p2/settings")
        ]
        assert all(body == bodies[0] for body in bodies)
        assert "task" not in str(bodies[0])

    async def test_resolution_failure_is_generic_500(self, guarded_app, calls, caplog):
        guarded_app.dependency_overrides[get_permission_service] = lambda: PermissionService(
            PermissionResolver(ExplodingStore())
        )
        response = await _get(guarded_app, "/any")

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["message"] == "Permission check failed"
        assert "offline" not in response.text
        assert "role store offline" in caplog.text
        assert calls == []


# ── Authentication through the real app ─────────────────────

@pytest.mark.integration
@pytest.mark.asyncio
class TestAuthentication:

    async def test_missing_token(self, client):
        response = await client.get("/api/auth/permissions")
        assert response.status_code == 401

    async def test_garbage_token(self, client, seed):
        response = await client.get(
            "/api/auth/permissions", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    async def test_revoked_token(self, client, seed, headers_for, monkeypatch):
        async def _revoked(_token):
            return True

        monkeypatch.setattr(TokenRevocation, "is_revoked", staticmethod(_revoked))
        response = await client.get("/api/auth/permissions", headers=headers_for(seed.admin))
        assert response.status_code == 401

    async def test_inactive_user(self, client, db_session, seed, headers_for):
        seed.admin.is_active = False
        await db_session.flush()
        response = await client.get("/api/roles/", headers=headers_for(seed.admin))
        assert response.status_code == 401

    async def test_unknown_user(self, client, seed):
        headers = {"Authorization": f"Bearer {create_access_token('no-such-user')}"}
        response = await client.get("/api/auth/permissions", headers=headers)
        assert response.status_code == 401


@pytest.mark.integration
@pytest.mark.asyncio
class TestProjectGuards:

    async def test_member_sees_only_their_project(self, client, seed, headers_for):
        headers = headers_for(seed.member)
        assert (await client.get(f"/api/projects/{seed.p1.id}", headers=headers)).status_code == 200
        assert (await client.get(f"/api/projects/{seed.p2.id}", headers=headers)).status_code == 403

    async def test_view_all_opens_every_org_project(self, client, seed, headers_for):
        headers = headers_for(seed.admin)
        assert (await client.get(f"/api/projects/{seed.p3.id}", headers=headers)).status_code == 200
        assert (await client.get(f"/api/projects/{seed.foreign.id}", headers=headers)).status_code == 403

    async def test_global_grant_still_needs_project_access(self, client, seed, headers_for):
        # Global project_manager holds project:manage_team but is on no project
        response = await client.put(
            f"/api/projects/{seed.p1.id}/members/{seed.viewer.id}",
            json={"project_role": "project_member"},
            headers=headers_for(seed.manager),
        )
        assert response.status_code == 403

    async def test_resolution_failure_stops_handler(self, client, db_session, seed, headers_for):
        app.dependency_overrides[get_permission_service] = lambda: PermissionService(
            PermissionResolver(ExplodingStore())
        )
        response = await client.put(
            f"/api/users/{seed.viewer.id}/role",
            json={"role": "admin"},
            headers=headers_for(seed.super_admin),
        )
        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Permission check failed"

        await db_session.refresh(seed.viewer)
        assert seed.viewer.role == "viewer"
