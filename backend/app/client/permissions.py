"""Client-side permission cache.

Fetches the caller's snapshot from GET /api/auth/permissions once and
answers permission questions synchronously afterwards, so UI code can
gate controls without a round trip per check.

    async with build_http_client(base_url, token) as http:
        cache = PermissionCache(http)
        await cache.ensure_loaded()
        if cache.has_permission(Permission.PROJECT_CREATE):
            ...

Every failure leaves the cache empty, and an empty cache answers False to
every question. Fetching never raises to the caller; inspect `error`.
"""

import asyncio
import logging
from typing import Callable, Iterable

import httpx
from pydantic import ValidationError

from app.auth.permissions import Permission
from app.auth.snapshot import ProjectView, ResolvedPermissions
from app.config import settings
from app.schemas.permissions import PermissionSnapshotOut

logger = logging.getLogger(__name__)

Listener = Callable[["PermissionCache"], None]


class PermissionFetchError(Exception):
    """Why the last permission fetch failed. Kept on the cache, not raised."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def build_http_client(base_url: str, token: str | None = None) -> httpx.AsyncClient:
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        timeout=settings.permission_client_timeout_seconds,
    )


# ── Feature flags derived from global grants ────────────────
# Each flag is true when the user holds any of the listed permissions.

FEATURE_PERMISSIONS: dict[str, tuple[Permission, ...]] = {
    "can_create_project": (Permission.PROJECT_CREATE,),
    "can_view_all_projects": (Permission.PROJECT_VIEW_ALL,),
    "can_create_task": (Permission.TASK_CREATE,),
    "can_manage_tasks": (Permission.TASK_UPDATE, Permission.TASK_DELETE, Permission.TASK_ASSIGN),
    "can_manage_team": (
        Permission.TEAM_INVITE, Permission.TEAM_REMOVE, Permission.TEAM_MANAGE_PERMISSIONS,
    ),
    "can_track_time": (Permission.TIME_TRACKING_CREATE,),
    "can_approve_time": (Permission.TIME_TRACKING_APPROVE,),
    "can_view_all_time": (Permission.TIME_TRACKING_VIEW_ALL,),
    "can_manage_budget": (Permission.FINANCIAL_MANAGE_BUDGET,),
    "can_create_expense": (Permission.FINANCIAL_CREATE_EXPENSE,),
    "can_approve_expense": (Permission.FINANCIAL_APPROVE_EXPENSE,),
    "can_manage_settings": (
        Permission.SETTINGS_UPDATE,
        Permission.SETTINGS_MANAGE_EMAIL,
        Permission.SETTINGS_MANAGE_DATABASE,
        Permission.SETTINGS_MANAGE_SECURITY,
    ),
    "can_view_reports": (Permission.REPORTING_VIEW,),
    "can_create_reports": (Permission.REPORTING_CREATE,),
    "can_export_reports": (Permission.REPORTING_EXPORT,),
    "can_manage_epics": (Permission.EPIC_CREATE, Permission.EPIC_UPDATE, Permission.EPIC_DELETE),
    "can_manage_sprints": (
        Permission.SPRINT_CREATE, Permission.SPRINT_UPDATE,
        Permission.SPRINT_DELETE, Permission.SPRINT_MANAGE,
    ),
    "can_manage_stories": (Permission.STORY_CREATE, Permission.STORY_UPDATE, Permission.STORY_DELETE),
    "can_manage_calendar": (
        Permission.CALENDAR_CREATE, Permission.CALENDAR_UPDATE, Permission.CALENDAR_DELETE,
    ),
    "can_manage_kanban": (Permission.KANBAN_MANAGE,),
    "can_manage_backlog": (Permission.BACKLOG_MANAGE,),
    "can_manage_test_suites": (
        Permission.TEST_SUITE_CREATE, Permission.TEST_SUITE_UPDATE, Permission.TEST_SUITE_DELETE,
    ),
    "can_manage_test_cases": (
        Permission.TEST_CASE_CREATE, Permission.TEST_CASE_UPDATE, Permission.TEST_CASE_DELETE,
    ),
    "can_manage_test_plans": (
        Permission.TEST_PLAN_CREATE, Permission.TEST_PLAN_UPDATE,
        Permission.TEST_PLAN_DELETE, Permission.TEST_PLAN_MANAGE,
    ),
    "can_execute_tests": (Permission.TEST_EXECUTION_CREATE, Permission.TEST_EXECUTION_UPDATE),
    "can_view_test_reports": (Permission.TEST_REPORT_VIEW,),
    "can_export_test_reports": (Permission.TEST_REPORT_EXPORT,),
}

USER_MANAGEMENT_PERMISSIONS: dict[str, tuple[Permission, ...]] = {
    "can_create_user": (Permission.USER_CREATE,),
    "can_invite_user": (Permission.USER_INVITE,),
    "can_manage_roles": (Permission.USER_MANAGE_ROLES,),
    "can_activate_user": (Permission.USER_ACTIVATE,),
    "can_deactivate_user": (Permission.USER_DEACTIVATE,),
    "can_delete_user": (Permission.USER_DELETE,),
    "can_manage_users": (
        Permission.USER_CREATE, Permission.USER_UPDATE,
        Permission.USER_DELETE, Permission.USER_INVITE,
    ),
}


class PermissionCache:
    """One user's permission snapshot, shared by every UI consumer.

    State:
        snapshot  the last good ResolvedPermissions, or None
        loading   True from construction until the first fetch settles,
                  and again while a refresh is in flight
        error     PermissionFetchError from the last fetch, or None

    Concurrent `ensure_loaded()` calls share one request. When
    `refresh_permissions()` is called while a fetch is running, the newer
    fetch wins: the older response is discarded when it arrives.
    """

    def __init__(self, http_client: httpx.AsyncClient, url: str = settings.permissions_endpoint):
        self._http = http_client
        self._url = url
        self._listeners: list[Listener] = []
        self._task: asyncio.Task | None = None
        self._generation = 0

        self.snapshot: ResolvedPermissions | None = None
        self.loading = True
        self.error: PermissionFetchError | None = None

    # ── Loading ──────────────────────────────────────────────

    async def ensure_loaded(self) -> None:
        """Start the first fetch, or join the one already running."""
        if self._task is None:
            self._start_fetch()
        await self._wait_for_latest()

    async def refresh_permissions(self) -> None:
        """Fetch again, e.g. after a role change. The previous snapshot
        keeps answering until the new one lands.
        """
        self._start_fetch()
        await self._wait_for_latest()

    def _start_fetch(self) -> None:
        self._generation += 1
        self.loading = True
        self._task = asyncio.create_task(self._fetch(self._generation))

    async def _wait_for_latest(self) -> None:
        # A refresh can supersede the task we were waiting on
        while True:
            task = self._task
            await asyncio.shield(task)
            if task is self._task:
                return

    async def _fetch(self, generation: int) -> None:
        snapshot = None
        error = None
        try:
            response = await self._http.get(self._url)
            response.raise_for_status()
            body = PermissionSnapshotOut.model_validate(response.json())
            snapshot = ResolvedPermissions.from_wire(body.model_dump(by_alias=True))
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            error = PermissionFetchError(
                f"Permission request failed with HTTP {status_code}", status_code=status_code
            )
        except httpx.HTTPError as e:
            error = PermissionFetchError(f"Permission request failed: {e.__class__.__name__}")
        except (ValidationError, ValueError):
            error = PermissionFetchError("Malformed permission response")
        except Exception as e:
            # Closed client or a broken transport: still settle the fetch
            logger.exception("Unexpected error while fetching permissions")
            error = PermissionFetchError(f"Permission request failed: {e.__class__.__name__}")

        if generation != self._generation:
            logger.debug(f"Discarding superseded permission fetch #{generation}")
            return

        if error is not None:
            logger.warning(
                f"Permission fetch failed: {error.message}",
                extra={"status_code": error.status_code, "url": self._url},
            )
        # One assignment per field; readers never see a half-updated snapshot
        self.snapshot = snapshot
        self.error = error
        self.loading = False
        self._notify()

    # ── Observers ────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener(cache)` after every settled fetch. Returns an
        unsubscribe function.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Permission listener raised")

    # ── Queries ──────────────────────────────────────────────

    def has_permission(self, permission: Permission, project_id: str | None = None) -> bool:
        if self.snapshot is None:
            return False
        return self.snapshot.has_permission(permission, project_id)

    def has_any_permission(
        self, permissions: Iterable[Permission], project_id: str | None = None
    ) -> bool:
        if self.snapshot is None:
            return False
        return self.snapshot.has_any_permission(permissions, project_id)

    def has_all_permissions(
        self, permissions: Iterable[Permission], project_id: str | None = None
    ) -> bool:
        if self.snapshot is None:
            return False
        return self.snapshot.has_all_permissions(permissions, project_id)

    def can_access_project(self, project_id: str) -> bool:
        if self.snapshot is None:
            return False
        return self.snapshot.can_access_project(project_id)

    def can_manage_project(self, project_id: str) -> bool:
        if self.snapshot is None:
            return False
        return self.snapshot.can_manage_project(project_id)

    # ── Views ────────────────────────────────────────────────

    def project_view(self, project_id: str) -> ProjectView:
        if self.snapshot is None:
            return ProjectView(project_id=project_id)
        return self.snapshot.project_view(project_id)

    def feature_permissions(self) -> dict[str, bool]:
        return {name: self.has_any_permission(perms) for name, perms in FEATURE_PERMISSIONS.items()}

    def user_management_permissions(self) -> dict[str, bool]:
        return {
            name: self.has_any_permission(perms)
            for name, perms in USER_MANAGEMENT_PERMISSIONS.items()
        }
