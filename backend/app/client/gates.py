"""UI bindings over a PermissionCache.

A gate decides whether a piece of UI is shown; a gated button decides
whether a control is enabled. Both re-evaluate against the cache on every
call, so they follow refreshes without re-subscribing.
"""

from dataclasses import dataclass
from typing import Any, Iterable

from app.auth.permissions import Permission, PermissionMode
from app.client.permissions import PermissionCache


class PermissionGate:
    """Render `children` only when the check passes, else `fallback`.

    `permissions` with mode ANY (the default) passes on any one grant; ALL
    needs every grant. An empty list never passes in ANY mode.
    """

    def __init__(
        self,
        cache: PermissionCache,
        permissions: Permission | Iterable[Permission],
        mode: PermissionMode = PermissionMode.ANY,
        project_id: str | None = None,
        fallback: Any = None,
    ):
        if isinstance(permissions, Permission):
            permissions = [permissions]
        self.cache = cache
        self.permissions = tuple(permissions)
        self.mode = mode
        self.project_id = project_id
        self.fallback = fallback

    def allowed(self) -> bool:
        if self.mode == PermissionMode.ALL:
            return self.cache.has_all_permissions(self.permissions, self.project_id)
        return self.cache.has_any_permission(self.permissions, self.project_id)

    def render(self, children: Any) -> Any:
        return children if self.allowed() else self.fallback


@dataclass(frozen=True)
class ButtonState:
    enabled: bool
    label: str
    reason: str | None = None   # shown as a tooltip when disabled


class GatedButton:
    """A control that is always shown but only enabled with permission."""

    def __init__(
        self,
        cache: PermissionCache,
        label: str,
        permission: Permission,
        project_id: str | None = None,
    ):
        self.gate = PermissionGate(cache, permission, project_id=project_id)
        self.label = label

    def state(self) -> ButtonState:
        if self.gate.cache.loading and self.gate.cache.snapshot is None:
            return ButtonState(enabled=False, label=self.label, reason="Loading permissions")
        if self.gate.allowed():
            return ButtonState(enabled=True, label=self.label)
        return ButtonState(enabled=False, label=self.label, reason="Insufficient permissions")
