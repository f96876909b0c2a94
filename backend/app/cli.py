"""Management CLI for the permission engine.

Usage:
    python -m app.cli check-roles          # Validate the role tables, print a summary
    python -m app.cli resolve <user_id>    # Print a user's resolved permission snapshot
"""

import asyncio
import json
import sys

from app.auth.permissions import (
    ALL_PERMISSIONS,
    PROJECT_ROLE_PERMISSIONS,
    ROLE_PERMISSIONS,
    RoleTableError,
    check_role_tables,
)
from app.database import async_session
from app.middleware.exceptions import KanvaroException
from app.services.permissions import PermissionService


def check_roles() -> int:
    """Re-run the table checks and print how many permissions each role holds."""
    try:
        check_role_tables()
    except RoleTableError as e:
        print(f"  FAILED: {e}")
        return 1

    print(f"Catalog: {len(ALL_PERMISSIONS)} permissions")
    for role, granted in ROLE_PERMISSIONS.items():
        print(f"  {role.value:<16} {len(granted)}")
    for project_role, granted in PROJECT_ROLE_PERMISSIONS.items():
        print(f"  {project_role.value:<16} {len(granted)}  (project)")
    print("OK")
    return 0


async def _resolve(user_id: str) -> dict:
    async with async_session() as db:
        service = PermissionService.for_session(db)
        snapshot = await service.get_permissions(user_id)
        return snapshot.to_wire()


def resolve(user_id: str) -> int:
    try:
        payload = asyncio.run(_resolve(user_id))
    except KanvaroException as e:
        print(f"  FAILED: {getattr(e, 'detail', e.message)}")
        return 1
    print(json.dumps(payload, indent=2))
    return 0


def main(argv: list[str]) -> int:
    cmd = argv[0] if argv else ""
    if cmd == "check-roles":
        return check_roles()
    if cmd == "resolve" and len(argv) == 2:
        return resolve(argv[1])
    print("Usage: python -m app.cli [check-roles|resolve <user_id>]")
    return 2


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
