"""Role catalog: which permissions each global and project role grants."""

from fastapi import APIRouter, Depends

from app.auth.deps import PermissionContext, require_permission
from app.auth.permissions import PROJECT_ROLE_PERMISSIONS, ROLE_PERMISSIONS, Permission
from app.schemas.permissions import RoleCatalogOut, RoleOut

router = APIRouter()


@router.get("/", response_model=RoleCatalogOut)
async def list_roles(
    ctx: PermissionContext = Depends(require_permission(Permission.USER_READ)),
):
    return RoleCatalogOut(
        roles=[
            RoleOut(id=role.value, scope="global", permissions=sorted(p.value for p in perms))
            for role, perms in ROLE_PERMISSIONS.items()
        ],
        project_roles=[
            RoleOut(id=role.value, scope="project", permissions=sorted(p.value for p in perms))
            for role, perms in PROJECT_ROLE_PERMISSIONS.items()
        ],
    )
