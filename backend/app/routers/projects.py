"""Project access and project-team roles.

Endpoints:
    GET    /api/projects                                List projects the caller can access
    GET    /api/projects/{project_id}                   One project (project access required)
    PUT    /api/projects/{project_id}/members/{user_id} Grant or change a project role
    DELETE /api/projects/{project_id}/members/{user_id} Remove a user from the project
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import (
    PermissionContext,
    get_current_user,
    get_permission_service,
    require_permission,
    require_project_access,
)
from app.auth.permissions import Permission, ProjectRole, parse_project_role
from app.database import get_db
from app.middleware.exceptions import ResourceNotFoundError
from app.models.project import Project, ProjectMember
from app.models.user import User
from app.schemas.permissions import ProjectMemberOut, ProjectMemberUpdate
from app.schemas.project import ProjectOut
from app.services.permissions import PermissionService

logger = logging.getLogger(__name__)

router = APIRouter()

_manage_team = require_permission(
    Permission.PROJECT_MANAGE_TEAM, project_id_param="project_id", require_management=True
)


async def _get_org_project(db: AsyncSession, project_id: str, organization_id: str) -> Project:
    result = await db.execute(
        select(Project).where(
            Project.id == project_id,
            Project.organization_id == organization_id,
        )
    )
    project = result.scalar_one_or_none()
    if not project:
        raise ResourceNotFoundError("Project", project_id)
    return project


# ── GET / ────────────────────────────────────────────────────

@router.get("/", response_model=list[ProjectOut])
async def list_projects(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    service: PermissionService = Depends(get_permission_service),
):
    snapshot = await service.get_permissions(user.id)
    if not snapshot.accessible_projects:
        return []

    result = await db.execute(
        select(Project)
        .where(
            Project.organization_id == user.organization_id,
            Project.id.in_(sorted(snapshot.accessible_projects)),
        )
        .order_by(Project.name)
    )
    projects = []
    for project in result.scalars().all():
        out = ProjectOut.model_validate(project)
        role = snapshot.project_role(project.id)
        out.my_role = role.value if role else None
        projects.append(out)
    return projects


# ── GET /{project_id} ────────────────────────────────────────

@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(
    project_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: PermissionContext = Depends(require_project_access("project_id")),
):
    project = await _get_org_project(db, project_id, ctx.user.organization_id)
    out = ProjectOut.model_validate(project)
    role = ctx.permissions.project_role(project_id)
    out.my_role = role.value if role else None
    return out


# ── PUT /{project_id}/members/{user_id} ──────────────────────

@router.put("/{project_id}/members/{user_id}", response_model=ProjectMemberOut)
async def set_project_member(
    project_id: str,
    user_id: str,
    body: ProjectMemberUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: PermissionContext = Depends(_manage_team),
):
    """Give `user_id` a role on the project, replacing any role they had."""
    project_role = parse_project_role(body.project_role)
    if project_role is None:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid project role. Choose: {', '.join(r.value for r in ProjectRole)}",
        )

    organization_id = ctx.user.organization_id
    await _get_org_project(db, project_id, organization_id)

    result = await db.execute(
        select(User).where(User.id == user_id, User.organization_id == organization_id)
    )
    if not result.scalar_one_or_none():
        raise ResourceNotFoundError("User", user_id)

    result = await db.execute(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    member = result.scalar_one_or_none()
    if member:
        member.project_role = project_role.value
    else:
        member = ProjectMember(
            project_id=project_id,
            user_id=user_id,
            project_role=project_role.value,
        )
        db.add(member)
    await db.flush()

    logger.info(
        f"User {user_id} is now {project_role.value} on project {project_id}",
        extra={"project_id": project_id, "user_id": user_id, "changed_by": ctx.user_id},
    )
    return ProjectMemberOut.model_validate(member)


# ── DELETE /{project_id}/members/{user_id} ───────────────────

@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_project_member(
    project_id: str,
    user_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: PermissionContext = Depends(_manage_team),
):
    await _get_org_project(db, project_id, ctx.user.organization_id)

    result = await db.execute(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    member = result.scalar_one_or_none()
    if not member:
        raise ResourceNotFoundError("Project member", user_id)

    await db.delete(member)
    await db.flush()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
