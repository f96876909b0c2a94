"""Aggregate model imports so every table is registered on Base.metadata."""

from app.models.organization import Organization
from app.models.project import Project, ProjectMember
from app.models.user import User

__all__ = ["Organization", "Project", "ProjectMember", "User"]
