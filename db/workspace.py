"""Workspace (tenant) membership, permissions and bookkeeping."""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from db.models import User, UsageLog, UserWorkspace, Workspace, WorkspaceRole
from errors import PermissionDenied

ACTIONS = ("read", "write", "admin", "delete")

PERMISSIONS: Dict[WorkspaceRole, frozenset] = {
    WorkspaceRole.OWNER: frozenset({"read", "write", "admin", "delete"}),
    WorkspaceRole.ADMIN: frozenset({"read", "write", "admin"}),
    WorkspaceRole.MEMBER: frozenset({"read", "write"}),
    WorkspaceRole.VIEWER: frozenset({"read"}),
}


@dataclass
class WorkspaceWithRole:
    id: str
    name: str
    slug: str
    description: Optional[str]
    role: WorkspaceRole
    contact_count: int
    created_at: datetime

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "role": self.role.value,
            "contactCount": self.contact_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


def get_user_workspaces(db: Session, user_id: str) -> List[WorkspaceWithRole]:
    rows = db.execute(
        select(Workspace, UserWorkspace.role)
        .join(UserWorkspace, UserWorkspace.workspace_id == Workspace.id)
        .where(UserWorkspace.user_id == user_id)
        .order_by(UserWorkspace.created_at)
    ).all()
    return [
        WorkspaceWithRole(
            id=workspace.id,
            name=workspace.name,
            slug=workspace.slug,
            description=workspace.description,
            role=role,
            contact_count=workspace.contact_count,
            created_at=workspace.created_at,
        )
        for workspace, role in rows
    ]


def get_default_workspace(db: Session, user_id: str) -> Optional[WorkspaceWithRole]:
    """Prefer owned workspaces, then admin, then any workspace."""
    workspaces = get_user_workspaces(db, user_id)
    for role in (WorkspaceRole.OWNER, WorkspaceRole.ADMIN):
        for workspace in workspaces:
            if workspace.role == role:
                return workspace
    return workspaces[0] if workspaces else None


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower())
    return slug.strip("-") or "workspace"


def create_workspace(db: Session, user_id: str, name: str, description: Optional[str] = None) -> Workspace:
    base = slugify(name)
    slug = base
    counter = 1
    while db.execute(select(Workspace.id).where(Workspace.slug == slug)).first():
        slug = f"{base}-{counter}"
        counter += 1

    workspace = Workspace(name=name, slug=slug, description=description)
    db.add(workspace)
    db.flush()
    db.add(UserWorkspace(user_id=user_id, workspace_id=workspace.id, role=WorkspaceRole.OWNER))
    db.commit()
    db.refresh(workspace)

    logger.info(f"Created workspace {workspace.slug} for user {user_id}")
    return workspace


def get_user_workspace_role(db: Session, user_id: str, workspace_id: str) -> Optional[WorkspaceRole]:
    return db.execute(
        select(UserWorkspace.role).where(
            UserWorkspace.user_id == user_id, UserWorkspace.workspace_id == workspace_id
        )
    ).scalar_one_or_none()


def ensure_user_has_workspace(db: Session, user: User) -> WorkspaceWithRole:
    """Return the user's default workspace, creating one on first use."""
    workspace = get_default_workspace(db, user.id)
    if workspace is not None:
        return workspace

    created = create_workspace(db, user.id, f"{user.name or 'My'} Workspace", "Default workspace")
    return WorkspaceWithRole(
        id=created.id,
        name=created.name,
        slug=created.slug,
        description=created.description,
        role=WorkspaceRole.OWNER,
        contact_count=0,
        created_at=created.created_at,
    )


def can_user_perform_action(role: WorkspaceRole, action: str) -> bool:
    return action in PERMISSIONS.get(WorkspaceRole(role), frozenset())


def require_action(role: Optional[WorkspaceRole], action: str) -> None:
    if role is None or not can_user_perform_action(role, action):
        logger.warning(f"Role {role} denied '{action}'")
        raise PermissionDenied("Insufficient permissions", f"Your workspace role does not allow '{action}'")


def adjust_contact_count(db: Session, workspace_id: str, delta: int, commit: bool = True) -> None:
    db.execute(
        update(Workspace)
        .where(Workspace.id == workspace_id)
        .values(contact_count=Workspace.contact_count + delta)
    )
    if commit:
        db.commit()


def record_usage(
    db: Session,
    workspace_id: str,
    user_id: Optional[str],
    action: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> UsageLog:
    entry = UsageLog(workspace_id=workspace_id, user_id=user_id, action=action, details=metadata or {})
    db.add(entry)
    db.commit()
    return entry
