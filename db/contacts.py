from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from db.models import Contact, ContactStatus
from db.workspace import adjust_contact_count
from errors import NotFoundError


def contact_to_dict(contact: Contact) -> Dict[str, Any]:
    return {
        "id": contact.id,
        "workspaceId": contact.workspace_id,
        "name": contact.name,
        "phone": contact.phone,
        "email": contact.email,
        "company": contact.company,
        "notes": contact.notes,
        "source": contact.source,
        "status": contact.status.value if contact.status else None,
        "deliveryStatus": contact.delivery_status_code,
        "createdAt": contact.created_at.isoformat() if contact.created_at else None,
        "updatedAt": contact.updated_at.isoformat() if contact.updated_at else None,
    }


def create_contact(
    db: Session,
    workspace_id: str,
    fields: Dict[str, Any],
    status: ContactStatus,
    delivery_status_code: Optional[int] = None,
    delivery_variant: Optional[str] = None,
) -> Contact:
    contact = Contact(
        workspace_id=workspace_id,
        name=fields["name"],
        phone=fields["phone"],
        email=fields.get("email") or None,
        company=fields.get("company") or None,
        notes=fields.get("notes") or None,
        transcription=fields.get("transcription") or fields.get("notes") or None,
        status=status,
        delivery_status_code=delivery_status_code,
        delivery_variant=delivery_variant,
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def _search_filter(search: str):
    pattern = f"%{search.lower()}%"
    return or_(
        func.lower(Contact.name).like(pattern),
        func.lower(Contact.email).like(pattern),
        func.lower(Contact.phone).like(pattern),
        func.lower(Contact.company).like(pattern),
    )


def list_contacts(
    db: Session, workspace_id: str, page: int = 1, limit: int = 20, search: str = ""
) -> Tuple[List[Contact], int]:
    """Newest-first page of a workspace's contacts plus the unpaged total."""
    conditions = [Contact.workspace_id == workspace_id]
    if search:
        conditions.append(_search_filter(search))

    total = db.execute(select(func.count()).select_from(Contact).where(*conditions)).scalar_one()
    contacts = db.execute(
        select(Contact)
        .where(*conditions)
        .order_by(Contact.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return list(contacts), total


def delete_contact(db: Session, workspace_id: str, contact_id: str) -> None:
    contact = db.execute(
        select(Contact).where(Contact.id == contact_id, Contact.workspace_id == workspace_id)
    ).scalar_one_or_none()
    if contact is None:
        raise NotFoundError("Contact not found")

    db.delete(contact)
    if contact.status == ContactStatus.PROCESSED:
        adjust_contact_count(db, workspace_id, -1, commit=False)
    db.commit()
    logger.info(f"Deleted contact {contact_id} from workspace {workspace_id}")
