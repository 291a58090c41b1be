# migralert/api/v1/contacts.py
"""
Emergency contacts (max 5 per user)
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from migralert.api.dependencies import get_current_user
from migralert.core.database import get_db
from migralert.models.user import User
from migralert.schemas.emergency import ContactCreate, ContactReorder, ContactResponse, ContactUpdate
from migralert.services.contact_service import ContactService

router = APIRouter(prefix="/contacts", tags=["Emergency Contacts"])


def get_contact_service(db: Session = Depends(get_db)) -> ContactService:
    return ContactService(db)


@router.get("", response_model=List[ContactResponse])
async def list_contacts(
    current_user: User = Depends(get_current_user),
    service: ContactService = Depends(get_contact_service),
):
    return service.list(current_user)


@router.post("", response_model=ContactResponse, status_code=201)
async def add_contact(
    payload: ContactCreate,
    current_user: User = Depends(get_current_user),
    service: ContactService = Depends(get_contact_service),
):
    return service.add(current_user, payload.name, payload.phone, payload.relationship)


@router.put("/order", response_model=List[ContactResponse])
async def reorder_contacts(
    payload: ContactReorder,
    current_user: User = Depends(get_current_user),
    service: ContactService = Depends(get_contact_service),
):
    """Set the send order; ordered_ids must contain every contact once"""
    return service.reorder(current_user, payload.ordered_ids)


@router.patch("/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: int,
    payload: ContactUpdate,
    current_user: User = Depends(get_current_user),
    service: ContactService = Depends(get_contact_service),
):
    return service.update(current_user, contact_id, payload.model_dump(exclude_unset=True))


@router.delete("/{contact_id}")
async def remove_contact(
    contact_id: int,
    current_user: User = Depends(get_current_user),
    service: ContactService = Depends(get_contact_service),
):
    service.remove(current_user, contact_id)
    return {"success": True, "message": "Contact removed"}
