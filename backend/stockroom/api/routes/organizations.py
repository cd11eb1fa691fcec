"""Organizations: setup and read. A user creates one organization and acts within it."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockroom.api.deps import get_db, get_current_user, get_current_organization
from stockroom.core.audit import AuditLog
from stockroom.core.exceptions import BusinessError
from stockroom.core.permissions import require_membership
from stockroom.models.organization import Organization
from stockroom.models.user import User
from stockroom.schemas.organization import OrganizationSetup, OrganizationUpdate, OrganizationResponse
from stockroom.services import catalog_service

router = APIRouter()


@router.post("/setup", response_model=OrganizationResponse)
def organization_setup(data: OrganizationSetup, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Create an organization and make the caller its member. One organization per user."""
    if current_user.organization_id is not None:
        raise BusinessError.conflict("User already belongs to an organization")

    org = catalog_service.create_organization(db, data.name, data.description, owner=current_user)
    AuditLog.log_action("create", "organization", org.id, current_user.id, organization_id=org.id)
    return org


@router.get("/me", response_model=OrganizationResponse)
def get_my_organization(org: Organization = Depends(get_current_organization)):
    return org


@router.patch("/me", response_model=OrganizationResponse)
def update_my_organization(
    data: OrganizationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    org: Organization = Depends(get_current_organization),
):
    """Update organization metadata."""
    org = catalog_service.update_organization_metadata(db, org.id, data.description)
    AuditLog.log_action("update", "organization", org.id, current_user.id, organization_id=org.id,
                        changes={"description": data.description})
    return org


@router.get("/{organization_id}", response_model=OrganizationResponse)
def get_organization(organization_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Read an organization. Other tenants' organizations look exactly like missing ones."""
    if not require_membership(current_user, organization_id):
        raise BusinessError.not_found("Organization", reason=f"user {current_user.id} not in org {organization_id}")
    return catalog_service.get_organization(db, organization_id)
