"""
Organization scoping for API callers.
Trust: a user may only act within the organization they belong to.
"""
from stockroom.core.audit import AuditLog
from stockroom.models.user import User


def user_belongs_to_organization(user: User, organization_id: int) -> bool:
    """Verify that the authenticated user is a member of the given organization."""
    return user.organization_id is not None and user.organization_id == organization_id


def require_membership(user: User, organization_id: int, resource_type: str = "organization") -> bool:
    """Like user_belongs_to_organization, but records the denial in the audit log."""
    if user_belongs_to_organization(user, organization_id):
        return True
    AuditLog.log_access_denied("read", resource_type, organization_id, user.id, "Different organization")
    return False
