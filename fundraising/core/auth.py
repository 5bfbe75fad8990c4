"""
Caller identity as resolved by the API gateway.

The gateway verifies credentials and forwards the resolved user in headers;
this service only reads them.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Header

from fundraising.core.errors import AuthorizationError


class Role(str, Enum):
    DONOR = "donor"
    ORGANIZATION = "organization"
    ADMIN = "admin"


@dataclass(frozen=True)
class CallerIdentity:
    user_id: int
    role: Role
    organization_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def require_organization(caller: CallerIdentity) -> int:
    """Return the caller's organization id or fail if the caller is not one"""
    if caller.role != Role.ORGANIZATION or caller.organization_id is None:
        raise AuthorizationError("Only organizations can perform this operation")
    return caller.organization_id


def require_admin(caller: CallerIdentity) -> None:
    if not caller.is_admin:
        raise AuthorizationError("Admin access required")


def can_access_organization(caller: CallerIdentity, organization_id: int) -> bool:
    """Admins see every organization; organizations only see themselves"""
    if caller.is_admin:
        return True
    return caller.role == Role.ORGANIZATION and caller.organization_id == organization_id


async def get_caller(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
    x_organization_id: Optional[str] = Header(None, alias="X-Organization-ID"),
) -> CallerIdentity:
    """FastAPI dependency building the caller from gateway headers"""
    if not x_user_id or not x_user_role:
        raise AuthorizationError("Authentication required")

    try:
        role = Role(x_user_role.lower())
    except ValueError:
        raise AuthorizationError(f"Unknown role: {x_user_role}")

    try:
        user_id = int(x_user_id)
        organization_id = int(x_organization_id) if x_organization_id else None
    except ValueError:
        raise AuthorizationError("Malformed identity headers")

    return CallerIdentity(user_id=user_id, role=role, organization_id=organization_id)
