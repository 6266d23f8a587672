from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, HTTPException, Request, status


class Role(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    HOUSEKEEPING = "HOUSEKEEPING"
    RECEPTION = "RECEPTION"


STAFF_ROLES = (Role.ADMIN, Role.MANAGER, Role.HOUSEKEEPING, Role.RECEPTION)


@dataclass
class Principal:
    id: int
    username: str
    role: Role
    assigned_hotel: str | None
    organization_slug: str | None
    active: bool


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, "principal", None)
    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    if not principal.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return principal


def is_admin_role(role: Role) -> bool:
    return role in {Role.ADMIN, Role.MANAGER}


def require_role(*allowed: Role):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        return principal

    return _dep


def assert_hotel_scope(principal: Principal, hotel: str | None) -> None:
    if is_admin_role(principal.role) or principal.assigned_hotel is None:
        return
    if hotel is not None and principal.assigned_hotel != hotel:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
