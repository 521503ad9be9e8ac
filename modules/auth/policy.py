"""
Auth Module - Authorization Policy
====================================
Principal passed explicitly into every workflow call, and the small set of
checks services use instead of comparing role strings inline.
"""

from dataclasses import dataclass

from common.exceptions import AuthorizationError
from modules.user.models import UserRole


@dataclass(frozen=True)
class Principal:
    id: int
    role: str = UserRole.USER.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def ensure_admin(principal: Principal):
    if not principal.is_admin:
        raise AuthorizationError(f"Role ({principal.role}) is not allowed to access this resource")


def ensure_owner(principal: Principal, owner_id: int, what: str = "resource"):
    if principal.id != owner_id:
        raise AuthorizationError(f"User {principal.id} is not authorized to modify this {what}")


def ensure_owner_or_admin(principal: Principal, owner_id: int, what: str = "resource"):
    if principal.id != owner_id and not principal.is_admin:
        raise AuthorizationError(f"User {principal.id} is not authorized to access this {what}")
