# triphub/domain/authorization.py

from dataclasses import dataclass
from enum import Enum

from triphub.domain.exceptions import AuthorizationError, ForbiddenError


class Role(str, Enum):
    USER = "user"
    VENDOR = "vendor"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    """A verified caller: the email claim from the identity provider plus its stored role."""

    email: str
    role: Role


def is_allowed(identity: Identity | None, required_role: Role) -> bool:
    """
    Authorization policy.

    Any verified identity satisfies Role.USER. Vendor and admin
    endpoints require an exact role match.
    """
    if identity is None:
        return False
    if required_role == Role.USER:
        return True
    return identity.role == required_role


def authorize(identity: Identity | None, required_role: Role) -> Identity:
    if identity is None:
        raise AuthorizationError("Unauthorized access")
    if not is_allowed(identity, required_role):
        raise ForbiddenError(
            f"Forbidden: {required_role.value} role required"
        )
    return identity
