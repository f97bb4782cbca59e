from typing import Optional

from fastapi import Depends, Header

from models.driver_model import Actor, Role
from services.errors import AuthenticationError, PermissionDeniedError


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Actor:
    """Identity forwarded by the identity provider's gateway."""
    if not x_user_id or not x_user_role:
        raise AuthenticationError("Authentication required")
    try:
        role = Role(x_user_role.lower())
    except ValueError:
        raise PermissionDeniedError(f"Unknown role {x_user_role}")
    return Actor(user_id=x_user_id, role=role)


def get_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role != Role.ADMIN:
        raise PermissionDeniedError("Administrator access required")
    return actor


def get_driver(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role != Role.DRIVER:
        raise PermissionDeniedError("Driver access required")
    return actor
