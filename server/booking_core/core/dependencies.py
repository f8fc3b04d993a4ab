"""FastAPI dependencies for the acting user and the payment provider."""

from typing import Optional

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError

from .actors import Actor, Role
from .config import settings
from .exceptions import AuthenticationError, ForbiddenError
from ..services.payment_provider import MidtransProvider, PaymentProvider

# Roles a bearer token may carry; SYSTEM is internal only
TOKEN_ROLES = (Role.CUSTOMER, Role.ADMIN, Role.TOUR_GUIDE)


async def get_current_actor(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Actor:
    """
    Authentication dependency that validates Bearer tokens.

    The token is an HS256 JWT whose ``sub`` claim is the user id and whose
    ``role`` claim is one of CUSTOMER, ADMIN or TOUR_GUIDE.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        Actor: The authenticated user

    Raises:
        AuthenticationError: If the token is missing, malformed, expired or invalid
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    try:
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"]
        )
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {str(e)}")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError(detail="Invalid token payload")

    try:
        role = Role(str(payload.get("role", Role.CUSTOMER.value)).upper())
    except ValueError:
        raise AuthenticationError(detail="Unknown role in token")

    if role not in TOKEN_ROLES:
        raise AuthenticationError(detail="Unknown role in token")

    return Actor(user_id=str(user_id), role=role)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency that only lets admins through."""
    if not actor.is_admin:
        raise ForbiddenError(required_roles=[Role.ADMIN.value])
    return actor


def get_payment_provider() -> PaymentProvider:
    """Payment provider dependency; tests override it with a fake."""
    return MidtransProvider.from_settings(settings)


CurrentActor = Depends(get_current_actor)
AdminActor = Depends(require_admin)
