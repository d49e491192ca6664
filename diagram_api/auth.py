"""Caller identity from verified claims.

In Lambda the API Gateway JWT authorizer has already verified the token and
hands its claims over in the event. Outside Lambda a locally signed bearer
token stands in for the authorizer so the API can be exercised end to end.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Request
from jose import JWTError, jwt

from .config import settings
from .exceptions import UnauthorizedError


@dataclass(frozen=True)
class Identity:
    """The resolved caller."""

    subject: str
    claims: Mapping[str, Any] = field(default_factory=dict)


def claims_from_event(event: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    """Return requestContext.authorizer.jwt.claims from an HTTP API event, if present."""
    node: Any = event
    for key in ("requestContext", "authorizer", "jwt", "claims"):
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node if isinstance(node, Mapping) else None


def resolve_identity(claims: Mapping[str, Any] | None) -> Identity:
    """Build an Identity from verified claims.

    Raises:
        UnauthorizedError: If the claims carry no usable subject.
    """
    if not claims:
        raise UnauthorizedError("Unauthorized: No valid user identity found")
    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise UnauthorizedError("Unauthorized: No valid user identity found")
    return Identity(subject=subject, claims=dict(claims))


def create_token(subject: str) -> str:
    """Create a development JWT for a subject.

    Args:
        subject: The owner identifier to encode in the token.

    Returns:
        Encoded JWT token as string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": subject,
        "exp": now + timedelta(minutes=settings.jwt_expiration_minutes),
        "iat": now,
    }
    token: str = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token


def decode_bearer(authorization: str | None) -> Mapping[str, Any]:
    """Verify a locally issued bearer token and return its claims."""
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Could not validate credentials")
    token = authorization.removeprefix("Bearer ")
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise UnauthorizedError("Could not validate credentials") from e


async def get_current_owner(request: Request) -> str:
    """Resolve the caller's owner id for a request.

    Requests that came through Lambda use the authorizer claims exclusively.
    """
    event = request.scope.get("aws.event")
    if event is not None:
        identity = resolve_identity(claims_from_event(event))
    else:
        identity = resolve_identity(decode_bearer(request.headers.get("Authorization")))
    request.state.owner_id = identity.subject
    return identity.subject
