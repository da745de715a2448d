# gallerist/core/security.py
# Access policy: one allowed client address gates every mutating route.

from typing import Optional

from fastapi import Request

from gallerist.core.config import AccessSettings
from gallerist.core.errors import ForbiddenError


def resolve_client_address(request: Request, access: AccessSettings) -> Optional[str]:
    """
    Caller address as the policy sees it.
    With trust_proxy on, the left-most entry of the forwarding header wins
    (the client as reported by the first proxy); otherwise the socket peer.
    """
    if access.trust_proxy and access.forwarded_header:
        forwarded = request.headers.get(access.forwarded_header)
        if forwarded:
            first = forwarded.split(",")[0].strip()
            return first or None
    if request.client is None:
        return None
    return request.client.host or None


def is_allowed(address: Optional[str], access: AccessSettings) -> bool:
    # fails closed: nothing configured or nothing resolved means no
    if not access.allowed_ip or not address:
        return False
    return address == access.allowed_ip


def require_allowed(request: Request) -> None:
    """FastAPI dependency; raises ForbiddenError unless the caller is the allowed address."""
    access = request.app.state.settings.access
    if not is_allowed(resolve_client_address(request, access), access):
        raise ForbiddenError()
