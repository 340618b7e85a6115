# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, g

from .errors import Forbidden, MarketplaceError, Unauthenticated, error_response
from .services import token_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def authenticate_request() -> token_service.Identity:
    """Resolve the caller's identity from the Authorization header."""
    token = _bearer_token()
    if token is None:
        raise Unauthenticated()
    return token_service.decode_token(token)


def optional_identity() -> token_service.Identity | None:
    """
    Identity for public routes that show more to owners and admins.

    Always read from this request's Authorization header; a bad or
    missing token means an anonymous caller.
    """
    if _bearer_token() is None:
        return None
    try:
        return authenticate_request()
    except MarketplaceError:
        return None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.identity (id, email, role), the authoritative actor for the
    request. Handlers take ownership fields (farmer_id, buyer_id) from it,
    never from the payload.

    Returns 401 if:
    - No Authorization header
    - Invalid signature or expired token
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.identity = authenticate_request()
        except MarketplaceError as e:
            return error_response(e)
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated identity to hold one of roles.

    Must be applied after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity = getattr(g, "identity", None)
            if identity is None:
                return error_response(Unauthenticated())
            if identity.role not in roles:
                return error_response(
                    Forbidden(f"Requires role: {' or '.join(roles)}")
                )
            return f(*args, **kwargs)

        return decorated_function
    return decorator
