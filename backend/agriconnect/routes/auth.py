# Overview: Flask API routes for registration, login and the caller's own profile.

# backend/agriconnect/routes/auth.py
"""
Authentication API routes

- POST /api/register: create an account, returns {user, token} (7-day token)
- POST /api/login: returns {user, token} (30-day token)
- GET/PATCH /api/auth/me: the caller's profile

Logout is client-side: tokens are stateless and expire on their own.
"""

from flask import Blueprint, request, g, current_app

from ..errors import MarketplaceError, error_response
from ..models import User
from ..services import auth_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    validate_password,
    enforce_rules_user,
    require_fields,
)
from ..decorators import require_auth

REGISTER_POLICY = ModelValidationPolicy(
    writable_fields={
        "username", "email", "first_name", "last_name", "phone", "role",
        "location", "profile_image",
    },
    required_on_create={"username", "email", "first_name", "last_name"},
    ignored_fields={"password", "confirm_password", "is_active"},
)

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"first_name", "last_name", "phone", "location", "profile_image"},
    ignored_fields={"password"},
)

auth_bp = Blueprint("auth", __name__, url_prefix="/api")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration as farmer or buyer (default buyer).

    The token is issued immediately so the client is logged in.
    """
    payload = request.get_json(silent=True) or {}
    try:
        password = validate_password(payload.get("password"))
        patch = validate_payload(model=User, payload=payload, policy=REGISTER_POLICY, partial=False)
        enforce_rules_user(patch)
        user, token = auth_service.register(patch=patch, password=password)
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return {"error": "Internal server error"}, 500

    return {"user": user.to_dict(), "token": token}, 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password.

    Unknown email, wrong password and deactivated account all answer the
    same 401 so the response does not reveal which one failed.
    """
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "email", "password")
        user, token = auth_service.login(str(payload["email"]), str(payload["password"]))
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return {"error": "Internal server error"}, 500

    return {"user": user.to_dict(), "token": token}, 200


@auth_bp.get("/auth/me")
@require_auth
def me_route():
    try:
        user = auth_service.get_user(g.identity.id)
    except MarketplaceError as e:
        return error_response(e)
    return {"user": user.to_dict()}


@auth_bp.patch("/auth/me")
@require_auth
def update_me_route():
    """Update own profile fields; a non-empty "password" changes the password."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=User, payload=payload, policy=PROFILE_POLICY, partial=True)
        password = payload.get("password")
        if password:
            validate_password(password)
        user = auth_service.update_profile(user_id=g.identity.id, patch=patch, password=password)
    except MarketplaceError as e:
        return error_response(e)
    return {"user": user.to_dict()}
