# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Credential Service

Registration and login for the marketplace. Uses bcrypt for salted
password hashing; every successful registration or login immediately
issues a signed session token (see token_service.py).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Login failures use one generic InvalidCredentials error so the caller
  cannot tell whether the email or the password was wrong
- Deactivated accounts cannot log in
- Self-registration cannot create admin accounts
"""

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import DuplicateEmail, InvalidCredentials, Forbidden, NotFound
from ..models import User
from ..validation import validate_password
from agriconnect.time_utils import utcnow
from .token_service import issue_token

SELF_REGISTER_ROLES = {"farmer", "buyer"}

# Fields a user may change on their own profile
PROFILE_MUTABLE_FIELDS = {"first_name", "last_name", "phone", "location", "profile_image"}

# Fields an admin may change on any account
ADMIN_MUTABLE_FIELDS = PROFILE_MUTABLE_FIELDS | {"username", "email", "role", "is_active"}


def hash_password(password: str) -> str:
    """Hash password using bcrypt; strength is validated first."""
    validate_password(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. A malformed stored hash counts as a
    mismatch rather than an error.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _ensure_unique(email: str | None, username: str | None, exclude_user_id: int | None = None) -> None:
    if email:
        q = db.session.query(User).filter(db.func.lower(User.email) == email.lower())
        if exclude_user_id is not None:
            q = q.filter(User.id != exclude_user_id)
        if q.first():
            raise DuplicateEmail("Email already registered")
    if username:
        q = db.session.query(User).filter(User.username == username)
        if exclude_user_id is not None:
            q = q.filter(User.id != exclude_user_id)
        if q.first():
            raise DuplicateEmail("Username already taken")


def create_user(*, patch: dict, password: str, allow_admin: bool = False) -> User:
    """
    Persist a new user from a validated patch.

    Raises DuplicateEmail if email or username exists, Forbidden if the
    requested role is admin and allow_admin is False.
    """
    role = patch.get("role") or "buyer"
    if role == "admin" and not allow_admin:
        raise Forbidden("Admin accounts cannot be self-registered")

    _ensure_unique(patch.get("email"), patch.get("username"))

    user = User(
        username=patch["username"],
        email=patch["email"],
        password_hash=hash_password(password),
        first_name=patch["first_name"],
        last_name=patch["last_name"],
        phone=patch.get("phone"),
        role=role,
        location=patch.get("location"),
        profile_image=patch.get("profile_image"),
        is_active=True,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        db.session.rollback()
        raise DuplicateEmail("Email already registered")
    return user


def register(*, patch: dict, password: str) -> tuple[User, str]:
    """Create an account and issue a registration token (7 days)."""
    user = create_user(patch=patch, password=password)
    current_app.logger.info("Registered user id=%s role=%s", user.id, user.role)
    token = issue_token(user, current_app.config["REGISTER_TOKEN_TTL"])
    return user, token


def authenticate(email: str, password: str) -> User:
    """
    Check credentials; returns the active User or raises InvalidCredentials.

    Updates last_login_at on success.
    """
    user = None
    if email:
        user = (
            db.session.query(User)
            .filter(db.func.lower(User.email) == email.strip().lower())
            .first()
        )

    if not user or not user.is_active or not verify_password(password, user.password_hash):
        current_app.logger.warning("Failed login for email=%r", email)
        raise InvalidCredentials()

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def login(email: str, password: str) -> tuple[User, str]:
    """Authenticate and issue a login token (30 days)."""
    user = authenticate(email, password)
    token = issue_token(user, current_app.config["LOGIN_TOKEN_TTL"])
    return user, token


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def update_profile(*, user_id: int, patch: dict, password: str | None = None) -> User:
    """Self-service profile update; role, email and active flag are not touched."""
    user = get_user(user_id)
    for k, v in patch.items():
        if k in PROFILE_MUTABLE_FIELDS:
            setattr(user, k, v)
    if password:
        user.password_hash = hash_password(password)
    db.session.commit()
    return user


def admin_update_user(*, user_id: int, patch: dict) -> User:
    """Admin field update, including role and is_active."""
    user = get_user(user_id)
    _ensure_unique(patch.get("email"), patch.get("username"), exclude_user_id=user.id)
    for k, v in patch.items():
        if k in ADMIN_MUTABLE_FIELDS:
            setattr(user, k, v)
    db.session.commit()
    current_app.logger.info(
        "Admin updated user id=%s fields=%s", user.id, ", ".join(sorted(patch.keys()))
    )
    return user


def list_users(*, role: str | None = None, include_inactive: bool = True) -> list[User]:
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.created_at.desc(), User.id.desc()).all()
