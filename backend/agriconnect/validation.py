from __future__ import annotations
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from agriconnect.errors import ValidationError
from agriconnect.time_utils import parse_iso_datetime


# Numeric(10, 2): largest representable price
MAX_PRICE = Decimal("99999999.99")
CENTS = Decimal("0.01")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

USER_ROLES = ("farmer", "buyer", "admin")


class FieldError(ValueError):
    """One bad field; collected into ValidationError.issues."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - ignored_fields: accepted for compatibility but silently dropped
      (e.g. farmer_id sent by older clients; the server derives it)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    ignored_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _issue(field: str, message: str) -> dict:
    return {"field": field, "message": message}


def coerce_decimal(value: Any, field: str = "price") -> Decimal:
    """Exact decimal from a string or int; floats are rejected."""
    if isinstance(value, bool):
        raise FieldError(f"{field} must be a decimal string")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, int):
        dec = Decimal(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not re.fullmatch(r"-?\d+(\.\d{1,2})?", stripped):
            raise FieldError(f"{field} must be a decimal with at most 2 places (e.g. \"1500.00\")")
        try:
            dec = Decimal(stripped)
        except InvalidOperation:
            raise FieldError(f"{field} must be a decimal string")
    elif isinstance(value, float):
        raise FieldError(f"{field} must be sent as a string to keep exact precision")
    else:
        raise FieldError(f"{field} must be a decimal string")
    return dec.quantize(CENTS, rounding=ROUND_HALF_UP)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Money columns
    if isinstance(coltype, Numeric):
        return coerce_decimal(value, col.key)

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise FieldError(f"{col.key} must be an integer")
            if "e" in stripped.lower():
                raise FieldError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if "." in stripped:
                raise FieldError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise FieldError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise FieldError(f"{col.key} must be an integer, not a decimal")
        raise FieldError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        raise FieldError(f"{col.key} must be a boolean")

    # Dates (accept ISO-8601 date or datetime strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise FieldError(f"{col.key} must be an ISO-8601 date")
            if dt is None:
                raise FieldError(f"{col.key} must be an ISO-8601 date")
            return dt
        raise FieldError(f"{col.key} must be an ISO-8601 date")

    # JSON arrays of strings (product images)
    if isinstance(coltype, JSON):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise FieldError(f"{col.key} must be a list of strings")
        return [v.strip() for v in value if v.strip()]

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise FieldError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Every problem is collected; a single ValidationError carries them all
    as field-level issues.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload", [_issue("_", "Expected a JSON object")])

    issues: list[dict] = []
    ignored = policy.ignored_fields or set()

    required = policy.required_on_create or set()
    if not partial:
        for f in sorted(required):
            if f not in payload or payload[f] in (None, ""):
                issues.append(_issue(f, "This field is required"))

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        if k in ignored:
            continue
        if k not in policy.writable_fields or k not in cols:
            issues.append(_issue(k, "Field not allowed"))
            continue

        col = cols[k]

        if raw is None:
            if not col.nullable:
                if partial or k not in required:
                    issues.append(_issue(k, "This field cannot be null"))
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except FieldError as e:
            issues.append(_issue(k, str(e)))
            continue

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if val == "":
                if partial or k not in required:
                    issues.append(_issue(k, "This field cannot be blank"))
                continue

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                issues.append(_issue(k, f"Exceeds max length {col.type.length}"))
                continue

        patch[k] = val

    if issues:
        raise ValidationError("Validation failed", issues)

    return patch


def _raise_if(issues: list[dict]) -> None:
    if issues:
        raise ValidationError("Validation failed", issues)


def enforce_rules_user(patch: dict) -> None:
    issues = []
    if "email" in patch and patch["email"] is not None:
        patch["email"] = patch["email"].lower()
        if not EMAIL_RE.match(patch["email"]):
            issues.append(_issue("email", "Invalid email address"))
    if "role" in patch and patch["role"] not in USER_ROLES:
        issues.append(_issue("role", f"Must be one of: {', '.join(USER_ROLES)}"))
    _raise_if(issues)


def validate_password(password: Any) -> str:
    """At least 8 characters with a letter and a digit."""
    if not isinstance(password, str) or not password:
        raise ValidationError("Validation failed", [_issue("password", "This field is required")])
    problems = []
    if len(password) < 8:
        problems.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Za-z]", password):
        problems.append("Password must contain at least one letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one digit")
    _raise_if([_issue("password", p) for p in problems])
    return password


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    issues = []
    if "price" in patch and patch["price"] is not None:
        price = patch["price"]
        if price <= 0:
            issues.append(_issue("price", "Must be greater than 0"))
        elif price > MAX_PRICE:
            issues.append(_issue("price", f"Cannot exceed {MAX_PRICE}"))

    if "quantity" in patch and patch["quantity"] is not None and patch["quantity"] < 1:
        issues.append(_issue("quantity", "Must be at least 1"))

    if "available_quantity" in patch and patch["available_quantity"] is not None:
        if patch["available_quantity"] < 0:
            issues.append(_issue("available_quantity", "Must be >= 0"))
        elif "quantity" in patch and patch["quantity"] is not None and patch["available_quantity"] > patch["quantity"]:
            issues.append(_issue("available_quantity", "Cannot exceed quantity"))

    _raise_if(issues)


def enforce_rules_order(patch: dict) -> None:
    if patch.get("quantity") is not None and patch["quantity"] < 1:
        raise ValidationError("Validation failed", [_issue("quantity", "Must be at least 1")])


def enforce_rules_review(patch: dict) -> None:
    rating = patch.get("rating")
    if rating is not None and not 1 <= rating <= 5:
        raise ValidationError("Validation failed", [_issue("rating", "Must be between 1 and 5")])


def require_fields(payload: dict, *fields: str) -> None:
    """Presence check for ad-hoc payloads that are not mapped to a model."""
    _raise_if([_issue(f, "This field is required") for f in fields if payload.get(f) in (None, "")])
