# Overview: Unit tests for payload validation and coercion helpers.

from datetime import datetime
from decimal import Decimal

import pytest

from agriconnect.errors import ValidationError
from agriconnect.models import Product
from agriconnect.time_utils import parse_iso_datetime, to_utc_z
from agriconnect.validation import (
    FieldError,
    ModelValidationPolicy,
    coerce_decimal,
    enforce_rules_product,
    validate_password,
    validate_payload,
)

POLICY = ModelValidationPolicy(
    writable_fields={"name", "price", "quantity", "harvest_date", "images", "is_active", "unit"},
    required_on_create={"name", "price"},
    ignored_fields={"farmer_id"},
)


class TestCoerceDecimal:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1500.00", Decimal("1500.00")),
            ("1500", Decimal("1500.00")),
            ("0.5", Decimal("0.50")),
            (" 12.30 ", Decimal("12.30")),
            (42, Decimal("42.00")),
        ],
    )
    def test_accepted(self, raw, expected):
        assert coerce_decimal(raw) == expected

    @pytest.mark.parametrize("raw", [1500.0, True, "1e3", "1.234", "", [1]])
    def test_rejected(self, raw):
        with pytest.raises(FieldError):
            coerce_decimal(raw)


class TestValidatePayload:
    def test_cleans_and_coerces(self):
        patch = validate_payload(
            model=Product,
            payload={"name": "  Maïs  ", "price": "800", "quantity": "12", "harvest_date": "2024-02-01",
                     "images": [" /uploads/a.png ", ""], "is_active": "false", "farmer_id": 9},
            policy=POLICY,
            partial=False,
        )

        assert patch == {
            "name": "Maïs",
            "price": Decimal("800.00"),
            "quantity": 12,
            "harvest_date": datetime(2024, 2, 1),
            "images": ["/uploads/a.png"],
            "is_active": False,
        }

    def test_collects_every_issue(self):
        with pytest.raises(ValidationError) as exc:
            validate_payload(
                model=Product,
                payload={"quantity": "1.5", "images": "a.png", "unknown": 1},
                policy=POLICY,
                partial=False,
            )

        fields = [i["field"] for i in exc.value.issues]
        assert fields == ["name", "price", "quantity", "images", "unknown"]

    def test_partial_skips_required(self):
        assert validate_payload(model=Product, payload={"quantity": 3}, policy=POLICY, partial=True) == {"quantity": 3}

    def test_non_nullable_cannot_be_cleared(self):
        with pytest.raises(ValidationError) as exc:
            validate_payload(model=Product, payload={"unit": None}, policy=POLICY, partial=True)

        assert exc.value.issues == [{"field": "unit", "message": "This field cannot be null"}]

    def test_max_length(self):
        with pytest.raises(ValidationError) as exc:
            validate_payload(model=Product, payload={"unit": "x" * 51}, policy=POLICY, partial=True)

        assert exc.value.issues[0]["message"] == "Exceeds max length 50"

    def test_payload_must_be_object(self):
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload=["name"], policy=POLICY, partial=True)


class TestBusinessRules:
    def test_product_rules(self):
        with pytest.raises(ValidationError) as exc:
            enforce_rules_product({"price": Decimal("0"), "quantity": 0})

        assert [i["field"] for i in exc.value.issues] == ["price", "quantity"]

    def test_available_above_quantity(self):
        with pytest.raises(ValidationError):
            enforce_rules_product({"quantity": 5, "available_quantity": 6})

    def test_password_policy(self):
        assert validate_password("Mavuno2024") == "Mavuno2024"
        with pytest.raises(ValidationError) as exc:
            validate_password("abc")
        messages = [i["message"] for i in exc.value.issues]
        assert "Password must be at least 8 characters long" in messages
        assert "Password must contain at least one digit" in messages


class TestTimeUtils:
    def test_date_only_is_midnight_utc(self):
        assert parse_iso_datetime("2024-01-15") == datetime(2024, 1, 15)

    def test_offset_is_converted_to_utc(self):
        assert parse_iso_datetime("2024-01-15T08:00:00+02:00") == datetime(2024, 1, 15, 6, 0)

    def test_z_suffix(self):
        assert parse_iso_datetime("2024-01-15T08:00:00Z") == datetime(2024, 1, 15, 8, 0)

    def test_serialises_with_z(self):
        assert to_utc_z(datetime(2024, 1, 15, 6, 0, 0, 123456)) == "2024-01-15T06:00:00Z"
