"""
Field validators shared by the API handlers.

Each validator returns a ``FieldError`` when the value is unacceptable and
``None`` otherwise, so a form can be checked in one pass with
``validate_form([...])``.
"""

import re
from collections import namedtuple
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from ..services.errors import ValidationError

FieldError = namedtuple("FieldError", ["field", "message"])
ValidationResult = namedtuple("ValidationResult", ["is_valid", "errors"])

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[\d\s\-()]{10,}$")


def validate_email(email):
    if not email:
        return FieldError("email", "Email is required")
    if not isinstance(email, str) or not EMAIL_RE.match(email):
        return FieldError("email", "Invalid email format")
    return None


def validate_password(password):
    if not password:
        return FieldError("password", "Password is required")
    if not isinstance(password, str):
        return FieldError("password", "Password must be text")
    if len(password) < 8:
        return FieldError("password", "Password must be at least 8 characters")
    if not re.search(r"[A-Z]", password):
        return FieldError(
            "password", "Password must contain at least one uppercase letter"
        )
    if not re.search(r"[a-z]", password):
        return FieldError(
            "password", "Password must contain at least one lowercase letter"
        )
    if not re.search(r"[0-9]", password):
        return FieldError("password", "Password must contain at least one number")
    return None


def validate_required(value, field):
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return FieldError(field, f"{field} is required")
    return None


def validate_text(value, field, required=True):
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return FieldError(field, f"{field} is required") if required else None
    if not isinstance(value, str):
        return FieldError(field, f"{field} must be text")
    return None


def validate_phone(phone):
    # Phone is optional
    if not phone:
        return None
    if not isinstance(phone, str) or not PHONE_RE.match(phone):
        return FieldError("phone", "Invalid phone number format")
    return None


def validate_amount(amount, field="amount"):
    if amount is None or amount == "":
        return FieldError(field, f"{field} is required")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return FieldError(field, f"{field} must be a positive number")
    if not value.is_finite() or value <= 0:
        return FieldError(field, f"{field} must be a positive number")
    return None


def validate_date(value, field):
    if not value:
        return FieldError(field, f"{field} is required")
    if isinstance(value, (date, datetime)):
        return None
    try:
        datetime.fromisoformat(str(value))
    except ValueError:
        return FieldError(field, f"Invalid {field} format")
    return None


def validate_form(validations):
    errors = [error for error in validations if error is not None]
    return ValidationResult(is_valid=not errors, errors=errors)


def raise_for_errors(validations):
    """Raise ``ValidationError`` carrying every failed check."""
    result = validate_form(validations)
    if not result.is_valid:
        raise ValidationError(result.errors)
