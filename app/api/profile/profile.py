# Business profile of the signed-in owner
from datetime import time
from flask import Blueprint, request, jsonify, g
from sqlalchemy import select
from app.extensions import db
from ...models import Profile, User
from ...services.errors import ServiceError, ValidationError
from ...utils.auth import token_required
from ...utils.validation import (
    FieldError,
    raise_for_errors,
    validate_email,
    validate_phone,
)

profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
PROFILE_FIELDS = (
    "business_name",
    "address",
    "phone",
    "email",
    "website",
    "description",
    "service_area",
)


def default_operating_hours():
    hours = {}
    for day in WEEKDAYS:
        weekend = day in ("saturday", "sunday")
        hours[day] = {
            "open": None if weekend else "09:00",
            "close": None if weekend else "17:00",
            "closed": weekend,
        }
    return hours


def _parse_hours(raw):
    """Merge client hours over the defaults; every open day needs open < close."""
    if not isinstance(raw, dict):
        raise ValidationError(
            [FieldError("operating_hours", "operating_hours must be an object keyed by weekday")]
        )

    hours = default_operating_hours()
    errors = []
    for day, value in raw.items():
        day = str(day).lower()
        if day not in hours:
            errors.append(FieldError(f"operating_hours.{day}", "Unknown weekday"))
            continue
        if not isinstance(value, dict):
            errors.append(FieldError(f"operating_hours.{day}", "Must be an object"))
            continue

        if value.get("closed"):
            hours[day] = {"open": None, "close": None, "closed": True}
            continue

        try:
            opens = time.fromisoformat(str(value.get("open")))
            closes = time.fromisoformat(str(value.get("close")))
        except ValueError:
            errors.append(
                FieldError(f"operating_hours.{day}", "open and close must be HH:MM")
            )
            continue
        if opens >= closes:
            errors.append(
                FieldError(f"operating_hours.{day}", "close must be later than open")
            )
            continue
        hours[day] = {
            "open": opens.strftime("%H:%M"),
            "close": closes.strftime("%H:%M"),
            "closed": False,
        }

    if errors:
        raise ValidationError(errors)
    return hours


def _coordinate(data, field, limit):
    value = data.get(field)
    if value in (None, ""):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError([FieldError(field, f"{field} must be a number")])
    if not -limit <= number <= limit:
        raise ValidationError([FieldError(field, f"{field} is out of range")])
    return number


def _profile_payload(profile, user):
    if profile is None:
        return {
            "business_name": user.business_name,
            "operating_hours": default_operating_hours(),
        }
    data = profile.to_dict()
    data["operating_hours"] = profile.operating_hours or default_operating_hours()
    return data


@profile_bp.route("", methods=["GET"])
@token_required
def get_profile():
    """
    Business profile, with default hours when none are saved
    ---
    tags:
      - Profile
    responses:
      200:
        description: Profile of the signed-in user
    """
    try:
        user = db.session.get(User, g.user_id)
        if not user:
            return jsonify({"status": "error", "message": "User not found"}), 404

        profile = db.session.scalar(select(Profile).where(Profile.user_id == g.user_id))
        return jsonify({"status": "success", "profile": _profile_payload(profile, user)}), 200

    except Exception as e:
        print(f"[PROFILE] Error loading profile: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@profile_bp.route("", methods=["PUT"])
@token_required
def update_profile():
    """
    Create or update the business profile
    ---
    tags:
      - Profile
    parameters:
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/ProfilePayload'
    responses:
      200:
        description: Profile saved
      400:
        description: Validation error
    """
    try:
        data = request.get_json(silent=True) or {}
        user = db.session.get(User, g.user_id)
        if not user:
            return jsonify({"status": "error", "message": "User not found"}), 404

        checks = [validate_phone(data.get("phone"))]
        if data.get("email"):
            checks.append(validate_email(data.get("email")))
        raise_for_errors(checks)

        profile = db.session.scalar(select(Profile).where(Profile.user_id == g.user_id))
        if profile is None:
            profile = Profile(user_id=g.user_id, operating_hours=default_operating_hours())
            db.session.add(profile)

        for field in PROFILE_FIELDS:
            if field in data:
                value = data.get(field)
                if isinstance(value, str):
                    value = value.strip() or None
                setattr(profile, field, value)
        if "operating_hours" in data:
            profile.operating_hours = _parse_hours(data["operating_hours"])
        if "latitude" in data:
            profile.latitude = _coordinate(data, "latitude", 90)
        if "longitude" in data:
            profile.longitude = _coordinate(data, "longitude", 180)

        if profile.business_name:
            user.business_name = profile.business_name

        db.session.commit()
        return jsonify({"status": "success", "profile": _profile_payload(profile, user)}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[PROFILE] Error updating profile for {g.user_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500
