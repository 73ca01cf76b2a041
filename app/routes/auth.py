from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from ..extensions import db
from ..models import User, RevokedToken
from ..services.email_service import email_service
from ..services.errors import ServiceError
from ..services.tenant_cache import tenant_cache
from ..utils.auth import issue_token, decode_token, token_required
from ..utils.validation import (
    raise_for_errors,
    validate_email,
    validate_password,
    validate_text,
)
import bcrypt
import datetime

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _hash_password(password):
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())


def _normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


@auth_bp.route("/signup", methods=["POST"])
def signup_user():
    """
    Register a business owner account
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/SignupPayload'
    responses:
      201:
        description: Account created
      400:
        description: Validation error or email already registered
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        data = request.get_json(silent=True) or {}
        email = _normalize_email(data.get("email"))
        password = data.get("password")
        business_name = data.get("business_name")

        raise_for_errors(
            [
                validate_email(email),
                validate_password(password),
                validate_text(business_name, "business_name", required=False),
            ]
        )

        existing = db.session.scalar(select(User).where(User.email == email))
        if existing:
            return jsonify({
                "status": "error",
                "message": "Email already exists"
            }), 400

        user = User(
            email=email,
            password_hash=_hash_password(password),
            business_name=business_name,
            has_completed_onboarding=False,
        )
        db.session.add(user)
        db.session.commit()

        return jsonify({
            "status": "success",
            "message": "User registered successfully",
            "user": user.to_dict()
        }), 201

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({
            "status": "error",
            "message": "Database integrity error",
            "details": str(e.orig)
        }), 400

    except Exception as e:
        db.session.rollback()
        print(f"[AUTH] Error during signup: {e}")
        return jsonify({
            "status": "error",
            "message": "Internal server error"
        }), 500


@auth_bp.route("/login", methods=["POST"])
def login_user():
    """
    Exchange email and password for a bearer token
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/LoginPayload'
    responses:
      200:
        description: Login successful, returns token
      400:
        description: Missing email or password
      401:
        description: Invalid credentials
    """
    try:
        data = request.get_json(silent=True) or {}
        email = _normalize_email(data.get("email"))
        password = data.get("password")

        if not (email and isinstance(email, str) and password and isinstance(password, str)):
            return jsonify({
                "status": "error",
                "message": "Email and password required"
            }), 400

        user = db.session.scalar(select(User).where(User.email == email))
        if not user or not user.password_hash:
            return jsonify({
                "status": "error",
                "message": "Invalid credentials"
            }), 401

        stored_hash = user.password_hash
        if isinstance(stored_hash, str):
            stored_hash = stored_hash.encode("utf-8")

        if not bcrypt.checkpw(password.encode("utf-8"), stored_hash):
            return jsonify({
                "status": "error",
                "message": "Invalid credentials"
            }), 401

        token = issue_token(user)
        tenant_cache.invalidate(user.id)

        return jsonify({
            "status": "success",
            "message": "Login successful",
            "token": token,
            "user": user.to_dict()
        }), 200

    except Exception as e:
        print(f"[AUTH] Error during login: {e}")
        return jsonify({
            "status": "error",
            "message": "Internal server error"
        }), 500


@auth_bp.route("/logout", methods=["POST"])
@token_required
def logout_user():
    """Revoke the presented token."""
    try:
        payload = g.token_payload
        expires_at = datetime.datetime.fromtimestamp(
            payload["exp"], tz=datetime.timezone.utc
        ).replace(tzinfo=None)
        db.session.add(
            RevokedToken(jti=payload["jti"], user_id=g.user_id, expires_at=expires_at)
        )
        db.session.commit()
        tenant_cache.invalidate(g.user_id)

        return jsonify({"status": "success", "message": "Logged out"}), 200

    except IntegrityError:
        db.session.rollback()
        return jsonify({"status": "success", "message": "Logged out"}), 200

    except Exception as e:
        db.session.rollback()
        print(f"[AUTH] Error during logout: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@auth_bp.route("/password-reset", methods=["POST"])
def request_password_reset():
    """
    Email a password reset link
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
    responses:
      200:
        description: Always returned for a well-formed email, whether or not the account exists
      400:
        description: Invalid email
    """
    try:
        data = request.get_json(silent=True) or {}
        email = _normalize_email(data.get("email"))
        raise_for_errors([validate_email(email)])

        user = db.session.scalar(select(User).where(User.email == email))
        if user:
            minutes = current_app.config.get("PASSWORD_RESET_EXPIRES_MINUTES", 30)
            token = issue_token(
                user,
                purpose="password_reset",
                expires=datetime.timedelta(minutes=minutes),
            )
            app_url = current_app.config.get("APP_URL", "").rstrip("/")
            result = email_service.send_password_reset(
                user.email, f"{app_url}/reset-password?token={token}", minutes
            )
            if not result.get("success"):
                print(f"[AUTH] Password reset email failed: {result.get('error')}")

        return jsonify({
            "status": "success",
            "message": "If that account exists, a reset link has been sent"
        }), 200

    except ServiceError as e:
        return e.to_response()

    except Exception as e:
        print(f"[AUTH] Error requesting password reset: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@auth_bp.route("/password-reset/confirm", methods=["POST"])
def confirm_password_reset():
    """Set a new password using a reset token."""
    try:
        data = request.get_json(silent=True) or {}
        token = data.get("token")
        new_password = data.get("new_password")

        if not token:
            return jsonify({"status": "error", "message": "Reset token is required"}), 400

        raise_for_errors([validate_password(new_password)])

        payload = decode_token(token, purpose="password_reset")
        if payload is None:
            return jsonify({
                "status": "error",
                "message": "Reset link is invalid or has expired"
            }), 400

        user = db.session.get(User, payload["user_id"])
        if not user:
            return jsonify({"status": "error", "message": "User not found"}), 404

        user.password_hash = _hash_password(new_password)
        # Reset links are single use
        db.session.add(RevokedToken(jti=payload["jti"], user_id=user.id))
        db.session.commit()

        return jsonify({"status": "success", "message": "Password updated successfully"}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[AUTH] Error confirming password reset: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@auth_bp.route("/me", methods=["GET"])
@token_required
def get_current_user():
    user = db.session.get(User, g.user_id)
    if not user:
        return jsonify({"status": "error", "message": "User not found"}), 404
    return jsonify({"status": "success", "user": user.to_dict()}), 200


@auth_bp.route("/me", methods=["PUT"])
@token_required
def update_current_user():
    """Update business_name and the onboarding flag."""
    try:
        data = request.get_json(silent=True) or {}
        user = db.session.get(User, g.user_id)
        if not user:
            return jsonify({"status": "error", "message": "User not found"}), 404

        if "business_name" in data:
            raise_for_errors(
                [validate_text(data.get("business_name"), "business_name", required=False)]
            )
            user.business_name = data.get("business_name")
        if "has_completed_onboarding" in data:
            user.has_completed_onboarding = bool(data.get("has_completed_onboarding"))

        db.session.commit()
        return jsonify({"status": "success", "user": user.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[AUTH] Error updating user {g.user_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500
