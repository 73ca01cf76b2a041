import datetime
import uuid
from functools import wraps

import jwt
from flask import current_app, g, request
from sqlalchemy import select

from ..extensions import db
from ..models import RevokedToken
from ..services.errors import AuthError

ALGORITHM = "HS256"


def issue_token(user, purpose="access", expires=None):
    """Sign a JWT for ``user``. ``purpose`` separates login and reset tokens."""
    now = datetime.datetime.now(datetime.timezone.utc)
    if expires is None:
        expires = datetime.timedelta(hours=current_app.config.get("JWT_EXPIRES_HOURS", 1))
    payload = {
        "user_id": user.id,
        "email": user.email,
        "purpose": purpose,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + expires,
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm=ALGORITHM)


def decode_token(token, purpose="access"):
    """Return the token payload, or None when it is invalid, expired or revoked."""
    try:
        payload = jwt.decode(
            token, current_app.config["SECRET_KEY"], algorithms=[ALGORITHM]
        )
    except jwt.PyJWTError:
        return None

    if payload.get("purpose") != purpose:
        return None

    revoked = db.session.scalar(
        select(RevokedToken.id).where(RevokedToken.jti == payload.get("jti"))
    )
    if revoked is not None:
        return None
    return payload


def bearer_token():
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):].strip() or None


def token_required(view):
    """Reject the request unless it carries a valid access token; sets g.user_id."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        token = bearer_token()
        if not token:
            return AuthError("Authorization token is missing").to_response()

        payload = decode_token(token)
        if payload is None:
            return AuthError("Invalid or expired token").to_response()

        g.user_id = payload["user_id"]
        g.token_payload = payload
        return view(*args, **kwargs)

    return wrapper
