from __future__ import annotations

import os
from typing import Optional, Tuple

from flask import abort, g
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired


def _serializer() -> URLSafeTimedSerializer:
    secret = os.getenv("SECRET_KEY", "change-me")
    # Salt provides namespace isolation for tokens
    return URLSafeTimedSerializer(secret_key=secret, salt="carrymatch-auth")


def issue_token(user_id: int, role: str | None = None) -> str:
    """Issue a signed bearer token.

    Payload is minimal: {"id": int, "role": str}. Accounts are created by the
    identity provider; this service only needs to recognise who is calling.
    """
    return _serializer().dumps({"id": int(user_id), "role": str(role or "sender")})


def verify_token(token: str) -> Tuple[Optional[int], Optional[str]]:
    """Return (user_id, role) for a valid token, else (None, None).

    Max age configurable via AUTH_TOKEN_MAX_AGE seconds (default 30 days).
    """
    max_age_default = 60 * 60 * 24 * 30
    try:
        max_age = int(os.getenv("AUTH_TOKEN_MAX_AGE", str(max_age_default)))
    except ValueError:
        max_age = max_age_default
    try:
        data = _serializer().loads(token, max_age=max_age)
    except (BadSignature, SignatureExpired):
        return (None, None)
    if not isinstance(data, dict) or data.get("id") is None:
        return (None, None)
    try:
        uid = int(data["id"])
    except (TypeError, ValueError):
        return (None, None)
    role = str(data["role"]) if data.get("role") is not None else None
    return (uid, role)


def require_user_id() -> int:
    """Current user id from the request context, or abort with 401."""
    uid = getattr(g, "current_user_id", None)
    if uid is None:
        abort(401)
    return uid
