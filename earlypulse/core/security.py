"""Security primitives for password hashing and token signing."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
import uuid
from typing import Any

PBKDF2_ROUNDS = 120_000


class TokenInvalid(ValueError):
    """Raised when a signed token is malformed, tampered with or expired."""


def _b64url_encode(raw: bytes) -> str:
    """Return URL-safe base64 string without padding."""
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    """Decode URL-safe base64 string with optional missing padding."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def hash_password(password: str) -> str:
    """Hash password using PBKDF2-HMAC-SHA256 with random salt."""
    if not password:
        raise ValueError("Password must not be empty")
    salt = os.urandom(16)
    derived = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt, PBKDF2_ROUNDS
    )
    return (
        f"pbkdf2_sha256${PBKDF2_ROUNDS}$"
        f"{_b64url_encode(salt)}${_b64url_encode(derived)}"
    )


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify password against a stored PBKDF2 hash."""
    try:
        algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
        if algo != "pbkdf2_sha256":
            return False
        rounds = int(rounds_raw)
        salt = _b64url_decode(salt_b64)
        expected = _b64url_decode(digest_b64)
        derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    except (ValueError, TypeError, AttributeError, OverflowError):
        return False

    return hmac.compare_digest(derived, expected)


def _signature(signing_input: bytes, secret_key: str) -> bytes:
    return hmac.new(secret_key.encode("utf-8"), signing_input, hashlib.sha256).digest()


def build_signed_token(payload: dict[str, Any], secret_key: str) -> str:
    """Create compact signed token using JWT 3-part structure (HS256)."""
    header = {"alg": "HS256", "typ": "JWT"}
    header_part = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_part = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    signature_part = _b64url_encode(_signature(signing_input, secret_key))
    return f"{header_part}.{payload_part}.{signature_part}"


def sign_token(
    claims: dict[str, Any],
    secret_key: str,
    ttl_seconds: int,
    *,
    now: int | None = None,
) -> str:
    """Sign claims with issue time, expiry and a unique token id."""
    issued_at = int(time.time()) if now is None else int(now)
    payload = {
        **claims,
        "iat": issued_at,
        "exp": issued_at + int(ttl_seconds),
        "jti": uuid.uuid4().hex,
    }
    return build_signed_token(payload, secret_key)


def decode_signed_token(
    token: str, secret_key: str, *, now: int | None = None
) -> dict[str, Any]:
    """Decode and verify compact signed token, raising ``TokenInvalid`` on failure."""
    parts = (token or "").split(".")
    if len(parts) != 3 or not all(parts):
        raise TokenInvalid("Malformed token")
    header_part, payload_part, signature_part = parts

    try:
        signing_input = f"{header_part}.{payload_part}".encode("utf-8")
        got_sig = _b64url_decode(signature_part)
    except ValueError as exc:
        raise TokenInvalid("Malformed token") from exc
    expected_sig = _signature(signing_input, secret_key)
    if not hmac.compare_digest(expected_sig, got_sig):
        raise TokenInvalid("Invalid token signature")

    try:
        payload = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except ValueError as exc:
        raise TokenInvalid("Invalid token payload") from exc
    if not isinstance(payload, dict):
        raise TokenInvalid("Invalid token payload")

    try:
        exp = int(payload.get("exp") or 0)
    except (TypeError, ValueError) as exc:
        raise TokenInvalid("Invalid token expiry") from exc
    current = int(time.time()) if now is None else int(now)
    if not exp or exp <= current:
        raise TokenInvalid("Token expired")

    return payload
