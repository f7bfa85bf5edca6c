from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from typing import Any


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _sign(payload_b64url: str, secret: str) -> str:
    sig = hmac.new(
        secret.encode("utf-8"),
        payload_b64url.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return _b64url_encode(sig)


def issue_token(*, secret: str, user_id: int, days: int, now: int | None = None) -> str:
    """签发登录 token：`<payload_b64url>.<sig_b64url>`，payload 携带 uid。"""
    now_int = int(now if now is not None else time.time())
    days = int(days or 0)
    if days <= 0:
        days = 30

    payload = {
        "v": 1,
        "uid": int(user_id),
        "iat": now_int,
        "exp": now_int + days * 24 * 60 * 60,
    }
    payload_raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    payload_b64 = _b64url_encode(payload_raw)
    sig_b64 = _sign(payload_b64, secret)
    return f"{payload_b64}.{sig_b64}"


def verify_token(
    token: str | None,
    *,
    secret: str,
    now: int | None = None,
) -> tuple[bool, str, dict[str, Any] | None]:
    """校验 token，返回 (ok, reason, payload)。"""
    if not token:
        return False, "missing", None

    token = token.strip()
    if not token:
        return False, "missing", None

    parts = token.split(".")
    if len(parts) != 2:
        return False, "format", None

    payload_b64, sig_b64 = parts
    expected_sig = _sign(payload_b64, secret)
    if not hmac.compare_digest(expected_sig, sig_b64):
        return False, "bad_sig", None

    try:
        payload_raw = _b64url_decode(payload_b64)
        payload: Any = json.loads(payload_raw.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return False, "bad_payload", None
    if not isinstance(payload, dict):
        return False, "bad_payload", None

    if payload.get("v") != 1:
        return False, "bad_version", payload

    try:
        exp_int = int(payload.get("exp"))
    except (TypeError, ValueError):
        return False, "bad_exp", payload

    now_int = int(now if now is not None else time.time())
    if exp_int < now_int:
        return False, "expired", payload

    try:
        uid = int(payload.get("uid"))
    except (TypeError, ValueError):
        return False, "bad_uid", payload
    if uid <= 0:
        return False, "bad_uid", payload

    return True, "ok", payload
