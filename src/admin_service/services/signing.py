"""Webhook secrets and payload signatures."""
from __future__ import annotations

import hmac
import json
import secrets
from hashlib import sha256
from typing import Any

SIGNATURE_PREFIX = "sha256="


def generate_secret() -> str:
    return secrets.token_hex(32)


def encode_body(body: dict[str, Any]) -> bytes:
    """Canonical wire encoding; signatures are computed over exactly these bytes."""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sign(secret: str, body_bytes: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), body_bytes, sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify(secret: str, body_bytes: bytes, signature: str) -> bool:
    return hmac.compare_digest(sign(secret, body_bytes), signature)
