"""
Token and secret helpers.

Access tokens are compact JSON Web Tokens signed with HMAC‑SHA256 and
base64url encoded.  Two scopes exist:

* ``owner`` tokens are issued to accounts; the ``sub`` claim is the
  account id.
* ``domain`` tokens are issued to domain servers; the ``sub`` claim is
  the domain id.

Domain API keys are never stored in clear text.  ``hash_secret``
produces a salted PBKDF2‑HMAC‑SHA256 digest which ``verify_secret``
checks in constant time.
"""

import base64
import hashlib
import hmac
import json
import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi.security import HTTPBearer

from .config import settings
from ..schemas.auth import AuthToken, TokenScope

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000


def _b64_url_encode(data: bytes) -> str:
    """Base64‑url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64‑url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(data: Dict[str, Any], expires_delta: Optional[int] = None) -> str:
    """Create a signed token carrying ``data`` plus an ``exp`` claim.

    Parameters
    ----------
    data : dict
        Claims to embed, normally ``{"sub": ..., "scope": ...}``.
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.

    Returns
    -------
    str
        A token of the form ``header.payload.signature``.
    """
    to_encode = data.copy()
    exp_seconds = expires_delta or settings.access_token_expire_minutes * 60
    to_encode["exp"] = int(time.time()) + exp_seconds
    header = {"alg": settings.algorithm, "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(to_encode, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, settings.secret_key))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify and decode a token.

    Returns the claims if the signature is valid and the token has not
    expired, otherwise ``None``.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    try:
        actual_sig = _b64_url_decode(signature_b64)
        if not hmac.compare_digest(_sign(signing_input, settings.secret_key), actual_sig):
            return None
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        expires_at = int(data["exp"])
    except (KeyError, TypeError, ValueError):
        return None
    if expires_at < int(time.time()):
        return None
    return data


def create_account_token(account_id: str, expires_delta: Optional[int] = None) -> str:
    return create_access_token({"sub": account_id, "scope": TokenScope.OWNER.value}, expires_delta)


def create_domain_token(domain_id: str, expires_delta: Optional[int] = None) -> str:
    return create_access_token({"sub": domain_id, "scope": TokenScope.DOMAIN.value}, expires_delta)


def resolve_auth_token(token: Optional[str]) -> Optional[AuthToken]:
    """Turn a bearer credential into an :class:`AuthToken`.

    Fails closed: a missing, malformed, expired or unknown‑scope token
    resolves to ``None``.
    """
    if not token:
        return None
    claims = decode_access_token(token)
    if not claims or not claims.get("sub"):
        logger.debug("Rejected bearer token")
        return None
    subject = str(claims["sub"])
    scope = claims.get("scope", TokenScope.OWNER.value)
    if scope == TokenScope.OWNER.value:
        return AuthToken(scope=TokenScope.OWNER, account_id=subject)
    if scope == TokenScope.DOMAIN.value:
        return AuthToken(scope=TokenScope.DOMAIN, domain_id=subject)
    logger.debug("Rejected bearer token with scope %s", scope)
    return None


def hash_secret(secret: str) -> str:
    """Hash a secret (a domain API key) using PBKDF2‑HMAC with SHA‑256.

    The result holds the hex salt and hex digest separated by ``$``.
    """
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"{salt.hex()}${dk.hex()}"


def verify_secret(plain_secret: str, hashed_secret: Optional[str]) -> bool:
    """Check ``plain_secret`` against a value produced by :func:`hash_secret`."""
    if not hashed_secret or "$" not in hashed_secret:
        return False
    salt_hex, hash_hex = hashed_secret.split("$", 1)
    try:
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac("sha256", plain_secret.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(dk, stored_hash)


bearer_scheme = HTTPBearer(auto_error=False)
