"""
Session and password-reset tokens.

Session tokens are itsdangerous-signed payloads ``{"id", "iat"}``; ``iat``
is a float so a password change within the same second still invalidates
tokens issued before it. Reset tokens are random hex; only their SHA-256
digest is ever stored.
"""

import hashlib
import secrets
import time
from typing import Any, Dict, Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from ..utils.exceptions import AuthError

SESSION_SALT = "tourhub.session"
RESET_TOKEN_BYTES = 32
SECONDS_PER_DAY = 24 * 60 * 60


class SessionTokens:
    """Issue and verify signed, time-boxed session tokens"""

    def __init__(self, secret: str, expires_in_days: int):
        self._serializer = URLSafeTimedSerializer(secret, salt=SESSION_SALT)
        self.max_age = expires_in_days * SECONDS_PER_DAY

    def issue(self, principal_id: str, issued_at: Optional[float] = None) -> str:
        iat = time.time() if issued_at is None else issued_at
        return self._serializer.dumps({"id": principal_id, "iat": iat})

    def verify(self, token: str) -> Dict[str, Any]:
        """Return the payload; AuthError("invalid token") on tampering or expiry."""
        try:
            payload = self._serializer.loads(token, max_age=self.max_age)
        except BadSignature:
            # SignatureExpired included
            raise AuthError("invalid token")
        if not isinstance(payload, dict) or "id" not in payload or "iat" not in payload:
            raise AuthError("invalid token")
        return payload


def generate_reset_token() -> str:
    return secrets.token_hex(RESET_TOKEN_BYTES)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
