from .access import ensure_role
from .passwords import hash_password, verify_password
from .service import AuthService, changed_password_after
from .tokens import SessionTokens, generate_reset_token, hash_reset_token

__all__ = [
    "ensure_role",
    "hash_password",
    "verify_password",
    "AuthService",
    "changed_password_after",
    "SessionTokens",
    "generate_reset_token",
    "hash_reset_token",
]
