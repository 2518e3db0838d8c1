"""
Credential and session lifecycle.

All methods are blocking (bcrypt, outbound email, image upload); the web
layer calls them through a thread pool.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..models import User, normalize, utcnow, validate_user
from ..resources import USERS, ResourceHandlers
from ..resources.errors import invalid_input
from ..services.images import USER_PHOTO_SIZE, ensure_image
from ..storage import DocumentStore, Violation
from ..utils.config import AuthSettings
from ..utils.exceptions import AppError, AuthError, ConflictError, NotFound, UpstreamError, ValidationError
from ..utils.logger import get_logger
from .passwords import hash_password, verify_password
from .tokens import SessionTokens, generate_reset_token, hash_reset_token

logger = get_logger(__name__)

ACTIVE = {"active": {"$ne": False}}
PASSWORD_FIELDS = ("password", "passwordConfirm")
SELF_EDITABLE_FIELDS = ("name", "email")

Principal = Dict[str, Any]


def _timestamp(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def changed_password_after(user: Mapping[str, Any], issued_at: float) -> bool:
    """True if the password was changed after a token issued at ``issued_at``."""
    changed_at = user.get("passwordChangedAt")
    if not isinstance(changed_at, datetime):
        return False
    return _timestamp(changed_at) > issued_at


class AuthService:
    def __init__(self, store: DocumentStore, settings: AuthSettings, mailer, images=None):
        self.settings = settings
        self.mailer = mailer
        self.images = images
        self.users = ResourceHandlers(store, USERS)
        self.tokens = SessionTokens(settings.jwt_secret, settings.jwt_expires_in_days)

    @property
    def collection(self):
        return self.users.collection

    def issue_token(self, principal_id: str) -> str:
        return self.tokens.issue(principal_id)

    def _new_password(self, user: Dict[str, Any], password: Any, confirm: Any) -> Dict[str, Any]:
        """Validate a new password against the user's schema and return the changes to store."""
        violations = validate_user({**user, "password": password})
        if password != confirm:
            violations.append(Violation("passwordConfirm", "Passwords are not the same!"))
        if violations:
            raise invalid_input(violations)
        return {
            "password": hash_password(password, self.settings.bcrypt_rounds),
            "passwordChangedAt": utcnow(),
        }

    # --- signup / login -------------------------------------------------

    def register(self, payload: Mapping[str, Any]) -> Tuple[Principal, str]:
        doc = {k: payload[k] for k in ("name", "email", "password") if k in payload}
        violations = validate_user(doc)
        if "passwordConfirm" not in payload:
            violations.append(Violation("passwordConfirm", "Please confirm your password"))
        elif payload.get("passwordConfirm") != payload.get("password"):
            violations.append(Violation("passwordConfirm", "Passwords are not the same!"))
        if violations:
            raise invalid_input(violations)

        doc = normalize(User, doc)
        if self.collection.find_one({"email": doc["email"]}):
            raise ConflictError(
                f'Duplicate field value: "{doc["email"]}". Please use another value!',
                {"email": doc["email"]},
            )
        doc["password"] = hash_password(doc["password"], self.settings.bcrypt_rounds)
        stored = self.collection.insert_one(doc)
        logger.info("User registered", user_id=stored["_id"])
        return self.users.present(stored), self.issue_token(stored["_id"])

    def authenticate(self, email: Optional[str], password: Optional[str]) -> Tuple[Principal, str]:
        if not email or not password:
            raise ValidationError("Please provide email and password!")
        if not isinstance(email, str) or not isinstance(password, str):
            raise ValidationError("Email and password must be strings")
        user = self.collection.find_one({**ACTIVE, "email": str(email).strip().lower()})
        if not user or not verify_password(password, user.get("password", "")):
            logger.warning("Login failed", email=email)
            raise AuthError("invalid credentials")
        logger.info("User logged in", user_id=user["_id"])
        return self.users.present(user), self.issue_token(user["_id"])

    # --- identity -------------------------------------------------------

    def identify(self, token: Optional[str]) -> Principal:
        """Resolve a session token to its principal or raise AuthError."""
        if not token:
            raise AuthError("not authenticated")
        payload = self.tokens.verify(token)
        user = self.collection.find_one({**ACTIVE, "_id": payload["id"]})
        if user is None:
            raise AuthError("principal not found")
        if changed_password_after(user, payload["iat"]):
            raise AuthError("stale token")
        return self.users.present(user)

    def identify_passive(self, token: Optional[str]) -> Optional[Principal]:
        """Like identify, but anonymous (None) on any failure."""
        if not token:
            return None
        try:
            return self.identify(token)
        except AppError:
            return None

    # --- password reset -------------------------------------------------

    def initiate_password_reset(self, email: Optional[str], reset_url: Callable[[str], str]) -> None:
        if not email:
            raise ValidationError("Please provide your email address")
        user = self.collection.find_one({**ACTIVE, "email": str(email).strip().lower()})
        if user is None:
            raise NotFound("There is no user with that email address.")

        token = generate_reset_token()
        expires = utcnow() + timedelta(minutes=self.settings.reset_token_ttl_minutes)
        self.collection.update_by_id(
            user["_id"],
            changes={"passwordResetToken": hash_reset_token(token), "passwordResetExpires": expires},
        )
        try:
            self.mailer.send_password_reset(user, reset_url(token))
        except Exception as e:
            self.collection.update_by_id(user["_id"], unset=("passwordResetToken", "passwordResetExpires"))
            logger.error("Password reset email failed", user_id=user["_id"], error=str(e))
            raise AuthError("email dispatch failed", status_code=500) from e
        logger.info("Password reset requested", user_id=user["_id"])

    def complete_password_reset(self, token: str, password: Any, confirm: Any) -> Tuple[Principal, str]:
        user = self.collection.find_one({
            **ACTIVE,
            "passwordResetToken": hash_reset_token(token or ""),
            "passwordResetExpires": {"$gt": utcnow()},
        })
        if user is None:
            raise AuthError("invalid or expired token", status_code=400)
        updated = self.collection.update_by_id(
            user["_id"],
            changes=self._new_password(user, password, confirm),
            unset=("passwordResetToken", "passwordResetExpires"),
        )
        logger.info("Password reset completed", user_id=user["_id"])
        return self.users.present(updated), self.issue_token(user["_id"])

    # --- self service ---------------------------------------------------

    def change_password(self, principal_id: str, current: Any, password: Any, confirm: Any) -> Tuple[Principal, str]:
        user = self.collection.find_by_id(principal_id, ACTIVE)
        if user is None:
            raise AuthError("principal not found")
        if current is not None and not isinstance(current, str):
            raise ValidationError("Current password must be a string")
        if not verify_password(current or "", user.get("password", "")):
            raise AuthError("wrong current password")
        updated = self.collection.update_by_id(principal_id, changes=self._new_password(user, password, confirm))
        logger.info("Password changed", user_id=principal_id)
        return self.users.present(updated), self.issue_token(principal_id)

    def update_me(
        self,
        principal_id: str,
        payload: Mapping[str, Any],
        photo: Optional[Tuple[bytes, Optional[str]]] = None,
    ) -> Principal:
        """Apply name / email / photo changes; password fields are refused."""
        if any(k in payload for k in PASSWORD_FIELDS):
            raise ValidationError("This route is not for password updates. Please use /updatePassword.")
        changes = {k: payload[k] for k in SELF_EDITABLE_FIELDS if k in payload}
        if photo is not None:
            data, content_type = photo
            ensure_image(content_type)
            if self.images is None:
                raise UpstreamError("Image uploads are not configured")
            width, height = USER_PHOTO_SIZE
            changes["photo"] = self.images.resize(data, f"user-{principal_id}", width, height)
        return self.users.update(principal_id, changes)

    def deactivate(self, principal_id: str) -> None:
        self.collection.update_by_id(principal_id, changes={"active": False})
        logger.info("User deactivated", user_id=principal_id)
