# Overview: Service-layer operations for auth; password hashing and credential checks.

"""
Authentication Service

WHY: Every sale and stock mutation must be attributable. Uses bcrypt for
secure password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from PosSettings.bcrypt_rounds)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Inactive or soft-deleted users cannot authenticate
- Changing your own password requires the current one and revokes every
  other open session
"""

import logging
import re

import bcrypt

from ..errors import ConflictError, PosError, ValidationError
from ..extensions import db
from ..models import User
from pos_api.time_utils import utcnow
from pos_api.validation import enforce_rules_email
from . import session_service


logger = logging.getLogger(__name__)


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    error_code = "weak_password"


class InvalidCredentialsError(PosError):
    """Wrong password on an operation that re-checks it."""
    status_code = 401
    error_code = "invalid_credentials"


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password must be a string")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing. Tests lower `rounds`
    through BCRYPT_ROUNDS to keep the suite fast.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash is treated as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def normalize_email(email) -> str:
    return str(email or "").strip().lower()


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication; the
    caller commits together with the session token it issues.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
        User.deleted_at.is_(None),
    ).first()

    if not user:
        return None

    if not verify_password(password, user.password_hash):
        logger.info("Failed login for user_id=%s", user.id)
        return None

    user.last_login_at = utcnow()
    return user


PROFILE_FIELDS = {"first_name", "last_name", "phone", "email"}


def update_profile(user: User, patch: dict) -> User:
    """
    Self-service edit of name, phone and email.

    Role, branch and employee id stay with /api/users.
    """
    unknown = sorted(set(patch) - PROFILE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}", {"fields": unknown})

    if "email" in patch:
        patch["email"] = normalize_email(patch["email"])
        enforce_rules_email(patch["email"])
        taken = db.session.query(User.id).filter(User.email == patch["email"], User.id != user.id).first()
        if taken:
            raise ConflictError("Email already exists.", {"email": patch["email"]})

    for k, v in patch.items():
        setattr(user, k, v)

    db.session.commit()
    return user


def change_password(
    user: User,
    current_password: str,
    new_password: str,
    *,
    confirm_password: str | None = None,
    keep_session_id: int | None = None,
    bcrypt_rounds: int = 12,
) -> int:
    """
    Replace the user's own password.

    Raises:
        ValidationError: missing fields, confirmation mismatch, unchanged password
        InvalidCredentialsError: current_password is wrong
        PasswordValidationError: new password too weak

    Returns the number of other sessions revoked.
    """
    if not current_password or not new_password:
        raise ValidationError("current_password and new_password are required")
    if confirm_password is not None and confirm_password != new_password:
        raise ValidationError("Passwords do not match")

    if not verify_password(current_password, user.password_hash):
        logger.info("Password change with wrong current password for user_id=%s", user.id)
        raise InvalidCredentialsError("Current password is incorrect")
    if current_password == new_password:
        raise ValidationError("New password must differ from the current password")

    user.password_hash = hash_password(new_password, rounds=bcrypt_rounds)
    revoked = session_service.revoke_all_user_sessions(
        user.id,
        reason="Password changed",
        except_session_id=keep_session_id,
    )
    db.session.commit()

    logger.info("Password changed for user_id=%s; revoked %s other session(s)", user.id, revoked)
    return revoked
