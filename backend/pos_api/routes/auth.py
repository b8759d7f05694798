# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/pos_api/routes/auth.py
"""
Authentication API routes

- POST /api/auth/login   email + password -> {user, token, expires_in}
- POST /api/auth/logout  revokes the bearer token
- GET  /api/auth/me      current user and role capabilities
- PUT  /api/auth/profile          edit own name, phone, email
- PUT  /api/auth/change-password  current + new password; other sessions are revoked

Self-registration does not exist; accounts are created through
/api/users or `flask users create`.
"""

from flask import Blueprint, g, request

from ..config import current_settings
from ..decorators import bearer_token, require_auth
from ..errors import PosError
from ..extensions import db
from ..models import User
from ..permissions import capabilities_for_role, get_capability_definition
from ..responses import failure, from_error, internal_error, success
from ..services import auth_service, session_service
from ..validation import ModelValidationPolicy, validate_payload


PROFILE_POLICY = ModelValidationPolicy(
    writable_fields=set(auth_service.PROFILE_FIELDS),
)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included as `Authorization: Bearer <token>` on protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return failure("email and password required", 400, "validation_error")

        user = auth_service.authenticate(email, password)
        if not user:
            db.session.rollback()
            return failure("Invalid credentials", 401, "invalid_credentials")

        settings = current_settings()
        _session, token = session_service.create_session(
            user.id,
            ttl_hours=settings.session_ttl_hours,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        db.session.commit()

        return success(
            {
                "user": user.to_dict(),
                "token": token,
                "expires_in": settings.session_ttl_hours * 3600,
            },
            "Login successful",
        )

    except PosError as e:
        db.session.rollback()
        return from_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to login user")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(bearer_token())
        return success(message="Logged out")
    except Exception:
        return internal_error("Failed to logout user")


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    data = user.to_dict()
    data["capabilities"] = capabilities_for_role(user.role)
    data["capability_details"] = [get_capability_definition(code) for code in data["capabilities"]]
    return success(data)


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    """Body: any of {"first_name", "last_name", "phone", "email"}"""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=User, payload=payload, policy=PROFILE_POLICY, partial=True)
        if not patch:
            return failure("No profile fields supplied", 400, "validation_error")
        user = auth_service.update_profile(g.current_user, patch)
        return success(user.to_dict(), "Profile updated")
    except PosError as e:
        db.session.rollback()
        return from_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to update profile")


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    """
    Body: {"current_password": "...", "new_password": "...", "confirm_password": "..."}

    The session making the request stays valid; every other session is revoked.
    """
    data = request.get_json(silent=True) or {}
    try:
        revoked = auth_service.change_password(
            g.current_user,
            data.get("current_password"),
            data.get("new_password"),
            confirm_password=data.get("confirm_password"),
            keep_session_id=g.session_context.session.id,
            bcrypt_rounds=current_settings().bcrypt_rounds,
        )
        return success({"revoked_sessions": revoked}, "Password changed")
    except PosError as e:
        db.session.rollback()
        return from_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to change password")
