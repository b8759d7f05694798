# Overview: Request and capability decorators for API routes.

from __future__ import annotations

from functools import wraps

from flask import current_app, g, request

from .errors import PermissionDeniedError
from .permissions import role_has_capability
from .responses import failure
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.branch_id: The user's branch (None for owner/admin/auditor)
    - g.session_context: The full SessionContext object

    Returns 401 if the header is missing, the token is unknown, expired or
    revoked, or the user was deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return failure("Authentication required", 401, "unauthorized")

        context = session_service.validate_session(token)
        if not context:
            return failure("Invalid or expired token", 401, "unauthorized")

        g.current_user = context.user
        g.branch_id = context.branch_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """
    Require the authenticated user's role to grant `capability`.

    Must be stacked below @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return failure("Authentication required", 401, "unauthorized")

            user = g.current_user
            if not role_has_capability(user.role, capability):
                current_app.logger.info(
                    "Capability %s denied for user_id=%s role=%s on %s %s",
                    capability, user.id, user.role, request.method, request.path,
                )
                return failure(
                    "Permission denied",
                    403,
                    "permission_denied",
                    {"required_capability": capability, "role": user.role},
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def resolve_branch_scope(requested_branch_id: int | None) -> int | None:
    """
    Effective branch filter for the current user.

    Users without VIEW_ALL_BRANCHES are pinned to their own branch; asking
    for another branch raises PermissionDeniedError. Others get what they
    asked for (None meaning every branch).
    """
    user = g.current_user
    if role_has_capability(user.role, "VIEW_ALL_BRANCHES"):
        return requested_branch_id

    if user.branch_id is None:
        raise PermissionDeniedError("Your account is not assigned to a branch")
    if requested_branch_id is not None and requested_branch_id != user.branch_id:
        raise PermissionDeniedError(
            "You can only access data for your own branch",
            {"branch_id": requested_branch_id, "your_branch_id": user.branch_id},
        )
    return user.branch_id
