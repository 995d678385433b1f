from typing import Callable, Optional

from fastapi import Depends, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from careerpath.db.models import UserRole
from careerpath.utils.auth import AuthUtils
from careerpath.utils.errors import AuthenticationError, AuthorizationError
from careerpath.utils.logging import get_logger
from careerpath.utils.responses import ResponseBuilder

logger = get_logger()


class AuthState:
    """Authentication state to be stored in request.state"""

    def __init__(
        self,
        user_id: str,
        email: str,
        role: str,
        email_verified: bool,
        is_authenticated: bool = True,
    ):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.email_verified = email_verified
        self.is_authenticated = is_authenticated


class IdentityMiddleware(BaseHTTPMiddleware):
    """Verifies the identity provider's bearer token. The role claim is
    trusted as-is."""

    # Paths that don't require authentication
    EXCLUDED_PATHS = {
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
    }

    def __init__(self, app, excluded_paths: Optional[set] = None):
        super().__init__(app)
        self.excluded_paths = set(self.EXCLUDED_PATHS)
        if excluded_paths:
            self.excluded_paths.update(excluded_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self._is_excluded_path(request.url.path) or request.method == "OPTIONS":
            return await call_next(request)

        auth_state = self._authenticate(request)
        if not auth_state:
            return ResponseBuilder.error(
                request=request,
                message="Invalid or expired authentication",
                error_code="UNAUTHORIZED",
                status_code=401,
            )

        request.state.auth = auth_state
        return await call_next(request)

    def _is_excluded_path(self, path: str) -> bool:
        return any(path.startswith(excluded) for excluded in self.excluded_paths)

    def _authenticate(self, request: Request) -> Optional[AuthState]:
        token = AuthUtils.extract_bearer_token(request.headers.get("authorization"))
        if not token:
            return None

        payload = AuthUtils.verify_access_token(token)
        if not payload:
            logger.debug("Rejected invalid or expired identity token")
            return None

        user_id = payload.get("sub")
        role = payload.get("role")
        if not user_id or role not in {r.value for r in UserRole}:
            return None

        return AuthState(
            user_id=str(user_id),
            email=str(payload.get("email") or ""),
            role=str(role),
            email_verified=bool(payload.get("email_verified", False)),
        )


# Dependency for getting current user from request state
def get_current_user(request: Request) -> AuthState:
    """Dependency to get current authenticated user from request state"""
    auth_state = getattr(request.state, "auth", None)

    if not auth_state or not auth_state.is_authenticated:
        raise AuthenticationError("Not authenticated", "NOT_AUTHENTICATED")

    return auth_state


def require_role(*allowed_roles: UserRole):
    """Create dependency that requires one of the roles and a verified email"""
    allowed = {role.value for role in allowed_roles}

    def check_role(current_user: AuthState = Depends(get_current_user)) -> AuthState:
        if current_user.role not in allowed:
            raise AuthorizationError(
                "Insufficient permissions", "INSUFFICIENT_PERMISSIONS"
            )
        if not current_user.email_verified:
            raise AuthorizationError("Email address not verified", "EMAIL_NOT_VERIFIED")
        return current_user

    return check_role


require_student = require_role(UserRole.STUDENT)
require_institution = require_role(UserRole.INSTITUTION)
require_company = require_role(UserRole.COMPANY)
require_admin = require_role(UserRole.ADMIN)
require_any_user = require_role(*UserRole)
