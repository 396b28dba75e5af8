from typing import Optional, Callable
from fastapi import Depends, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.config.settings import settings
from app.db.models import UserRole
from app.services.actor import Actor
from app.utils.auth import AuthUtils
from app.utils.errors import AuthenticationError, AuthorizationError
from app.utils.responses import ResponseBuilder
from app.utils.logging import get_logger

logger = get_logger()


class AuthState:
    """Authentication state to be stored in request.state"""

    def __init__(
        self,
        user_id: str,
        email: str,
        role: str,
        is_authenticated: bool = True,
    ):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.is_authenticated = is_authenticated

    def to_actor(self) -> Actor:
        return Actor(user_id=self.user_id, role=UserRole(self.role))


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware validating the session JWT"""

    # Paths that don't require authentication
    EXCLUDED_PATHS = {
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
        f"{settings.API_PREFIX}/shared/health",
    }

    def __init__(self, app, excluded_paths: Optional[set] = None):
        super().__init__(app)
        self.excluded_paths = set(self.EXCLUDED_PATHS)
        if excluded_paths:
            self.excluded_paths.update(excluded_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request through authentication middleware"""

        # Skip authentication for excluded paths
        if self._is_excluded_path(request.url.path):
            return await call_next(request)

        # Skip authentication for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        auth_state = self._authenticate_request(request)
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
        """Check if path is excluded from authentication"""
        return any(path.startswith(excluded) for excluded in self.excluded_paths)

    def _authenticate_request(self, request: Request) -> Optional[AuthState]:
        """Read the session token from the Bearer header or the session cookie"""
        token = AuthUtils.extract_bearer_token(
            request.headers.get("authorization")
        ) or request.cookies.get(settings.SESSION_COOKIE_NAME)
        if not token:
            return None

        payload = AuthUtils.verify_session_token(token)
        if not payload:
            logger.warning(f"Rejected session token on {request.url.path}")
            return None

        return AuthState(
            user_id=str(payload["sub"]),
            email=str(payload.get("email") or ""),
            role=str(payload["role"]),
        )


# Dependency for getting current user from request state
def get_current_user(request: Request) -> AuthState:
    """Dependency to get current authenticated user from request state"""
    auth_state = getattr(request.state, "auth", None)

    if not auth_state or not auth_state.is_authenticated:
        raise AuthenticationError("Not authenticated")

    return auth_state


def get_current_actor(current_user: AuthState = Depends(get_current_user)) -> Actor:
    """Dependency producing the explicit actor passed into services"""
    return current_user.to_actor()


# Dependency for requiring specific roles
def require_role(*allowed_roles: UserRole):
    """Create dependency that requires one of the given roles"""

    def check_role(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise AuthorizationError(
                "Insufficient permissions", "INSUFFICIENT_PERMISSIONS"
            )
        return actor

    return check_role


# Pre-defined dependencies for common roles
require_applicant = require_role(UserRole.APPLICANT)
require_staff = require_role(UserRole.ADMIN, UserRole.SUPERADMIN)
require_superadmin = require_role(UserRole.SUPERADMIN)
