from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import uuid
import jwt

from app.config.settings import settings

VALID_ROLES = {"applicant", "admin", "superadmin"}


class AuthUtils:
    """JWT session token helpers; sessions are issued by the auth service"""

    @staticmethod
    def generate_session_token(
        user_id: str,
        email: str,
        role: str,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """Generate a session JWT with user information"""
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(days=settings.SESSION_EXPIRE_DAYS))

        payload = {
            "sub": str(user_id),  # Subject (user ID)
            "email": email,
            "role": role,
            "iat": now,  # Issued at
            "exp": expire,  # Expiration
            "jti": str(uuid.uuid4()),  # JWT ID for uniqueness
        }

        return jwt.encode(
            payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
        )

    @staticmethod
    def verify_session_token(token: str) -> Optional[Dict[str, Any]]:
        """Verify and decode a session token; None when invalid or expired"""
        try:
            payload = jwt.decode(
                token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
            )
        except jwt.PyJWTError:
            return None

        if not payload.get("sub") or payload.get("role") not in VALID_ROLES:
            return None
        return payload

    @staticmethod
    def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
        """Extract the token from an ``Authorization: Bearer <token>`` header"""
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        return token.strip()
