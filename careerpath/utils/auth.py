from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import uuid

import jwt

from careerpath.config.settings import settings


class AuthUtils:
    """Identity token helpers. Tokens are issued by the identity provider;
    ``generate_access_token`` exists for local tooling and tests."""

    @staticmethod
    def generate_access_token(
        user_id: str,
        email: str,
        role: str,
        email_verified: bool = True,
        expires_in_minutes: Optional[int] = None,
    ) -> str:
        """Generate JWT access token with the identity claims"""
        now = datetime.now(timezone.utc)
        expire = now + timedelta(
            minutes=expires_in_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

        payload = {
            "sub": str(user_id),  # Subject (user ID)
            "email": email,
            "email_verified": email_verified,
            "role": role,
            "iat": now,  # Issued at
            "exp": expire,  # Expiration
            "jti": str(uuid.uuid4()),  # JWT ID for uniqueness
        }

        return jwt.encode(
            payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
        )

    @staticmethod
    def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
        """Verify and decode access token"""
        try:
            return jwt.decode(
                token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
            )
        except jwt.PyJWTError:
            return None

    @staticmethod
    def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
        """Extract bearer token from Authorization header"""
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        return token.strip()
