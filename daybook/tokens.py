"""
Token Service Module

Issues and verifies signed, time-limited bearer tokens carrying the caller's
user id, email, role and tenant.
"""

from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, Optional

import jwt

from .errors import UnauthorizedError


@dataclass
class TokenClaims:
    """Verified token payload"""
    user_id: str
    email: str
    role: Optional[str] = None
    tenant: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class TokenService:
    """Signs and verifies JWT access tokens"""
    
    def __init__(self, secret: str, algorithm: str = "HS256",
                 expires_in: timedelta = timedelta(hours=24)):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self.secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in
    
    def sign(self, user_id: str, email: str, role: Optional[str] = None,
             tenant: Optional[str] = None) -> str:
        """Sign a token for the given identity"""
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": user_id,
            "userId": user_id,
            "email": email,
            "iat": now,
            "exp": now + self.expires_in,
        }
        if role:
            payload["role"] = role
        if tenant:
            payload["tenant"] = tenant
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)
    
    def verify(self, token: str) -> TokenClaims:
        """
        Verify signature and expiry.
        
        Raises:
            UnauthorizedError: If the token is expired, tampered with or malformed
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Token expired")
        except jwt.InvalidTokenError:
            raise UnauthorizedError("Invalid token")
        
        user_id = payload.get("userId") or payload.get("sub")
        if not user_id:
            raise UnauthorizedError("Invalid token")
        
        return TokenClaims(
            user_id=user_id,
            email=payload.get("email", ""),
            role=payload.get("role"),
            tenant=payload.get("tenant"),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc) if "iat" in payload else None,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc) if "exp" in payload else None,
        )
