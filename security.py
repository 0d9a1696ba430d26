import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from config import settings
from errors import AuthenticationError, InvalidTokenError

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

# Missing headers are reported by get_current_user, not by HTTPBearer
bearer_scheme = HTTPBearer(auto_error=False)

CLAIM_FIELDS = ("email", "channel_name", "phone", "logo_id")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


# JWT utilities
def build_claims(user: Dict[str, Any]) -> Dict[str, Any]:
    """Identity claims for a stored user document."""
    claims = {"id": str(user["_id"])}
    for field in CLAIM_FIELDS:
        claims[field] = user.get(field)
    return claims


def issue_token(claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed token carrying the identity claims."""
    to_encode = claims.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.token_expire_days))
    to_encode.update({"iat": now, "exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> Dict[str, Any]:
    """Verify and decode a token, raising InvalidTokenError on any failure."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise InvalidTokenError("token expired")
    except jwt.InvalidTokenError:
        raise InvalidTokenError()
    if not payload.get("id"):
        raise InvalidTokenError()
    return payload


# Authorization gate
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """Verified identity claims of the caller; the only place a token is parsed."""
    if credentials is None:
        raise AuthenticationError("Missing bearer token")
    claims = verify_token(credentials.credentials)
    logger.debug("Authenticated user %s", claims["id"])
    return claims
