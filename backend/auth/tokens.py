"""Bearer token verification.

The token comes from the Authorization header ("Bearer <token>") or, when
absent, from the session cookie. Only the resolved user id ever reaches
the transcript layer.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import jwt
from pydantic import BaseModel

from config.settings import Settings
from core.exceptions import AuthError

logger = logging.getLogger(__name__)

_BEARER = "Bearer "

# Claim names that carry the user id, in preference order
_USER_ID_CLAIMS = ("user_id", "uid", "sub")


class CallerIdentity(BaseModel):
    """Resolved caller. user_id may be empty when the token carries none."""
    user_id: str = ""


def extract_token(authorization: Optional[str], session_cookie: Optional[str]) -> str:
    """Pull the raw token from the header or cookie. Raises AuthError if neither."""
    if authorization and authorization.startswith(_BEARER):
        logger.debug("Found \"Authorization\" header")
        return authorization[len(_BEARER):].strip()
    if session_cookie:
        logger.debug("Found session cookie")
        return session_cookie
    logger.warning("No bearer token in Authorization header or session cookie")
    raise AuthError("Unauthorized")


class IdentityVerifier(ABC):
    """Abstract credential verifier."""

    @abstractmethod
    def verify(self, token: str) -> CallerIdentity:
        """Resolve a token to a caller. Raises AuthError on failure."""
        ...


class JWTIdentityVerifier(IdentityVerifier):
    """Signed JWT verification with a shared secret."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        if not secret:
            raise AuthError("JWT secret is not configured")
        self._secret = secret
        self._algorithm = algorithm

    def verify(self, token: str) -> CallerIdentity:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthError("Token expired")
        except jwt.InvalidTokenError as e:
            logger.warning("Invalid token: %s", str(e))
            raise AuthError(f"Invalid token: {str(e)}")

        user_id = next((str(payload[c]) for c in _USER_ID_CLAIMS if payload.get(c)), "")
        logger.debug("ID Token correctly decoded: user=%s", user_id or "<none>")
        return CallerIdentity(user_id=user_id)


def build_identity_verifier(settings: Settings) -> IdentityVerifier:
    return JWTIdentityVerifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)
