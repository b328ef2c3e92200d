from typing import Any, Dict

import jwt

from app.core.config import settings


def decode_token(tok: str) -> Dict[str, Any]:
    """Verify a wardrobe-service access token and return its claims."""
    return jwt.decode(tok, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])


def subject(claims: Dict[str, Any]) -> str:
    # the wardrobe service puts the user id in userId, newer tokens use sub
    sub = claims.get("sub") or claims.get("userId")
    if not sub:
        raise jwt.InvalidTokenError("missing subject")
    return str(sub)
