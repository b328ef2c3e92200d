from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.auth.jwt import decode_token, subject

bearer = HTTPBearer(auto_error=False)


def get_current_user_id(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> str:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")
    try:
        data = decode_token(creds.credentials)
        return subject(data)
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")


def get_access_token(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> Optional[str]:
    """Raw bearer token, forwarded to the wardrobe service."""
    return creds.credentials if creds else None
