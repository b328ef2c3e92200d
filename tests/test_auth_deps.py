import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from app.auth.deps import get_access_token, get_current_user_id
from app.auth.jwt import subject
from app.core.config import settings


def _creds(claims):
    tok = jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=tok)


def test_user_id_from_wardrobe_claim():
    assert get_current_user_id(_creds({"userId": "abc"})) == "abc"
    assert get_current_user_id(_creds({"sub": "xyz", "userId": "abc"})) == "xyz"


def test_missing_or_bad_token_is_401():
    with pytest.raises(HTTPException) as exc:
        get_current_user_id(None)
    assert exc.value.status_code == 401
    with pytest.raises(HTTPException):
        get_current_user_id(HTTPAuthorizationCredentials(scheme="Bearer", credentials="garbage"))
    with pytest.raises(HTTPException):
        get_current_user_id(_creds({"email": "a@b.c"}))


def test_subject_requires_id():
    with pytest.raises(jwt.InvalidTokenError):
        subject({})


def test_access_token_passthrough():
    creds = _creds({"userId": "abc"})
    assert get_access_token(creds) == creds.credentials
    assert get_access_token(None) is None
