"""
Passwords, tokens and the current-user dependencies.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
import structlog
from bson import ObjectId
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pymongo.database import Database

from config import Settings, get_settings
from database import get_db

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


class TokenError(Exception):
    pass


class TokenService:
    """Issues and checks the access/refresh JWT pair."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _encode(self, claims: Dict[str, Any], secret: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {**claims, "iat": now, "exp": now + ttl, "jti": uuid.uuid4().hex}
        return jwt.encode(payload, secret, algorithm=self.settings.jwt_algorithm)

    def _decode(self, token: str, secret: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, secret, algorithms=[self.settings.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenError("Token expired")
        except jwt.InvalidTokenError:
            raise TokenError("Invalid token")
        if not ObjectId.is_valid(payload.get("_id", "")):
            raise TokenError("Invalid token subject")
        return payload

    def issue_access_token(self, user: Dict[str, Any]) -> str:
        claims = {
            "_id": str(user["_id"]),
            "email": user.get("email"),
            "username": user.get("username"),
            "full_name": user.get("full_name"),
        }
        return self._encode(
            claims,
            self.settings.access_token_secret,
            timedelta(minutes=self.settings.access_token_expire_minutes),
        )

    def issue_refresh_token(self, user_id: ObjectId) -> str:
        return self._encode(
            {"_id": str(user_id)},
            self.settings.refresh_token_secret,
            timedelta(days=self.settings.refresh_token_expire_days),
        )

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        return self._decode(token, self.settings.access_token_secret)

    def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        return self._decode(token, self.settings.refresh_token_secret)


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings)


def _request_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(ACCESS_COOKIE)


def _load_user(db: Database, tokens: TokenService, token: str) -> Dict[str, Any]:
    try:
        claims = tokens.verify_access_token(token)
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))
    user = db["user"].find_one({"_id": ObjectId(claims["_id"])}, {"password": 0, "refresh_token": 0})
    if not user:
        raise HTTPException(status_code=401, detail="Invalid access token")
    return user


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> Dict[str, Any]:
    token = _request_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized request")
    return _load_user(db, tokens, token)


def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[Dict[str, Any]]:
    """Like get_current_user, but anonymous or badly authenticated callers get None."""
    token = _request_token(request, credentials)
    if not token:
        return None
    try:
        return _load_user(db, tokens, token)
    except HTTPException:
        logger.debug("Ignoring invalid token on public route", path=request.url.path)
        return None
