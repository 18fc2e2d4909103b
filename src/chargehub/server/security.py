import time
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

import chargehub.server.config as config
import chargehub.server.crud as crud
from chargehub.server.database import get_db

pctx = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pctx.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pctx.verify(password, hashed)


def make_session_token(user_id: int, email: str, name: str) -> str:
    now = int(time.time())
    payload = {"sub": str(user_id), "email": email, "name": name, "iat": now, "exp": now + config.SESSION_TTL}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALG)


def verify_session_token(token: str) -> Optional[int]:
    ''' Returns the user id of a valid session token, or None '''
    try:
        data = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except jwt.PyJWTError:
        return None
    try:
        return int(data.get("sub"))
    except (TypeError, ValueError):
        return None


def cookie_settings() -> dict:
    return dict(
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="lax",
        max_age=config.SESSION_TTL,
        path="/",
    )


def get_current_user(request: Request, db: Session = Depends(get_db)):
    token = request.cookies.get(config.SESSION_COOKIE)
    user_id = verify_session_token(token or "")
    if user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    db_user = crud.get_user(db, user_id)
    if db_user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return db_user


def require_hardware_key(request: Request):
    if request.headers.get("X-API-Key") != config.HARDWARE_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")
