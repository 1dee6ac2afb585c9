import os
from datetime import datetime, timedelta
from typing import Iterable, Optional, Set

import bcrypt
import jwt
from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from leadconvert import monitoring
from leadconvert.db import User, get_session

JWT_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6


def _secret() -> str:
    return os.getenv("SESSION_SECRET", "session_secret_key")


def cookie_name() -> str:
    return os.getenv("SESSION_COOKIE_NAME", "session")


def _max_age() -> int:
    return int(os.getenv("SESSION_MAX_AGE_SECONDS", str(7 * 24 * 60 * 60)))


def hash_password(password: str) -> str:
    rounds = int(os.getenv("BCRYPT_ROUNDS", "12"))
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_session_token(user_id: int) -> str:
    now = datetime.utcnow()
    payload = {"sub": str(user_id), "iat": now, "exp": now + timedelta(seconds=_max_age())}
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)


def decode_session_token(token: str) -> Optional[int]:
    try:
        payload = jwt.decode(token, _secret(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None


def set_session_cookie(response: Response, user_id: int) -> None:
    production = monitoring.is_production()
    response.set_cookie(
        cookie_name(),
        create_session_token(user_id),
        max_age=_max_age(),
        httponly=True,
        secure=production,
        samesite="none" if production else "lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(cookie_name())


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """Resolve the session cookie into ``request.state.user`` for protected paths."""

    def __init__(
        self,
        app,
        exempt_paths: Optional[Iterable[str]] = None,
        exempt_prefixes: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        self.exempt_paths: Set[str] = set(exempt_paths or [])
        self.exempt_prefixes: Set[str] = set(exempt_prefixes or [])

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if (
            request.method == "OPTIONS"
            or path in self.exempt_paths
            or any(path.startswith(prefix) for prefix in self.exempt_prefixes)
        ):
            return await call_next(request)

        token = request.cookies.get(cookie_name())
        user_id = decode_session_token(token) if token else None
        if user_id is None:
            return JSONResponse({"message": "Not authenticated"}, status_code=401)

        async with get_session() as session:
            user = await session.get(User, user_id)
        if not user:
            return JSONResponse({"message": "User not found"}, status_code=401)

        request.state.user = user
        request.state.user_id = user.id
        return await call_next(request)


def current_user(request: Request) -> User:
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_roles(*roles: str):
    allowed = set(roles)

    def dependency(request: Request) -> User:
        user = current_user(request)
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Access denied: insufficient permissions")
        return user

    return dependency
