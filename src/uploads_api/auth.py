"""Bearer-token caller identity."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from uploads_api.config.settings import Settings

security = HTTPBearer(auto_error=False)

Role = Literal["admin", "team"]
ROLES = ("admin", "team")


@dataclass(frozen=True)
class CallerIdentity:
    """Who is calling: resolved from the bearer token on every request."""
    user_id: int
    team_id: Optional[int]
    role: Role
    username: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def effective_team_id(self, default_team_id: int) -> int:
        return self.team_id if self.team_id is not None else default_team_id


def create_access_token(
    settings: Settings,
    *,
    user_id: int,
    team_id: Optional[int],
    role: Role,
    username: Optional[str] = None,
    expires_in: timedelta = timedelta(hours=24),
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "team_id": team_id,
        "role": role,
        "username": username,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(settings: Settings, token: str) -> CallerIdentity:
    """Decode and validate a token. Raises `jwt.InvalidTokenError` on any problem."""
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])

    role = payload.get("role")
    if role not in ROLES:
        raise jwt.InvalidTokenError(f"Unknown role: {role}")
    try:
        user_id = int(payload["sub"])
        team_id = payload.get("team_id")
        team_id = int(team_id) if team_id is not None else None
    except (KeyError, TypeError, ValueError) as e:
        raise jwt.InvalidTokenError(f"Invalid token payload: {e}") from e

    return CallerIdentity(
        user_id=user_id,
        team_id=team_id,
        role=role,
        username=payload.get("username"),
    )


def get_caller_identity(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CallerIdentity:
    if not creds or not creds.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    settings: Settings = request.app.state.settings
    try:
        return decode_token(settings, creds.credentials)
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_admin(identity: CallerIdentity = Depends(get_caller_identity)) -> CallerIdentity:
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return identity
