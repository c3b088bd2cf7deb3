"""
Acting principal of a request

The identity provider issues HS256 bearer tokens carrying the user id,
role and email. Every mutator receives the resulting Actor explicitly.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import get_settings

security = HTTPBearer()


class Role(str, Enum):
    """Roles known to the booking core"""
    CLIENT = "client"
    STAFF = "staff"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation"""
    user_id: int
    role: Role
    email: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.STAFF, Role.ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def owns(self, appointment) -> bool:
        return appointment.account_id is not None and appointment.account_id == self.user_id


def create_access_token(actor: Actor, expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    expire_minutes = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(actor.user_id),
        "role": actor.role.value,
        "email": actor.email,
        "iat": now,
        "exp": now + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Actor:
    settings = get_settings()
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    return Actor(
        user_id=int(payload["sub"]),
        role=Role(payload.get("role", Role.CLIENT.value)),
        email=payload.get("email"),
    )


def get_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    try:
        return decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc
    except (KeyError, ValueError) as exc:
        raise HTTPException(status_code=401, detail="Invalid token payload") from exc
