from __future__ import annotations

import enum
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from elearning.core.config import settings


# Tokens are issued by the external authentication provider; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


class UserRole(str, enum.Enum):
    student = "student"
    instructor = "instructor"
    admin = "admin"


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: UserRole


def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> CurrentUser:
    if not token:
        token = request.cookies.get("core_token")
    if not token:
        raise HTTPException(status_code=401, detail="not authenticated")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=str(getattr(settings, "jwt_issuer", "elearning")),
        )
    except JWTError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    user_id = str(payload.get("sub") or "").strip()
    if not user_id or "/" in user_id:
        raise HTTPException(status_code=401, detail="invalid token")

    try:
        role = UserRole(str(payload.get("role") or UserRole.student.value))
    except ValueError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    request.state.user_id = user_id
    return CurrentUser(id=user_id, role=role)


def require_roles(*roles: UserRole):
    def _dep(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        # admin passes every guard
        if user.role == UserRole.admin:
            return user

        if user.role not in roles:
            raise HTTPException(status_code=403, detail="forbidden")
        return user

    return _dep
