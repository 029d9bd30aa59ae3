from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from elearning.core.security import CurrentUser, get_current_user
from elearning.services.progress import ProgressService
from elearning.services.providers import get_progress_service, get_user_directory
from elearning.services.users import UserDirectory

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/profile")
def my_profile(
    user: CurrentUser = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> dict[str, Any]:
    return users.get_user_info(user.id)


@router.get("/dashboard")
def my_dashboard(
    user: CurrentUser = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
    service: ProgressService = Depends(get_progress_service),
) -> dict[str, Any]:
    return {
        "profile": users.get_user_info(user.id),
        "role": user.role.value,
        "progress": service.summarize(user.id).to_record(),
    }
