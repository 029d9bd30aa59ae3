from __future__ import annotations

from fastapi import APIRouter, Depends

from elearning.core.errors import NotFound
from elearning.core.security import CurrentUser, UserRole, get_current_user, require_roles
from elearning.schemas.progress import CourseProgress, MarkCompleteRequest, ModuleProgress, OverallProgress
from elearning.services.progress import ProgressService
from elearning.services.providers import get_progress_service

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/overview", response_model=OverallProgress)
def overview(
    user: CurrentUser = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service),
):
    return service.summarize(user.id)


@router.post("/courses/{course_id}/enroll", response_model=CourseProgress)
def enroll(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service),
):
    return service.initialize_course_progress(user.id, course_id)


@router.get("/courses/{course_id}", response_model=CourseProgress)
def course_progress(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service),
):
    progress = service.get_course_progress(user.id, course_id)
    if progress is None:
        raise NotFound("no progress for this course")
    return progress


@router.post("/courses/{course_id}/recalculate", response_model=CourseProgress)
def recalculate_course(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service),
):
    return service.recalculate(user.id, course_id)


@router.post("/courses/{course_id}/modules/{module_id}/complete", response_model=ModuleProgress)
def complete_module(
    course_id: str,
    module_id: str,
    body: MarkCompleteRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service),
):
    # scores and quiz overrides are staff corrections; learners only complete modules without a quiz
    is_staff = user.role in {UserRole.instructor, UserRole.admin}
    score = body.score if body and is_staff else None
    return service.mark_module_complete(user.id, course_id, module_id, score=score, override_quiz=is_staff)


@router.post("/users/{user_id}/courses/{course_id}/recalculate", response_model=CourseProgress)
def recalculate_for_user(
    user_id: str,
    course_id: str,
    _: CurrentUser = Depends(require_roles(UserRole.admin)),
    service: ProgressService = Depends(get_progress_service),
):
    return service.recalculate(user_id, course_id)
