from __future__ import annotations

from fastapi import APIRouter, Depends

from elearning.core.errors import NotFound
from elearning.core.rate_limit import rate_limit
from elearning.core.security import CurrentUser, get_current_user
from elearning.schemas.progress import ModuleProgress
from elearning.schemas.quiz import AttemptResult, SubmitAnswersRequest
from elearning.services.progress import ProgressService
from elearning.services.providers import get_progress_service

router = APIRouter(prefix="/courses/{course_id}/modules/{module_id}/evaluation", tags=["evaluations"])


@router.get("", response_model=AttemptResult)
def latest_attempt(
    course_id: str,
    module_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service),
):
    attempt = service.get_attempt(user.id, module_id)
    if attempt is None:
        raise NotFound("no attempt for this module")
    return attempt


@router.post("/submit", response_model=AttemptResult)
def submit_evaluation(
    course_id: str,
    module_id: str,
    body: SubmitAnswersRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service),
    _: object = rate_limit(key_prefix="evaluation_submit"),
):
    quiz = service.catalog.get_quiz(course_id, module_id)
    result = service.evaluate(user.id, course_id, module_id, quiz, body.answers)
    # Stored unconfirmed: the learner sees the result first, then confirms it.
    return service.record_attempt(user.id, course_id, module_id, result)


@router.post("/confirm", response_model=ModuleProgress)
def confirm_evaluation(
    course_id: str,
    module_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service),
):
    return service.confirm_attempt(user.id, course_id, module_id)
