from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from elearning.core.config import settings
from elearning.core.errors import Conflict, NotFound
from elearning.schemas.progress import CourseProgress, ModuleProgress, OverallProgress
from elearning.schemas.quiz import AttemptResult, QuizDefinition
from elearning.services.catalog import CourseCatalog
from elearning.services.scoring import percentage, round_half_up, score_attempt, utc_now_iso
from elearning.store.base import DocumentStore, join_path


log = logging.getLogger(__name__)

# Course-level keys that share the progression node with the per-module records.
COURSE_SUMMARY_KEYS = frozenset(
    {"courseId", "userId", "startDate", "progress", "completed", "averageScore", "passed", "lastUpdated"}
)


def progression_path(namespace: str, user_id: str, *parts: str) -> str:
    return join_path(namespace, "Progression", user_id, *parts)


def evaluation_path(namespace: str, module_id: str, user_id: str) -> str:
    return join_path(namespace, "Evaluations", module_id, user_id)


def _parse_modules(record: Mapping[str, Any]) -> dict[str, ModuleProgress]:
    modules: dict[str, ModuleProgress] = {}
    for key, value in record.items():
        if key in COURSE_SUMMARY_KEYS or not isinstance(value, Mapping):
            continue
        try:
            modules[str(key)] = ModuleProgress.model_validate({**value, "moduleId": str(key)})
        except ValidationError:
            log.warning("progress: skipping unreadable module record module_id=%s", key)
    return modules


def _course_from_record(user_id: str, course_id: str, record: Mapping[str, Any]) -> CourseProgress:
    modules = _parse_modules(record)
    return CourseProgress(
        course_id=course_id,
        user_id=user_id,
        progress=record.get("progress") or 0,
        completed=record.get("completed") or False,
        average_score=record.get("averageScore") or 0,
        passed=record.get("passed") or False,
        start_date=record.get("startDate"),
        last_updated=record.get("lastUpdated"),
        total_modules=len(modules),
        completed_modules=sum(1 for m in modules.values() if m.completed),
        modules=modules,
    )


class ProgressService:
    """Evaluation recording plus module, course and overall progress for one store.

    Course and overall progress are always derived from the module records, so they
    can be recomputed at any time. Every write path that changes a module record
    recalculates its course before returning.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        catalog: CourseCatalog | None = None,
        pass_threshold: int | None = None,
        namespace: str | None = None,
    ):
        self.store = store
        self.catalog = catalog or CourseCatalog(store)
        self.pass_threshold = int(settings.pass_threshold if pass_threshold is None else pass_threshold)
        self.namespace = namespace or settings.store_namespace

    # Evaluations

    def get_attempt(self, user_id: str, module_id: str) -> AttemptResult | None:
        raw = self.store.get(evaluation_path(self.namespace, module_id, user_id))
        if not isinstance(raw, Mapping):
            return None
        try:
            return AttemptResult.model_validate(raw)
        except ValidationError:
            log.warning("progress: unreadable attempt record user_id=%s module_id=%s", user_id, module_id)
            return None

    def evaluate(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        quiz: QuizDefinition,
        answers: Mapping[int, int],
    ) -> AttemptResult:
        previous = self.get_attempt(user_id, module_id)
        result = score_attempt(
            quiz,
            answers,
            previous_best=previous.best_score if previous else 0,
            pass_threshold=self.pass_threshold,
        )
        return result.model_copy(update={"user_id": user_id, "course_id": course_id, "module_id": module_id})

    def record_attempt(self, user_id: str, course_id: str, module_id: str, result: AttemptResult) -> AttemptResult:
        """Store ``result`` as the latest, unconfirmed attempt. Overwrites any previous one."""
        previous = self.get_attempt(user_id, module_id)
        best = max(result.best_score, result.score, previous.best_score if previous else 0)
        stored = result.model_copy(
            update={
                "user_id": user_id,
                "course_id": course_id,
                "module_id": module_id,
                "best_score": best,
                "confirmed": False,
            }
        )
        self.store.set(evaluation_path(self.namespace, module_id, user_id), stored.to_record())
        return stored

    def confirm_attempt(self, user_id: str, course_id: str, module_id: str) -> ModuleProgress:
        """Accept the latest attempt; completes the module when its best score passes.

        Calling it again after a failure retries the remaining writes.
        """
        attempt = self.get_attempt(user_id, module_id)
        if attempt is None:
            raise NotFound(f"no attempt for module {module_id}")

        with self.store.transaction():
            if not attempt.confirmed:
                self.store.update(evaluation_path(self.namespace, module_id, user_id), {"confirmed": True})
            if attempt.best_score >= self.pass_threshold:
                existing = self.get_module_progress(user_id, course_id, module_id)
                self._write_module(user_id, course_id, module_id, score=max(existing.score, attempt.best_score))
                self.recalculate(user_id, course_id)

        return self.get_module_progress(user_id, course_id, module_id)

    # Module progress

    def get_module_progress(self, user_id: str, course_id: str, module_id: str) -> ModuleProgress:
        raw = self.store.get(progression_path(self.namespace, user_id, course_id, module_id))
        if isinstance(raw, Mapping):
            try:
                return ModuleProgress.model_validate({**raw, "moduleId": module_id})
            except ValidationError:
                log.warning("progress: unreadable module record user_id=%s module_id=%s", user_id, module_id)
        return ModuleProgress(module_id=module_id)

    def mark_module_complete(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        score: int | None = None,
        *,
        override_quiz: bool = False,
    ) -> ModuleProgress:
        """Complete a module without an evaluation.

        Modules with a quiz are only completed through ``confirm_attempt`` unless
        ``override_quiz`` is set (staff corrections).
        """
        if not override_quiz and self.catalog.has_quiz(course_id, module_id):
            raise Conflict(f"module {module_id} is completed by passing its quiz")

        with self.store.transaction():
            existing = self.get_module_progress(user_id, course_id, module_id)
            self._write_module(user_id, course_id, module_id, score=max(existing.score, int(score or 0)))
            self.recalculate(user_id, course_id)
        return self.get_module_progress(user_id, course_id, module_id)

    def _write_module(self, user_id: str, course_id: str, module_id: str, *, score: int) -> None:
        record = ModuleProgress(completed=True, score=score, last_updated=utc_now_iso())
        self.store.update(
            progression_path(self.namespace, user_id, course_id, module_id),
            record.to_record(exclude={"module_id"}),
        )

    # Course progress

    def initialize_course_progress(self, user_id: str, course_id: str) -> CourseProgress:
        """Create the progression node at enrollment. Existing module state is kept."""
        module_ids = self.catalog.module_ids(course_id)
        path = progression_path(self.namespace, user_id, course_id)
        raw = self.store.get(path)
        existing = raw if isinstance(raw, Mapping) else {}

        now = utc_now_iso()
        values: dict[str, Any] = {}
        if not existing.get("startDate"):
            values.update({"courseId": course_id, "userId": user_id, "startDate": now})
        for module_id in module_ids:
            if not isinstance(existing.get(module_id), Mapping):
                values[module_id] = ModuleProgress(completed=False, score=0, last_updated=now).to_record(
                    exclude={"module_id"}
                )

        with self.store.transaction():
            if values:
                self.store.update(path, values)
            return self.recalculate(user_id, course_id)

    def recalculate(self, user_id: str, course_id: str) -> CourseProgress:
        path = progression_path(self.namespace, user_id, course_id)
        raw = self.store.get(path)
        record = raw if isinstance(raw, Mapping) else {}
        modules = _parse_modules(record)

        try:
            module_ids = self.catalog.module_ids(course_id)
        except NotFound:
            log.warning("progress: course definition missing, counting recorded modules course_id=%s", course_id)
            module_ids = list(modules)

        total = len(module_ids)
        done = 0
        score_sum = 0
        for module_id in module_ids:
            module = modules.get(module_id)
            if module is not None and module.completed:
                done += 1
                score_sum += module.score

        progress = percentage(done, total)
        completed = total > 0 and done == total
        average_score = round_half_up(score_sum, done) if done else 0
        passed = completed and average_score >= self.pass_threshold

        summary = {
            "progress": progress,
            "completed": completed,
            "averageScore": average_score,
            "passed": passed,
        }
        # lastUpdated only moves when the derived values do, so repeated calls agree.
        last_updated = record.get("lastUpdated")
        if not last_updated or any(record.get(key) != value for key, value in summary.items()):
            last_updated = utc_now_iso()

        self.store.update(path, {**summary, "lastUpdated": last_updated})
        log.info(
            "progress: recalculated user_id=%s course_id=%s modules=%s/%s progress=%s average_score=%s",
            user_id,
            course_id,
            done,
            total,
            progress,
            average_score,
        )
        return CourseProgress(
            course_id=course_id,
            user_id=user_id,
            progress=progress,
            completed=completed,
            average_score=average_score,
            passed=passed,
            start_date=record.get("startDate"),
            last_updated=last_updated,
            total_modules=total,
            completed_modules=done,
            modules=modules,
        )

    def get_course_progress(self, user_id: str, course_id: str) -> CourseProgress | None:
        raw = self.store.get(progression_path(self.namespace, user_id, course_id))
        if not isinstance(raw, Mapping):
            return None
        try:
            return _course_from_record(user_id, course_id, raw)
        except ValidationError:
            log.warning("progress: unreadable course summary, recalculating user_id=%s course_id=%s", user_id, course_id)
            return self.recalculate(user_id, course_id)

    def list_course_ids(self, user_id: str) -> list[str]:
        raw = self.store.get(progression_path(self.namespace, user_id))
        if not isinstance(raw, Mapping):
            return []
        return [str(key) for key in raw]

    def list_user_ids(self) -> list[str]:
        raw = self.store.get(join_path(self.namespace, "Progression"))
        if not isinstance(raw, Mapping):
            return []
        return [str(key) for key in raw]

    # Overall progress

    def summarize(self, user_id: str) -> OverallProgress:
        """Fold every course record of the user. Unreadable course records are skipped."""
        raw = self.store.get(progression_path(self.namespace, user_id))
        if not isinstance(raw, Mapping):
            return OverallProgress()

        courses: list[CourseProgress] = []
        for course_id, record in raw.items():
            if not isinstance(record, Mapping):
                log.warning("progress: skipping malformed course record user_id=%s course_id=%s", user_id, course_id)
                continue
            try:
                courses.append(_course_from_record(user_id, str(course_id), record))
            except ValidationError:
                log.warning("progress: skipping unreadable course record user_id=%s course_id=%s", user_id, course_id)

        if not courses:
            return OverallProgress()

        return OverallProgress(
            enrolled_courses=len(courses),
            completed_courses=sum(1 for c in courses if c.completed),
            overall_progress=round_half_up(sum(c.progress for c in courses), len(courses)),
        )
