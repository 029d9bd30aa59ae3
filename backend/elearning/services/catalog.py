from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from elearning.core.config import settings
from elearning.core.errors import NotFound
from elearning.schemas.common import as_list
from elearning.schemas.quiz import QuizDefinition
from elearning.store.base import DocumentStore, join_path


class CourseCatalog:
    """Read-only view over course definitions kept by the authoring side."""

    def __init__(self, store: DocumentStore, path: str | None = None):
        self.store = store
        self.path = path or settings.catalog_path

    def _modules(self, course_id: str) -> list[tuple[str, Any]]:
        course = self.store.get(join_path(self.path, course_id))
        if not isinstance(course, Mapping):
            raise NotFound(f"course {course_id} not found")

        raw = course.get("modules")
        if isinstance(raw, Mapping) and raw and all(str(key).isdigit() for key in raw):
            # a list that came back from the store as index keys
            raw = as_list(raw)
        if isinstance(raw, Mapping):
            return [(str(key), value) for key, value in raw.items()]
        if isinstance(raw, list):
            items: list[tuple[str, Any]] = []
            for idx, value in enumerate(raw):
                if value is None:
                    continue
                mid = value.get("id") if isinstance(value, Mapping) else None
                items.append((str(mid if mid is not None else idx), value))
            return items
        return []

    def module_ids(self, course_id: str) -> list[str]:
        return [mid for mid, _ in self._modules(course_id)]

    def has_quiz(self, course_id: str, module_id: str) -> bool:
        """True when the module declares a quiz, valid or not. Unknown courses have none."""
        try:
            module = dict(self._modules(course_id)).get(str(module_id))
        except NotFound:
            return False
        return isinstance(module, Mapping) and bool(module.get("quiz"))

    def get_quiz(self, course_id: str, module_id: str) -> QuizDefinition:
        module = dict(self._modules(course_id)).get(str(module_id))
        if not isinstance(module, Mapping):
            raise NotFound(f"module {module_id} not found in course {course_id}")

        quiz = module.get("quiz")
        if not quiz:
            raise NotFound(f"module {module_id} has no quiz")
        try:
            return QuizDefinition.model_validate(quiz)
        except ValidationError as e:
            raise NotFound(f"module {module_id} has no valid quiz") from e
