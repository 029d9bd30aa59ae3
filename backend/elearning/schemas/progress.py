from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, Field, field_validator

from elearning.schemas.common import StoreRecord


def round_stored_percentage(value: Any) -> Any:
    # older clients wrote unrounded percentages (33.333...)
    if isinstance(value, float) and math.isfinite(value) and value >= 0:
        return math.floor(value + 0.5)
    return value


class ModuleProgress(StoreRecord):
    module_id: str | None = None
    completed: bool = False
    score: int = Field(default=0, ge=0, le=100)
    last_updated: str | None = None

    round_score = field_validator("score", mode="before")(round_stored_percentage)


class CourseProgress(StoreRecord):
    course_id: str
    user_id: str
    progress: int = Field(default=0, ge=0, le=100)
    completed: bool = False
    average_score: int = Field(default=0, ge=0, le=100)
    passed: bool = False
    start_date: str | None = None
    last_updated: str | None = None
    total_modules: int = 0
    completed_modules: int = 0
    modules: dict[str, ModuleProgress] = Field(default_factory=dict)

    round_percentages = field_validator("progress", "average_score", mode="before")(round_stored_percentage)


class OverallProgress(StoreRecord):
    enrolled_courses: int = 0
    completed_courses: int = 0
    overall_progress: int = 0


class MarkCompleteRequest(BaseModel):
    score: int | None = Field(default=None, ge=0, le=100)
