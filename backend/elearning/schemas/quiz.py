from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from elearning.schemas.common import StoreRecord, as_list, as_mapping


class QuizQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    prompt: str = Field(default="", validation_alias=AliasChoices("prompt", "question"))
    options: list[str]
    correct_index: int = Field(
        ge=0,
        validation_alias=AliasChoices("correct_index", "correctIndex", "correctAnswer"),
    )

    coerce_options = field_validator("options", mode="before")(as_list)

    @model_validator(mode="after")
    def check_correct_index(self) -> "QuizQuestion":
        if self.correct_index >= len(self.options):
            raise ValueError("correct_index out of range")
        return self


class QuizDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    questions: list[QuizQuestion] = Field(min_length=1)

    coerce_questions = field_validator("questions", mode="before")(as_list)


class QuestionOutcome(StoreRecord):
    selected: int | None = Field(default=None, validation_alias=AliasChoices("selected", "userAnswer"))
    correct: int = Field(validation_alias=AliasChoices("correct", "correctAnswer"))
    is_correct: bool = Field(validation_alias=AliasChoices("isCorrect", "is_correct"))


class AttemptResult(StoreRecord):
    """Outcome of one scored submission, as stored under ``Evaluations/{moduleId}/{userId}``."""

    user_id: str | None = None
    module_id: str | None = None
    course_id: str | None = None
    score: int = Field(ge=0, le=100)
    best_score: int = Field(ge=0, le=100)
    passed: bool
    per_question: dict[int, QuestionOutcome] = Field(
        default_factory=dict,
        alias="answers",
        validation_alias=AliasChoices("answers", "perQuestion", "per_question"),
    )
    confirmed: bool = False
    timestamp: str = Field(alias="date", validation_alias=AliasChoices("date", "timestamp"))

    coerce_per_question = field_validator("per_question", mode="before")(as_mapping)

    @model_validator(mode="before")
    @classmethod
    def fill_legacy_best_score(cls, data: Any) -> Any:
        # Records written before best-score tracking only carry ``score``.
        if isinstance(data, dict) and data.get("bestScore") is None and data.get("best_score") is None:
            data = {**data, "bestScore": data.get("score", 0)}
        return data


class SubmitAnswersRequest(BaseModel):
    answers: dict[int, int]
