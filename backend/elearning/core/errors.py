from __future__ import annotations


class ProgressError(Exception):
    """Base class for failures reported back to the caller as a single failed read/write."""

    error_code = "progress_error"
    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.error_code)
        self.message = message or self.error_code


class IncompleteSubmission(ProgressError):
    """Some quiz questions have no answer; the submission is rejected before scoring."""

    error_code = "incomplete_submission"
    status_code = 422

    def __init__(self, missing: list[int]):
        self.missing = sorted(missing)
        super().__init__(f"missing answers for questions {self.missing}")


class PersistenceError(ProgressError):
    """The document store failed a read or write. Safe to retry the same action."""

    error_code = "persistence_error"
    status_code = 503


class NotFound(ProgressError):
    error_code = "not_found"
    status_code = 404


class Conflict(ProgressError):
    """The action is not allowed in the record's current state."""

    error_code = "conflict"
    status_code = 409
