"""Error taxonomy shared by the scheduler and its collaborators."""

from __future__ import annotations

from typing import Optional


class MoneyballError(Exception):
    """Base class for all Moneyball errors."""


class SubjectNotFound(MoneyballError):
    """A manual trigger or task referenced an entity that does not exist."""

    def __init__(self, subject_id: str, entity: str = "Player"):
        self.subject_id = subject_id
        self.entity = entity
        super().__init__(f"{entity} not found: {subject_id}")


class TransientFetchError(MoneyballError):
    """An outbound request failed; the task is eligible for retry."""

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(message)


# Name used by the collaborator contracts
FetchError = TransientFetchError


class ParseError(MoneyballError):
    """A fetched page did not have the structure the parser expects."""


class PermanentFailure(MoneyballError):
    """A task exhausted its retries and was dropped."""

    def __init__(self, task_description: str, retries: int, last_error: Optional[BaseException] = None):
        self.task_description = task_description
        self.retries = retries
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"{task_description} dropped after {retries} retries{detail}")


class ConfigurationError(MoneyballError):
    """The scheduler was used in a way its configuration does not allow."""
