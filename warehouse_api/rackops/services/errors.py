from __future__ import annotations

from typing import Optional


class ProcessError(Exception):
    """
    Base error for a rejected process step.

    Carries the operator-facing alert (title plus optional description). The API
    layer renders it into the standard error envelope using status_code and
    error_type.
    """

    status_code = 400
    error_type = "process_error"

    def __init__(self, title: str, description: Optional[str] = None) -> None:
        super().__init__(title if description is None else f"{title}: {description}")
        self.title = title
        self.description = description


class InputError(ProcessError):
    """A required field is missing or malformed; raised before any store call."""
    error_type = "input_error"


class VerificationError(ProcessError):
    """Label, location, part, quantity or stock check failed."""
    status_code = 422
    error_type = "verification_error"


class NotFoundError(ProcessError):
    status_code = 404
    error_type = "not_found"


class ConflictError(ProcessError):
    """Stock changed between the scan and the commit."""
    status_code = 409
    error_type = "conflict"


class StoreError(ProcessError):
    """The database rejected or failed a read or write; nothing was committed."""
    status_code = 503
    error_type = "store_error"
