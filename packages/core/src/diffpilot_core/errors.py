"""Error taxonomy.

Every error carries a stable ``code`` so hosts can map failures to a
user-facing message without matching on exception text.
"""

from __future__ import annotations


class DiffPilotError(Exception):
    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


class ValidationError(DiffPilotError):
    """Malformed input: a path, a branch name, or a presentation message."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field


class FileSystemError(DiffPilotError):
    def __init__(self, message: str, path: str | None = None):
        super().__init__(message, "FILE_SYSTEM_ERROR")
        self.path = path


class SourceControlError(DiffPilotError):
    """No repository or branch could be resolved, or a git command failed."""

    def __init__(self, message: str, operation: str):
        super().__init__(message, "SOURCE_CONTROL_ERROR")
        self.operation = operation


class ReviewOperationError(DiffPilotError):
    def __init__(self, message: str, operation: str):
        super().__init__(message, "REVIEW_OPERATION_ERROR")
        self.operation = operation


class ConfigurationError(DiffPilotError):
    def __init__(self, message: str, setting: str | None = None):
        super().__init__(message, "CONFIGURATION_ERROR")
        self.setting = setting


USER_FRIENDLY_MESSAGES: dict[str, str] = {
    "SOURCE_CONTROL_ERROR": "Git operation failed. Please ensure you have a valid Git repository.",
    "FILE_SYSTEM_ERROR": "File operation failed. Please check file permissions.",
    "VALIDATION_ERROR": "Invalid input provided. Please check your input and try again.",
    "REVIEW_OPERATION_ERROR": "Review operation failed. Please try again.",
    "CONFIGURATION_ERROR": "Invalid configuration. Please check your settings.",
}


def user_friendly_message(error: object) -> str:
    if isinstance(error, DiffPilotError):
        return USER_FRIENDLY_MESSAGES.get(error.code, str(error))
    if isinstance(error, Exception):
        return str(error)
    return "An unexpected error occurred. Run with --verbose for details."
