"""scoped_config library exception types."""

from __future__ import annotations


class ScopedConfigError(Exception):
    """Base error for the scoped_config library."""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class ScopedConfigErrorCodes:
    """ScopedConfigError code constants."""

    REPOSITORY_ERROR: str = "REPOSITORY_ERROR"
    VALIDATION_ERROR: str = "VALIDATION_ERROR"
    COERCION_ERROR: str = "COERCION_ERROR"
    SETTINGS_READ_ERROR: str = "SETTINGS_READ_ERROR"
    SETTINGS_PARSE_ERROR: str = "SETTINGS_PARSE_ERROR"
    SETTINGS_VALIDATION_ERROR: str = "SETTINGS_VALIDATION_ERROR"


class ValidationError(ScopedConfigError):
    """Write-path rejection carrying the offending field name."""

    def __init__(self, field: str, message: str, *, code: str | None = None) -> None:
        self.field = field
        self.message = message
        super().__init__(
            code if code is not None else f"INVALID_{field.upper()}",
            message,
        )
