from __future__ import annotations


class InvalidToken(LookupError):
    """No room carries the scanned minibar token."""


class InvalidInput(ValueError):
    pass


class ConfigurationError(RuntimeError):
    """PMS credentials or endpoints are missing; nothing was sent."""


class PMSRequestError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
