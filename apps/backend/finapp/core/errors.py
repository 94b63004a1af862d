"""Application errors raised by services and translated to HTTP responses in ``finapp.main``."""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    status_code: int = 500

    def __init__(self, message: str, errors: list[Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors


class NotFoundError(AppError):
    status_code = 404


class ValidationError(AppError):
    status_code = 400


class InsufficientBalanceError(ValidationError):
    pass


class ConflictError(AppError):
    status_code = 409
