"""Request validation errors surfaced to the requesting client."""

from __future__ import annotations


class ValidationError(ValueError):
    """A rejected client request. Never mutates room state."""


class BadRequestError(ValidationError):
    pass


class NotFoundError(ValidationError):
    pass


class FullError(ValidationError):
    pass


class UnauthorizedError(ValidationError):
    pass


class InvalidActionError(ValidationError):
    pass


class MissingItemError(ValidationError):
    pass


class AlreadyCompletedError(ValidationError):
    pass


class GameOverError(ValidationError):
    pass
