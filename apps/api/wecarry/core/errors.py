"""Domain error taxonomy shared by services and routers."""

from __future__ import annotations


class WeCarryError(Exception):
    """Base exception for domain errors."""

    pass


class ValidationError(WeCarryError):
    """
    One or more fields failed validation.

    Errors are kept per field so the API can return a structured list.
    """

    def __init__(self, errors: dict[str, list[str]] | None = None):
        self.errors: dict[str, list[str]] = {}
        for field, messages in (errors or {}).items():
            for message in messages:
                self.add(field, message)
        super().__init__(self._summary())

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)
        self.args = (self._summary(),)

    def get(self, field: str) -> list[str]:
        return self.errors.get(field, [])

    def has_any(self) -> bool:
        return bool(self.errors)

    def _summary(self) -> str:
        parts = [f"{field}: {'; '.join(msgs)}" for field, msgs in self.errors.items()]
        return ", ".join(parts) or "validation failed"


class AuthorizationError(WeCarryError):
    """
    Caller is not allowed to perform the action.

    The message is logged but never sent to the client.
    """

    def __init__(self, message: str = "not authorized"):
        super().__init__(message)


class NotFoundError(WeCarryError):
    """Requested entity does not exist (or is not visible to the caller)."""

    def __init__(self, resource: str, identifier: object | None = None):
        self.resource = resource
        self.identifier = identifier
        if identifier is None:
            super().__init__(f"{resource} not found")
        else:
            super().__init__(f"{resource} {identifier} not found")
