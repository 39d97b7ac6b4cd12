from typing import Iterable, List, Tuple


class ValidationError(ValueError):
    """Raised when a candidate entity fails validation.

    ``errors`` holds one ``(field, reason)`` pair for every failing field so
    callers can surface all of them at once.
    """

    def __init__(self, errors: Iterable[Tuple[str, str]]) -> None:
        self.errors: List[Tuple[str, str]] = list(errors)
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return "; ".join(f"{field}: {reason}" for field, reason in self.errors)


class NotFoundError(LookupError):
    """Raised when an entity id is absent."""


class InvalidFormatError(ValueError):
    """Raised when a backup envelope does not have the expected shape."""


class UnknownFailure(RuntimeError):
    """Wraps unexpected errors surfaced to the user with a generic message."""
