# practica/errors.py
from __future__ import annotations


class PracticaError(Exception):
    """Base class for every error raised by the request workflow."""


class ValidationError(PracticaError):
    """Local, user-correctable problem. Never reaches the network."""

    def __init__(self, messages: list[str], title: str = 'Errores de validación') -> None:
        self.messages = messages
        self.title = title
        super().__init__('\n'.join(messages))


class DecodeError(PracticaError, ValueError):
    """A backend row could not be turned into a typed record."""


class ReferenceLoadError(PracticaError):
    """A reference catalog failed to load; the affected select degrades to empty."""

    def __init__(self, catalog: str, message: str) -> None:
        self.catalog = catalog
        super().__init__(f"{catalog}: {message}")


class RequestCreationError(PracticaError):
    """The create call failed. The draft is kept so the user can resubmit."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class PdfUploadError(PracticaError):
    """The request exists but its document did not attach."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class StaleResponseError(PracticaError):
    """A fetch finished after the selection that started it was replaced."""
