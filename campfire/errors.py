"""
Error taxonomy shared by the collection store and the request executor.

Store errors propagate to the caller. Execution errors never leave
HTTPClient.send(): their message becomes HTTPResponse.error.
"""


class CampfireError(Exception):
    pass


# ── Store ─────────────────────────────────────────────────────────────────────

class StoreError(CampfireError):
    pass


class NotFound(StoreError):
    """Unknown collection ID, missing collection file or unknown item ID."""


class ParentNotFound(StoreError):
    """Target parent is missing or is not a folder."""


class InvalidMove(StoreError):
    """An item cannot be moved into itself or one of its descendants."""


class InvalidFormat(StoreError):
    """File content could not be parsed as a collection."""


class StoreIOError(StoreError):
    """Filesystem read or write failure."""


# ── Execution ─────────────────────────────────────────────────────────────────

class ExecutionError(CampfireError):
    """Carries the status line when the response headers had already arrived."""

    def __init__(self, message: str, status: int = 0, status_text: str = ""):
        super().__init__(message)
        self.status = status
        self.status_text = status_text


class RequestValidationError(ExecutionError):
    pass


class InvalidURLError(ExecutionError):
    pass


class TransportError(ExecutionError):
    pass


class ReadError(ExecutionError):
    pass


class RequestCancelled(ReadError):
    def __init__(self, status: int = 0, status_text: str = ""):
        super().__init__("Request cancelled", status, status_text)
