"""Exceptions raised by the resolution core.

Nothing here is fatal to a batch run: "no match" is never an exception,
malformed input only skips the steps that need it, and transient store
failures are retried by the batch runner.
"""

from typing import Optional


class ResolutionError(Exception):
    """Base exception for resolution errors.

    Attributes:
        component: Name of the component that raised the error
        message: Error description
    """

    def __init__(self, component: str, message: str):
        self.component = component
        self.message = message
        super().__init__(f"[{component}] {message}")


class MalformedInputError(ResolutionError):
    """Raised for missing/invalid coordinates or unparseable geometry."""

    def __init__(self, component: str, message: str, item_id: Optional[object] = None):
        self.item_id = item_id
        if item_id is not None:
            message = f"{message} (id={item_id})"
        super().__init__(component, message)


class TransientStoreError(ResolutionError):
    """Raised when persisting a resolved batch fails and may succeed on retry."""

    def __init__(self, message: str, store: str = "store"):
        super().__init__(store, message)


class OverpassError(ResolutionError):
    """Raised when every configured Overpass server failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        if status_code:
            message += f" (HTTP {status_code})"
        super().__init__("overpass", message)
