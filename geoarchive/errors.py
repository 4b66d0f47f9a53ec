"""Archive error types.

I/O failures are not wrapped: they surface as the builtin OSError (IOError)
raised by the filesystem call that failed.
"""

from typing import Any


class ArchiveError(Exception):
    """Base class for archive errors."""


class ClosedArchiveError(ArchiveError):
    def __init__(self, path: Any, operation: str = "append", reason: str = "sealed"):
        self.path = path
        self.operation = operation
        self.reason = reason
        super().__init__(f"Cannot {operation} archive {path}: archive is {reason}")


class NotFoundError(ArchiveError):
    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")
