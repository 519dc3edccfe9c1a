# src/tasklite/errors.py

"""
Error taxonomy.

- ValidationError: bad user input (empty name, nothing selected); shown inline.
- AuthRequiredError: operation attempted before a principal is established.
- RemoteOperationError: backend/network/permission failure; always recoverable.
- ConfigurationError: missing injected backend config; fatal at startup.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all tasklite errors."""


class ValidationError(TrackerError):
    pass


class AuthRequiredError(TrackerError):
    def __init__(self, message: str = "Not signed in yet; try again in a moment.") -> None:
        super().__init__(message)


class RemoteOperationError(TrackerError):
    pass


class ConfigurationError(TrackerError):
    pass
