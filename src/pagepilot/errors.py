"""
PagePilot - Error Taxonomy

Lifecycle, registry and validation errors are raised as exceptions.
Driver-level failures are classified here and end up inside an Outcome.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Tag carried by every failure Outcome."""
    SESSION_NOT_READY = "session_not_ready"
    UNKNOWN_CAPABILITY = "unknown_capability"
    INVALID_ARGUMENTS = "invalid_arguments"
    ELEMENT_NOT_FOUND = "element_not_found"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    DRIVER_FAILURE = "driver_failure"


class PagePilotError(Exception):
    """Base class for all PagePilot errors."""
    kind: ErrorKind = ErrorKind.DRIVER_FAILURE


# ── Session lifecycle ──

class LaunchError(PagePilotError):
    """Browser process could not be started."""


class SessionNotReady(PagePilotError):
    """A page was requested before acquire() or after release()."""
    kind = ErrorKind.SESSION_NOT_READY

    def __init__(self, message: str = "Browser session not started. Acquire the session before invoking capabilities."):
        super().__init__(message)


# ── Registry ──

class UnknownCapability(PagePilotError):
    kind = ErrorKind.UNKNOWN_CAPABILITY

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown capability: {name}")


class DuplicateCapability(PagePilotError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Capability already registered: {name}")


class RegistryFrozen(PagePilotError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Registry is frozen, cannot register: {name}")


class InvalidArguments(PagePilotError):
    """Invocation arguments failed validation. `field` names the offender."""
    kind = ErrorKind.INVALID_ARGUMENTS

    def __init__(self, field: str | None, message: str):
        self.field = field
        self.message = message
        prefix = f"Invalid argument '{field}': " if field else "Invalid arguments: "
        super().__init__(prefix + message)


# ── Driver-level ──

class ElementNotFound(PagePilotError):
    kind = ErrorKind.ELEMENT_NOT_FOUND


class NavigationTimeout(PagePilotError):
    kind = ErrorKind.NAVIGATION_TIMEOUT


class DriverFailure(PagePilotError):
    kind = ErrorKind.DRIVER_FAILURE


__all__ = [
    "ErrorKind",
    "PagePilotError",
    "LaunchError",
    "SessionNotReady",
    "UnknownCapability",
    "DuplicateCapability",
    "RegistryFrozen",
    "InvalidArguments",
    "ElementNotFound",
    "NavigationTimeout",
    "DriverFailure",
]
