"""Exception hierarchy for loopauth.

All exceptions inherit from :class:`LoopAuthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`loopauth.exit_codes`.
The top-level error handler in :func:`loopauth.app.main` catches
``LoopAuthError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    LoopAuthError (exit 1)
    +-- ConfigurationError        (exit 2)
    +-- CorrelationMismatchError  (exit 3)
    +-- MalformedCredentialError  (exit 3)
    +-- LoginTimeoutError         (exit 4)
    +-- NetworkBindError          (exit 6)
    +-- LoginCancelledError       (exit 130)
"""

from __future__ import annotations

from typing import Optional

from loopauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_TIMEOUT,
)


class LoopAuthError(Exception):
    """Base exception for all loopauth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`loopauth.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(LoopAuthError):
    """Raised for an unknown environment or an unreadable config file."""

    exit_code = EXIT_INVALID_USAGE


class CorrelationMismatchError(LoopAuthError):
    """Raised when a callback is missing its code or its ``state`` id does not match the session.

    The received ``code`` value (or ``None``) is kept on :attr:`code` and
    echoed in the message so a failed login can be diagnosed.

    Args:
        code: The ``code`` value the callback carried, if any.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, code: Optional[str]):
        super().__init__(f"error code={code}")
        self.code = code


class MalformedCredentialError(LoopAuthError):
    """Raised when an ``access_token`` payload is not a JSON object."""

    exit_code = EXIT_AUTH_FAILURE


class LoginTimeoutError(LoopAuthError, TimeoutError):
    """Raised when no qualifying callback arrives within the login window."""

    exit_code = EXIT_TIMEOUT


class NetworkBindError(LoopAuthError):
    """Raised when the loopback listener fails to bind or is used before it listens."""

    exit_code = EXIT_CONNECTION_ERROR


class LoginCancelledError(LoopAuthError):
    """Raised when a login is aborted through its cancel event."""

    exit_code = EXIT_CANCELLED
