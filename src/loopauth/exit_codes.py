"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~loopauth.exceptions.LoopAuthError` subclass.
Shell wrappers can inspect the exit code to tell a timed-out login from a
rejected one without parsing stderr.

Example::

    $ loopauth login --timeout 5
    $ echo $?
    4   # EXIT_TIMEOUT -- no callback arrived in time
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments or configuration (e.g. an unknown environment)."""

EXIT_AUTH_FAILURE = 3
"""The callback arrived but did not carry a usable credential."""

EXIT_TIMEOUT = 4
"""No qualifying callback arrived within the login window."""

EXIT_CONNECTION_ERROR = 6
"""The local callback listener could not be bound."""

EXIT_CANCELLED = 130
"""The login was cancelled (Ctrl-C or an explicit abort)."""
