"""Pydantic models shared across loopauth.

* :class:`AuthSession` -- the in-memory description of one login attempt.
  Created by :func:`~loopauth.flow.login`, never persisted.
* :class:`GlobalConfig` -- user configuration stored as JSON in the
  config directory by :mod:`loopauth.config`.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from loopauth.environments import DEFAULT_ENVIRONMENT, Environment

DEFAULT_TIMEOUT_SECONDS = 120


class AuthSession(BaseModel):
    """One interactive login attempt.

    The ``id`` travels to the login site in the authorization URL and must
    come back inside the callback's ``state`` for the login to succeed.
    """

    id: str = Field(min_length=1)
    timeout: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS, gt=0, description="Seconds to wait for the callback"
    )
    client_id: Optional[str] = None
    scope: Optional[str] = None
    redirect_uri: Optional[str] = None
    environment: Environment = DEFAULT_ENVIRONMENT
    force_login: bool = False

    def auth_params(self, port: int) -> dict[str, Any]:
        """Query parameters for the authorization URL, in wire order."""
        return {
            "id": self.id,
            "port": port,
            "client_id": self.client_id,
            "scope": self.scope,
            "redirect_uri": self.redirect_uri,
        }


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/loopauth/config.json``.

    Loaded and saved by :func:`~loopauth.config.load_global_config` and
    :func:`~loopauth.config.save_global_config`. The ``LOOPAUTH_ENV``
    environment variable takes precedence over :attr:`env`.
    """

    env: Optional[Environment] = Field(
        default=None, description="Environment used when --env is not given"
    )
    timeout: int = Field(
        default=DEFAULT_TIMEOUT_SECONDS, gt=0, description="Default login timeout in seconds"
    )
