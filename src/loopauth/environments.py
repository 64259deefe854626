"""Deployment environments, their endpoints, and authorization URL building.

Every login targets one :class:`Environment`. The environment picks the
login site the browser is sent to and the single origin the callback server
trusts for cross-origin calls. Resolution follows a fixed precedence chain
(see :func:`resolve_environment`); the configured value is read once at the
CLI boundary and passed in explicitly rather than looked up here.
"""

from __future__ import annotations

import enum
import logging
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union
from urllib.parse import quote, urlsplit

from pydantic import BaseModel, ConfigDict

from loopauth.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Characters encodeURIComponent leaves alone, beyond the ones quote() keeps.
_URI_COMPONENT_SAFE = "!~*'()"


class Environment(str, enum.Enum):
    """Known deployment environments."""

    STAGE = "stage"
    PROD = "prod"


DEFAULT_ENVIRONMENT = Environment.PROD


class EndpointSet(BaseModel):
    """Login and logout endpoints for one environment.

    ``logout_url`` is a prefix: the percent-encoded authorization URL is
    appended to it to log out first and then land on the login page.
    """

    model_config = ConfigDict(frozen=True)

    auth_url: str
    logout_url: str


ENDPOINTS: Mapping[Environment, EndpointSet] = MappingProxyType(
    {
        Environment.STAGE: EndpointSet(
            auth_url="https://aio-login.stg.adobeioruntime.net/api/v1/web/default/applogin",
            logout_url="https://aio-login.stg.adobeioruntime.net/api/v1/web/default/applogout?redirect_uri=",
        ),
        Environment.PROD: EndpointSet(
            auth_url="https://aio-login.adobeioruntime.net/api/v1/web/default/applogin",
            logout_url="https://aio-login.adobeioruntime.net/api/v1/web/default/applogout?redirect_uri=",
        ),
    }
)

EnvironmentLike = Union[Environment, str]


def _coerce(value: EnvironmentLike) -> Environment:
    if isinstance(value, Environment):
        return value
    try:
        return Environment(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(e.value for e in Environment)
        raise ConfigurationError(
            f"Unknown environment '{value}': must be one of {valid}"
        ) from None


def resolve_environment(
    explicit: Optional[EnvironmentLike] = None,
    configured: Optional[EnvironmentLike] = None,
) -> Environment:
    """Resolve the environment for one login.

    Precedence (high to low):
        1. ``explicit`` -- passed by the caller (``--env`` flag)
        2. ``configured`` -- the CLI's configured environment
        3. :data:`DEFAULT_ENVIRONMENT` (``prod``)

    Args:
        explicit: Environment requested for this call.
        configured: Environment from user configuration, if any.

    Returns:
        The resolved :class:`Environment`.

    Raises:
        ConfigurationError: If the winning value is not a known environment.
    """
    if explicit is not None:
        return _coerce(explicit)
    if configured is not None:
        return _coerce(configured)
    return DEFAULT_ENVIRONMENT


def get_endpoints(env: Optional[EnvironmentLike] = None) -> EndpointSet:
    """Return the :class:`EndpointSet` for *env* (``prod`` when omitted)."""
    return ENDPOINTS[resolve_environment(env)]


def origin_of(url: str) -> str:
    """Return the ``scheme://host[:port]`` origin of *url*."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc.rsplit('@', 1)[-1]}"


def encode_uri_component(value: str) -> str:
    """Percent-encode *value* the way browsers' ``encodeURIComponent`` does."""
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_auth_url(base_url: str, params: Mapping[str, Any]) -> str:
    """Append *params* to *base_url* as a query string.

    Parameters whose value is ``None`` are dropped entirely; the rest keep
    their insertion order so the result is reproducible.

    Example::

        build_auth_url("https://x/login", {"a": "b", "c": "d", "e": None})
        # 'https://x/login?a=b&c=d'
    """
    query = "&".join(
        f"{encode_uri_component(str(key))}={encode_uri_component(str(value))}"
        for key, value in params.items()
        if value is not None
    )
    if not query:
        return base_url
    return f"{base_url}?{query}"


def build_logout_url(logout_base: str, auth_url: str) -> str:
    """Return a URL that logs the user out, then redirects to *auth_url*."""
    return f"{logout_base}{encode_uri_component(auth_url)}"


def auth_site_url(
    params: Mapping[str, Any],
    env: Optional[EnvironmentLike] = None,
    force_login: bool = False,
) -> str:
    """Build the URL the user's browser is sent to.

    Args:
        params: Query parameters for the login site (``None`` values omitted).
        env: Target environment; ``prod`` when omitted.
        force_login: Wrap the login URL in the environment's logout URL so
            an existing browser session is dropped first.

    Returns:
        The authorization URL, or the logout-then-login URL.
    """
    endpoints = get_endpoints(env)
    url = build_auth_url(endpoints.auth_url, params)
    if force_login:
        url = build_logout_url(endpoints.logout_url, url)
    logger.debug("Authorization URL: %s", url)
    return url
