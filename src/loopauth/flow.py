"""Interactive browser login -- the one public entry point of loopauth.

:func:`login` runs a single authorization-code capture:

1. Generates a session id and starts a :class:`~loopauth.server.CallbackServer`
   on a free loopback port.
2. Builds the authorization URL for the resolved environment, carrying the
   session id and the server's port.
3. Shows the URL and opens it in the user's browser.
4. Waits for the first GET or completed POST callback, racing the timeout
   (and an optional cancel event).
5. Closes the server and returns the credential, or raises the reason the
   login failed.

Example::

    import asyncio
    from loopauth.flow import login

    code = asyncio.run(login(client_id="my-cli", scope="openid"))
"""

from __future__ import annotations

import asyncio
import logging
import threading
import webbrowser
from typing import Any, Optional

from pydantic import ValidationError

from loopauth.environments import EnvironmentLike, auth_site_url, resolve_environment
from loopauth.exceptions import ConfigurationError, LoginCancelledError, LoginTimeoutError
from loopauth.handlers import CallbackHandler, Completion
from loopauth.helpers import random_id
from loopauth.models import DEFAULT_TIMEOUT_SECONDS, AuthSession
from loopauth.output import get_output
from loopauth.server import create_server

logger = logging.getLogger(__name__)

Credential = Any  # str for auth_code grants, dict for access_token grants


def _open_browser(uri: str) -> None:
    """Open *uri* in the default browser without blocking the event loop."""
    browser_thread = threading.Thread(target=webbrowser.open, args=(uri,), daemon=True)
    browser_thread.start()


async def _await_outcome(
    completion: Completion,
    timeout: float,
    cancel: Optional[asyncio.Event],
) -> Credential:
    """Wait for *completion*, rejecting it on timeout or cancellation first."""
    waiter = asyncio.ensure_future(completion.wait())
    pending = {waiter}
    canceller = None
    if cancel is not None:
        canceller = asyncio.ensure_future(cancel.wait())
        pending.add(canceller)

    try:
        done, _ = await asyncio.wait(
            pending, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        for task in pending:
            if not task.done():
                task.cancel()

    if waiter in done:
        return waiter.result()

    # A callback settling in this same tick still wins: reject is a no-op then.
    if canceller is not None and canceller in done:
        completion.reject(LoginCancelledError("Login cancelled."))
    else:
        completion.reject(LoginTimeoutError(f"Timed out after {timeout:g} seconds."))
    return await completion.wait()


async def login(
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    client_id: Optional[str] = None,
    scope: Optional[str] = None,
    redirect_uri: Optional[str] = None,
    env: Optional[EnvironmentLike] = None,
    force_login: bool = False,
    open_browser: bool = True,
    cancel: Optional[asyncio.Event] = None,
) -> Credential:
    """Get an authorization code or access token for a signed-in user.

    Args:
        timeout: Seconds to wait for the callback.
        client_id: Client id of the OAuth2 integration.
        scope: Scope of the OAuth2 integration.
        redirect_uri: Redirect URI of the OAuth2 integration.
        env: Target environment; ``prod`` when omitted. The CLI passes the
            result of :func:`~loopauth.environments.resolve_environment`
            over its flag and configuration.
        force_login: Log out of the login site first.
        open_browser: Open the URL in the default browser. When ``False``
            the URL is only displayed.
        cancel: Setting this event aborts the login.

    Returns:
        The authorization code string, or the decoded token dict for an
        ``access_token`` callback.

    Raises:
        ConfigurationError: Unknown environment or invalid timeout.
        NetworkBindError: The callback server could not listen.
        CorrelationMismatchError: The callback had no code or a foreign
            session id.
        MalformedCredentialError: The token payload was not a JSON object.
        LoginTimeoutError: No callback arrived within ``timeout`` seconds.
        LoginCancelledError: ``cancel`` was set first.
    """
    try:
        session = AuthSession(
            id=random_id(),
            timeout=timeout,
            client_id=client_id,
            scope=scope,
            redirect_uri=redirect_uri,
            environment=resolve_environment(env),
            force_login=force_login,
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid login options: {exc}") from exc

    out = get_output()
    completion = Completion()
    handler = CallbackHandler(session.id, completion, session.environment)
    server = await create_server(handler)
    try:
        logger.debug("Local server created on port %s", server.port)
        uri = auth_site_url(
            session.auth_params(server.port), session.environment, session.force_login
        )

        out.info("Visit this url to log in:")
        out.url(uri)
        if open_browser:
            _open_browser(uri)
        out.progress("Logging in...")

        credential = await _await_outcome(completion, session.timeout, cancel)
    finally:
        await server.close()

    out.info(f"Got {handler.code_type or 'code'}")
    return credential


def login_sync(**kwargs: Any) -> Credential:
    """Blocking wrapper around :func:`login` for non-async callers."""
    return asyncio.run(login(**kwargs))
