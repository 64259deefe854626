"""Login command -- capture an authorization code through the browser.

The credential is the only thing written to stdout, so it can be captured
by a script::

    CODE=$(loopauth login --client-id my-cli --scope openid)
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from loopauth.exceptions import LoginTimeoutError, LoopAuthError
from loopauth.output import debug, error, format_response, suggest


def login_command(
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait for the browser callback."
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="Client id of the OAuth2 integration."
    ),
    scope: Optional[str] = typer.Option(
        None, "--scope", help="Scope of the OAuth2 integration."
    ),
    redirect_uri: Optional[str] = typer.Option(
        None, "--redirect-uri", help="Redirect URI of the OAuth2 integration."
    ),
    env: Optional[str] = typer.Option(
        None, "--env", "-e", help="Target environment (stage or prod)."
    ),
    force_login: bool = typer.Option(
        False, "--force-login", help="Log out of the login site before signing in."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the URL without opening a browser."
    ),
) -> None:
    """Sign in through the browser and print the captured credential.

    The environment is taken from ``--env``, then ``LOOPAUTH_ENV``, then
    the ``env`` config key, and defaults to ``prod``. The timeout defaults
    to the ``timeout`` config key (120 seconds).

    Raises:
        typer.Exit: With the failing error's exit code.

    Example::

        loopauth login --env stage --timeout 60
    """
    from loopauth.config import get_cli_env, load_global_config
    from loopauth.environments import resolve_environment
    from loopauth.flow import login

    try:
        config = load_global_config()
        environment = resolve_environment(env, get_cli_env(config))
        debug(f"Environment: {environment.value}")
        credential = asyncio.run(
            login(
                timeout=timeout if timeout is not None else config.timeout,
                client_id=client_id,
                scope=scope,
                redirect_uri=redirect_uri,
                env=environment,
                force_login=force_login,
                open_browser=not no_browser,
            )
        )
    except LoopAuthError as exc:
        error(str(exc))
        if isinstance(exc, LoginTimeoutError):
            suggest("Run 'loopauth login' again and finish signing in before the timeout.")
        raise typer.Exit(code=exc.exit_code) from None

    format_response(credential)
