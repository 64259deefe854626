"""loopauth -- capture an OAuth2 authorization code through the browser.

A command-line tool starts a short-lived HTTP listener on a loopback port,
sends the user to the identity provider's login page, and receives the
redirect (or form post) that carries the authorization code or token.

Typical use::

    import asyncio
    from loopauth import login

    code = asyncio.run(login(client_id="my-cli", scope="openid"))

or from a shell::

    loopauth login --client-id my-cli --scope openid

Modules:
    flow: The end-to-end login flow.
    server: The ephemeral loopback listener.
    handlers: Per-method request handling and session correlation.
    environments: Environments, endpoints, and URL building.
    helpers: Session ids, JSON helpers, and the code transform.
    app: Typer application and CLI entry point.
"""

__version__ = "0.3.0"

from loopauth.flow import login, login_sync  # noqa: E402

__all__ = ["__version__", "login", "login_sync"]
