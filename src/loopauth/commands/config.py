"""Config commands -- view and modify global configuration.

Provides the ``loopauth config`` sub-command group for reading and
updating the user's global configuration file
(:class:`~loopauth.models.GlobalConfig`).
"""

from __future__ import annotations

import typer

from loopauth.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the current configuration and the effective environment.

    Example::

        loopauth config show
        loopauth --json config show
    """
    from loopauth.config import get_cli_env, get_config_dir, load_global_config
    from loopauth.environments import get_endpoints, resolve_environment
    from loopauth.exceptions import LoopAuthError

    try:
        config = load_global_config()
        effective = resolve_environment(None, get_cli_env(config))
    except LoopAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    info(f"Config directory: {get_config_dir()}")
    data = config.model_dump(mode="json")
    data["effective_env"] = effective.value
    data["auth_url"] = get_endpoints(effective).auth_url
    format_response(data)


@config_app.command("set-env")
def config_set_env(
    env: str = typer.Argument(help="Environment to use by default (stage or prod)."),
) -> None:
    """Set the environment used when ``--env`` is not given.

    Example::

        loopauth config set-env stage
    """
    from loopauth.config import load_global_config, save_global_config
    from loopauth.environments import resolve_environment
    from loopauth.exceptions import LoopAuthError

    try:
        environment = resolve_environment(env)
        config = load_global_config()
    except LoopAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    config.env = environment
    save_global_config(config)
    success(f"Set env = {environment.value}")


@config_app.command("set-timeout")
def config_set_timeout(
    seconds: int = typer.Argument(help="Default login timeout in seconds."),
) -> None:
    """Set the default login timeout.

    Example::

        loopauth config set-timeout 300
    """
    from loopauth.config import load_global_config, save_global_config
    from loopauth.exceptions import LoopAuthError

    if seconds <= 0:
        error(f"Timeout must be positive, got: {seconds}")
        raise typer.Exit(code=2)

    try:
        config = load_global_config()
    except LoopAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    config.timeout = seconds
    save_global_config(config)
    success(f"Set timeout = {seconds}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults.

    Example::

        loopauth config reset --force
    """
    from loopauth.config import save_global_config
    from loopauth.models import GlobalConfig

    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
