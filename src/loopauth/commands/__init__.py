"""Built-in CLI sub-commands for loopauth.

* :mod:`~loopauth.commands.login` -- run the browser login and print the
  captured credential.
* :mod:`~loopauth.commands.config` -- view and modify global settings.

``login`` is a plain callback registered directly on the root app; the
``config`` group is a :class:`typer.Typer` sub-application.
"""
