from __future__ import annotations

import typer

from .commands import auth_cmd, cdr_cmd, config_cmd, tdr_cmd, users_cmd
from .logging_ import setup_logging


def _build_app() -> typer.Typer:
    app = typer.Typer(
        name="hsdp",
        help="HSDP platform CLI",
        no_args_is_help=True,
    )

    app.add_typer(config_cmd.app, name="config")
    app.add_typer(auth_cmd.app, name="auth")
    app.add_typer(users_cmd.app, name="users")
    app.add_typer(cdr_cmd.app, name="cdr")
    app.add_typer(tdr_cmd.app, name="tdr")

    @app.callback()
    def _main(
            verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logs."),
    ):
        setup_logging(verbose)

    return app


app = _build_app()
