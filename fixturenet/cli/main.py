"""fixturenet CLI — Entry point.

Usage:
    fixturenet serve
    fixturenet recordings list
    fixturenet recordings show <recording_id>
    fixturenet recordings delete <recording_id>
"""

from __future__ import annotations

import typer

from fixturenet.cli.commands import recordings, server

app = typer.Typer(
    name="fixturenet",
    help="fixturenet — record and replay HTTP traffic for deterministic tests.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)


app.command("serve")(server.serve)
app.add_typer(recordings.app, name="recordings")


@app.callback()
def main_callback() -> None:
    pass


if __name__ == "__main__":
    app()
