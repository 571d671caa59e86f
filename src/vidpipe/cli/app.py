"""Typer root app, wires all subcommands together."""

from __future__ import annotations

import json

import typer

from vidpipe import __version__

app = typer.Typer(
    name="vidpipe",
    help="vidpipe: video ingestion and transcoding pipeline.",
    add_completion=False,
    no_args_is_help=True,
)


@app.command("version")
def version_cmd() -> None:
    """Print version info as JSON."""
    print(json.dumps({"version": __version__, "package": "vidpipe"}))


# --- Register direct commands ---

from vidpipe.cli.upload import register as register_upload  # noqa: E402
from vidpipe.cli.jobs import register as register_jobs  # noqa: E402
from vidpipe.cli.probe import register as register_probe  # noqa: E402
from vidpipe.cli.config_cmd import config_app  # noqa: E402

register_upload(app)
register_jobs(app)
register_probe(app)
app.add_typer(config_app, name="config", help="Show/set configuration")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
