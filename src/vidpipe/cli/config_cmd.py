"""vidpipe config command: show/set configuration."""

from __future__ import annotations

import typer
from pydantic import ValidationError

from vidpipe.cli.output import output_json, output_text
from vidpipe.core.config import _FILE_KEYS, VidpipeConfig, _load_config_file, get_config, save_config

config_app = typer.Typer()


@config_app.command("show")
def config_show() -> None:
    """Show current configuration."""
    config = get_config()
    output_json(config.model_dump(mode="json"))


@config_app.command("path")
def config_path() -> None:
    """Show path to the database file."""
    config = get_config()
    output_text(str(config.db_path))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, e.g. concurrency or encoder_path"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Persist a setting to config.json."""
    if key not in _FILE_KEYS or key == "output_profile":
        raise typer.BadParameter(f"Unknown or non-scalar setting: {key}")
    try:
        VidpipeConfig(**{key: value})
    except ValidationError as e:
        raise typer.BadParameter(str(e))
    data = _load_config_file()
    data[key] = value
    path = save_config(data)
    output_json({"saved": str(path), key: value})
