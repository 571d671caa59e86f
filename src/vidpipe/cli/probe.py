"""vidpipe probe command."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path

import typer

from vidpipe.cli.output import error, output_json
from vidpipe.core.config import get_config
from vidpipe.core.exceptions import ProbeError
from vidpipe.pipeline.ffmpeg import Prober


def register(app: typer.Typer) -> None:
    @app.command("probe")
    def probe_cmd(
        path: str = typer.Argument(..., help="Media file to inspect"),
    ) -> None:
        """Show duration and resolution of a media file."""
        prober = Prober(get_config())
        try:
            info = prober.probe(Path(path).expanduser())
        except ProbeError as e:
            error(str(e))
            raise typer.Exit(1)
        output_json({**asdict(info), "resolution": info.resolution})
