"""vidpipe upload command."""

from __future__ import annotations

from pathlib import Path

import typer

from vidpipe.cli.output import error, output_json, progress, setup_logging
from vidpipe.core.config import get_config
from vidpipe.core.exceptions import VidpipeError
from vidpipe.pipeline.service import build_service
from vidpipe.utils.video import discover_videos


def register(app: typer.Typer) -> None:
    @app.command("upload")
    def upload(
        path: str = typer.Argument(..., help="Video file or directory of videos"),
        title: str = typer.Option(None, "--title", help="Video title (defaults to the file name)"),
        creator: str = typer.Option("local", "--creator", help="Creator ID that owns the video"),
        description: str = typer.Option(None, "--description", help="Video description"),
        category: str = typer.Option(None, "--category", help="Category ID"),
        tags: list[str] = typer.Option(None, "--tag", help="Tag (repeatable)"),
        db: str = typer.Option(None, "--db", help="Database path override"),
        storage: str = typer.Option(None, "--storage", help="Storage root override"),
    ) -> None:
        """Upload video file(s), transcode them and print the final status."""
        target = Path(path).expanduser().resolve()
        videos = discover_videos(target) if target.is_dir() else [target]
        if not videos:
            error(f"No video files found at: {path}")
            raise typer.Exit(1)

        config = get_config(
            db_path=Path(db) if db else None,
            storage_root=Path(storage) if storage else None,
        )
        setup_logging(config.log_level)
        service = build_service(config)

        progress(f"Found {len(videos)} video(s) to upload.")

        uploads = []
        results = []
        try:
            for video_path in videos:
                try:
                    uploads.append(service.create_upload(
                        video_path,
                        title or video_path.stem,
                        creator_id=creator,
                        description=description,
                        category_id=category,
                        tags=tags,
                    ))
                except VidpipeError as e:
                    error(str(e))
                    results.append({"status": "error", "filename": video_path.name, "error": str(e)})

            service.dispatcher.wait()
            for upload_result in uploads:
                status = service.get_upload_status(upload_result.video_id)
                results.append(status.model_dump(mode="json"))
        finally:
            service.close()

        if len(results) == 1:
            output_json(results[0])
        else:
            output_json({"results": results, "total": len(results)})

        if any(r.get("status") in ("error", "DRAFT") for r in results):
            raise typer.Exit(1)
