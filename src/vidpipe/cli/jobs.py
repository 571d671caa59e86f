"""vidpipe status / video / retry / jobs / delete commands."""

from __future__ import annotations

from pathlib import Path

import typer

from vidpipe.cli.output import error, output_json, progress, setup_logging
from vidpipe.core.config import get_config
from vidpipe.core.exceptions import InvalidTransition, NotFound
from vidpipe.db.models import JobStatus
from vidpipe.pipeline.service import ProcessingService, build_service


def _service(db: str | None) -> ProcessingService:
    config = get_config(db_path=Path(db) if db else None)
    setup_logging(config.log_level)
    return build_service(config)


def register(app: typer.Typer) -> None:
    @app.command("status")
    def status_cmd(
        job_id: str = typer.Argument(..., help="Processing job ID"),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """Show status and progress of a processing job."""
        service = _service(db)
        try:
            output_json(service.get_status(job_id).model_dump(mode="json"))
        except NotFound as e:
            error(str(e))
            raise typer.Exit(1)
        finally:
            service.close()

    @app.command("video")
    def video_cmd(
        video_id: str = typer.Argument(..., help="Video ID"),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """Show a video's status and its latest processing job."""
        service = _service(db)
        try:
            output_json(service.get_upload_status(video_id).model_dump(mode="json"))
        except NotFound as e:
            error(str(e))
            raise typer.Exit(1)
        finally:
            service.close()

    @app.command("retry")
    def retry_cmd(
        job_id: str = typer.Argument(..., help="Failed processing job ID"),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """Reset a failed job and process it again."""
        service = _service(db)
        try:
            service.retry(job_id)
            progress(f"Retrying job {job_id}...")
            service.dispatcher.wait()
            output_json(service.get_status(job_id).model_dump(mode="json"))
        except (NotFound, InvalidTransition) as e:
            error(str(e))
            raise typer.Exit(1)
        finally:
            service.close()

    @app.command("jobs")
    def jobs_cmd(
        status: JobStatus = typer.Option(None, "--status", help="Filter by job status"),
        page: int = typer.Option(1, "--page", min=1),
        limit: int = typer.Option(20, "--limit", min=1, max=200),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """List processing jobs with a queue summary."""
        service = _service(db)
        try:
            output_json(service.list_jobs(page=page, limit=limit, status=status).model_dump(mode="json"))
        finally:
            service.close()

    @app.command("delete")
    def delete_cmd(
        video_id: str = typer.Argument(..., help="Video ID to delete"),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """Delete a video, its media files and processing jobs."""
        service = _service(db)
        try:
            service.delete_video(video_id)
            output_json({"status": "deleted", "video_id": video_id})
        except NotFound as e:
            error(str(e))
            raise typer.Exit(1)
        finally:
            service.close()
