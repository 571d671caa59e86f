"""vidpipe: video ingestion and transcoding pipeline."""

__version__ = "0.1.0"
