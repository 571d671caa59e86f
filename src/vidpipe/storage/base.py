"""Blob store interface consumed by the pipeline."""

from __future__ import annotations

import shutil
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Iterator

from vidpipe.core.exceptions import StorageError


def join_key(*parts: str) -> str:
    """Join key segments with forward slashes, rejecting traversal."""
    key = PurePosixPath(*parts)
    if key.is_absolute() or ".." in key.parts:
        raise StorageError(f"Invalid blob key: {key}")
    return str(key)


class BlobStore(ABC):
    """Durable byte storage addressed by opaque locators.

    Locators returned by ``write``/``write_file``/``move`` are the only handle
    the rest of the system keeps. Media tools need random access to a real
    file, so ``staged`` materializes a locator as a local path for the
    duration of a ``with`` block.
    """

    @abstractmethod
    def write(self, data: bytes, key: str) -> str:
        """Store bytes under key, replacing any existing blob. Returns the locator."""

    @abstractmethod
    def write_file(self, path: Path, key: str) -> str:
        """Store the contents of a local file under key. Returns the locator."""

    @abstractmethod
    def read(self, locator: str) -> bytes:
        ...

    @abstractmethod
    def delete(self, locator: str) -> None:
        """Remove a blob. Missing blobs are ignored."""

    @abstractmethod
    def move(self, locator: str, key: str) -> str:
        ...

    @abstractmethod
    def exists(self, locator: str) -> bool:
        ...

    @abstractmethod
    def public_url(self, locator: str) -> str:
        """URL under which the blob is served to viewers."""

    @contextmanager
    def staged(self, locator: str) -> Iterator[Path]:
        """Copy a blob into a scratch directory, removed on exit."""
        scratch = Path(tempfile.mkdtemp(prefix="vidpipe_stage_"))
        try:
            local = scratch / PurePosixPath(locator).name
            local.write_bytes(self.read(locator))
            yield local
        finally:
            shutil.rmtree(scratch, ignore_errors=True)
