"""Local-disk blob store."""

from __future__ import annotations

import logging
import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from vidpipe.core.constants import DEFAULT_PUBLIC_URL_PREFIX
from vidpipe.core.exceptions import StorageError
from vidpipe.storage.base import BlobStore, join_key

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    """Stores blobs as files under ``root``; locators are root-relative keys."""

    def __init__(self, root: Path, public_url_prefix: str = DEFAULT_PUBLIC_URL_PREFIX):
        self.root = Path(root).resolve()
        self.public_url_prefix = public_url_prefix.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, locator: str) -> Path:
        path = (self.root / join_key(locator)).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Locator escapes storage root: {locator}")
        return path

    def write(self, data: bytes, key: str) -> str:
        dest = self.path_for(key)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            tmp = dest.with_name(dest.name + ".part")
            tmp.write_bytes(data)
            os.replace(tmp, dest)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e
        return join_key(key)

    def write_file(self, path: Path, key: str) -> str:
        dest = self.path_for(key)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            tmp = dest.with_name(dest.name + ".part")
            shutil.copyfile(path, tmp)
            os.replace(tmp, dest)
        except OSError as e:
            raise StorageError(f"Failed to store {path} as {key}: {e}") from e
        return join_key(key)

    def read(self, locator: str) -> bytes:
        try:
            return self.path_for(locator).read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {locator}: {e}") from e

    def delete(self, locator: str) -> None:
        try:
            self.path_for(locator).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {locator}: {e}") from e

    def move(self, locator: str, key: str) -> str:
        src = self.path_for(locator)
        dest = self.path_for(key)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            os.replace(src, dest)
        except OSError as e:
            raise StorageError(f"Failed to move {locator} to {key}: {e}") from e
        return join_key(key)

    def exists(self, locator: str) -> bool:
        return self.path_for(locator).is_file()

    def public_url(self, locator: str) -> str:
        return f"{self.public_url_prefix}/{join_key(locator)}"

    @contextmanager
    def staged(self, locator: str) -> Iterator[Path]:
        path = self.path_for(locator)
        if not path.is_file():
            raise StorageError(f"Blob not found: {locator}")
        yield path
