from vidpipe.storage.base import BlobStore
from vidpipe.storage.local import LocalBlobStore

__all__ = ["BlobStore", "LocalBlobStore"]
