from printkeeper.storage.backends import BlobStorage, MemoryBlobStorage, SqlBlobStorage
from printkeeper.storage.versioned import VersionedDocument

__all__ = [
    "BlobStorage",
    "MemoryBlobStorage",
    "SqlBlobStorage",
    "VersionedDocument",
]
