"""Index module - directory lifecycle and the Tantivy index session.

This module provides:
- IndexDirectoryManager: Drop/recreate of the index base directory
- IndexWriter: Staged, per-type batched writes flushed to Tantivy
- Directory providers: filesystem (default) and in-memory
"""

from searchbuild.index.directory import IndexDirectoryManager, IndexSettings
from searchbuild.index.writer import (
    BatchHandle,
    FilesystemDirectoryProvider,
    IndexTarget,
    IndexWriter,
    RamDirectoryProvider,
    count_documents,
)

__all__ = [
    "IndexDirectoryManager",
    "IndexSettings",
    "IndexWriter",
    "IndexTarget",
    "BatchHandle",
    "FilesystemDirectoryProvider",
    "RamDirectoryProvider",
    "count_documents",
]
