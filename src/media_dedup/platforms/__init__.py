"""Adapters for metadata sources and trash backends."""

from media_dedup.platforms.catalog import SqliteCatalog
from media_dedup.platforms.memory import InMemoryMetadataSource
from media_dedup.platforms.trash import LibraryTrasher, RecycleBinTrasher

__all__ = [
    "InMemoryMetadataSource",
    "LibraryTrasher",
    "RecycleBinTrasher",
    "SqliteCatalog",
]
