"""Content metadata stores.

SQLiteContentMetadataStore persists records and the cached storage counters
in a local SQLite file via aiosqlite.  InMemoryContentMetadataStore keeps
them in dicts; it is fast and handy in tests but not shared across
processes.
"""

from docvault.providers.metadata.memory_metadata_store import InMemoryContentMetadataStore
from docvault.providers.metadata.sqlite_metadata_store import SQLiteContentMetadataStore

__all__ = ["InMemoryContentMetadataStore", "SQLiteContentMetadataStore"]
