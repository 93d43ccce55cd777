"""Public interface definitions for DocVault's pluggable backends.

Concrete adapters live in ``docvault.providers`` and are injected into the
content manager at construction time.

    Interface                →  Concrete implementations
    ───────────────────────────────────────────────────────
    IContentMetadataStore    →  SQLiteContentMetadataStore,
                                InMemoryContentMetadataStore
"""

from docvault.interfaces.metadata_store import IContentMetadataStore

__all__ = ["IContentMetadataStore"]
