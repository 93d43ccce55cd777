"""Shared pytest fixtures for the DocVault test suite."""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Any, Callable

import pytest
import pytest_asyncio

from docvault.config.settings import ContentSettings
from docvault.providers.metadata.memory_metadata_store import InMemoryContentMetadataStore
from docvault.providers.metadata.sqlite_metadata_store import SQLiteContentMetadataStore
from docvault.services.content_manager import ContentManager
from docvault.services.transaction_manager import TransactionManager

# SHA-256 of b"Hello, World!"
HELLO_WORLD = b"Hello, World!"
HELLO_WORLD_SHA256 = "dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f"


def make_png_bytes(payload_size: int = 64) -> bytes:
    """PNG signature followed by an IHDR-shaped chunk and filler bytes."""
    signature = b"\x89PNG\r\n\x1a\n"
    ihdr = struct.pack(">I", 13) + b"IHDR" + struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    return signature + ihdr + b"\x00" * payload_size


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    return tmp_path / "content"


@pytest.fixture
def make_settings(tmp_path: Path, content_dir: Path) -> Callable[..., ContentSettings]:
    """Factory for isolated settings rooted in ``tmp_path``."""

    def _make(**overrides: Any) -> ContentSettings:
        values: dict[str, Any] = {
            "content_dir": content_dir,
            "metadata_db_path": tmp_path / "metadata.db",
        }
        values.update(overrides)
        return ContentSettings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings: Callable[..., ContentSettings]) -> ContentSettings:
    return make_settings()


# ---------------------------------------------------------------------------
# Stores and managers
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> InMemoryContentMetadataStore:
    return InMemoryContentMetadataStore()


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> SQLiteContentMetadataStore:
    store = SQLiteContentMetadataStore(db_path=tmp_path / "store.db")
    await store.initialize()
    return store


@pytest.fixture
def transactions() -> TransactionManager:
    return TransactionManager()


@pytest.fixture
def make_manager(
    make_settings: Callable[..., ContentSettings],
    memory_store: InMemoryContentMetadataStore,
    transactions: TransactionManager,
) -> Callable[..., Any]:
    """Async factory: ``manager = await make_manager(max_file_size="1KB")``."""

    async def _make(store: Any = None, **overrides: Any) -> ContentManager:
        manager = ContentManager(
            settings=make_settings(**overrides),
            metadata_store=store if store is not None else memory_store,
            transactions=transactions,
        )
        await manager.initialize()
        return manager

    return _make


@pytest_asyncio.fixture
async def manager(make_manager: Callable[..., Any]) -> ContentManager:
    return await make_manager()
