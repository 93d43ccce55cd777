"""Application wiring for DocVault.

Builds a ready-to-use :class:`ContentManager` from configuration: settings
are resolved (YAML, environment, overrides), logging is configured at the
configured level, and the SQLite metadata store and content directory are
initialised.

    manager = await open_content_manager("config/docvault.yaml")
    result = await manager.ingest_from_bytes(b"...", ContentDescriptor(display_name="a.txt"))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from docvault.config.loader import load_settings
from docvault.config.settings import ContentSettings
from docvault.interfaces.metadata_store import IContentMetadataStore
from docvault.providers.metadata.sqlite_metadata_store import SQLiteContentMetadataStore
from docvault.services.content_manager import ContentManager
from docvault.services.transaction_manager import TransactionManager
from docvault.utils.logging import configure_logging, get_logger

_DEFAULT_CONFIG_PATH = Path("config/docvault.yaml")


def build_content_manager(
    settings: ContentSettings,
    metadata_store: IContentMetadataStore | None = None,
    transactions: TransactionManager | None = None,
) -> ContentManager:
    """Construct (but do not initialise) a manager for *settings*.

    The SQLite store at ``settings.metadata_db_path`` is used unless
    *metadata_store* is given.
    """
    return ContentManager(
        settings=settings,
        metadata_store=metadata_store or SQLiteContentMetadataStore(settings.metadata_db_path),
        transactions=transactions or TransactionManager(),
    )


async def open_content_manager(
    config_path: str | Path = _DEFAULT_CONFIG_PATH,
    *,
    json_logs: bool = False,
    **overrides: Any,
) -> ContentManager:
    """Load settings, configure logging and return an initialised manager."""
    settings = load_settings(config_path, **overrides)
    configure_logging(log_level=settings.log_level, json_output=json_logs)
    logger: structlog.BoundLogger = get_logger(__name__)

    manager = build_content_manager(settings)
    await manager.initialize()
    logger.info(
        "docvault_ready",
        content_dir=str(manager.content_dir),
        metadata_db=str(settings.metadata_db_path),
        max_content_dir_size=settings.max_content_dir_size,
    )
    return manager
