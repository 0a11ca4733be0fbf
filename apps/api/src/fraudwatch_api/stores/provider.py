"""Storage provider selection.

The provider is chosen once at startup and handed to every component.
Nothing switches providers mid-request.
"""

import logging

from fraudwatch_api.config import StorageSettings
from fraudwatch_api.db.database import create_engine
from fraudwatch_api.errors import ConfigurationError, TransientStoreError
from fraudwatch_api.stores.base import StorageProvider
from fraudwatch_api.stores.memory import memory_storage_provider
from fraudwatch_api.stores.sql import SqlStorageProvider

logger = logging.getLogger("fraudwatch-storage")


async def connect_sql(settings: StorageSettings) -> SqlStorageProvider:
    """Open the SQL provider and verify it answers.

    Raises:
        ConfigurationError: If no database URL is configured.
        TransientStoreError: If the database cannot be reached.
    """
    if not settings.database_url:
        raise ConfigurationError("DATABASE_URL is required for the sql storage backend")

    provider = SqlStorageProvider(create_engine(settings.database_url))
    try:
        await provider.ping()
        if settings.create_tables:
            await provider.create_tables()
    except TransientStoreError:
        await provider.close()
        raise
    return provider


async def select_storage_provider(settings: StorageSettings) -> StorageProvider:
    """Pick the storage provider for this process.

    ``memory`` and ``sql`` are taken as given; ``sql`` fails startup if the
    database is unreachable. ``auto`` tries SQL when a URL is configured and
    falls back to the in-process provider otherwise.
    """
    if settings.backend == "memory":
        logger.info("Using in-memory storage")
        return memory_storage_provider()

    if settings.backend == "sql":
        provider = await connect_sql(settings)
        logger.info("Using SQL storage")
        return provider

    if settings.database_url:
        try:
            provider = await connect_sql(settings)
            logger.info("Using SQL storage")
            return provider
        except TransientStoreError as e:
            logger.warning(f"Database unreachable, falling back to in-memory storage: {e}")
    else:
        logger.warning("DATABASE_URL not set - using in-memory storage")

    return memory_storage_provider()
