"""MongoDB handle for the price and report collections.

The client is opened once per campaign and closed on exit; callers only see
the three collections the crawler reads and writes.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Self

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from config.settings import GlobalConfig, get_config
from src.exceptions import ConfigurationError, DataStoreError
from src.logger import get_logger

log = get_logger(__name__)


class DocumentStore:
    """Owns an AsyncMongoClient and exposes the crawler's collections.

    Example:
        async with DocumentStore.create(config) as store:
            writer = BatchUpsertWriter(store.prices)
    """

    def __init__(self, client: AsyncMongoClient, config: GlobalConfig) -> None:
        self.client = client
        self.config = config
        self.database = client[config.database_name]

    @property
    def prices(self) -> Any:
        return self.database[self.config.price_collection]

    @property
    def reports(self) -> Any:
        return self.database[self.config.report_collection]

    @property
    def season_images(self) -> Any:
        return self.database[self.config.season_image_collection]

    @classmethod
    @asynccontextmanager
    async def create(
        cls, config: GlobalConfig | None = None
    ) -> AsyncGenerator[Self, None]:
        """Connect, verify with a ping, and close the client on exit.

        Raises:
            ConfigurationError: If no connection string is configured.
            DataStoreError: If the server cannot be reached.
        """
        config = config or get_config()
        if not config.mongodb_url:
            raise ConfigurationError("mongodb_url", "MONGODB_URL is not defined")

        client: AsyncMongoClient = AsyncMongoClient(config.mongodb_url)
        try:
            try:
                await client.admin.command("ping")
            except PyMongoError as exc:
                raise DataStoreError("connect", reason=str(exc)) from exc

            log.info("Document store connected", database=config.database_name)
            yield cls(client, config)
        finally:
            await client.close()
            log.info("Document store disconnected")
