"""Builds the services and owns their lifetime.

```python
async with lifespan(Config()) as container:
    feed = container.feed()
    await feed.load_initial()
```
"""

import contextlib
import logging
from typing import AsyncIterator

import httpx
from databases import Database
from rich.logging import RichHandler

from config import Config, Env
from db import RecipeCache
from domain.auth import AuthService, auth_client_factory
from domain.realtime import RealtimeDatabase, realtime_client_factory
from domain.recipe_api import RecipeApiClient, recipe_api_client_factory
from domain.search import RecipeFeed, SearchSession
from domain.social import SocialStore
from domain.synchronizer import RecipeSynchronizer


logger = logging.getLogger(__name__)


def configure_logging(config: Config) -> None:
    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=config.env == Env.local)],
        force=True,
    )


class AppContainer:
    def __init__(
        self,
        config: Config,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.database = Database(config.db_url)
        self.cache = RecipeCache(self.database)

        self.api = RecipeApiClient(
            api_key=config.recipe_api_key,
            client=recipe_api_client_factory(
                config.recipe_api_url,
                timeout=config.request_timeout,
                transport=transport,
            ),
        )
        self.realtime = RealtimeDatabase(
            client=realtime_client_factory(
                config.firebase_database_url, transport=transport
            ),
            token=self._id_token,
        )
        self.store = SocialStore(
            self.realtime, recently_viewed_limit=config.recently_viewed_limit
        )
        self.auth = AuthService(
            api_key=config.firebase_api_key,
            store=self.store,
            client=auth_client_factory(transport=transport),
        )
        self.synchronizer = RecipeSynchronizer(
            api=self.api,
            cache=self.cache,
            store=self.store,
            page_size=config.page_size,
        )

    async def _id_token(self) -> str | None:
        return await self.auth.id_token()

    def feed(self) -> RecipeFeed:
        return RecipeFeed(self.synchronizer, page_size=self.config.page_size)

    def search(self) -> SearchSession:
        return SearchSession(self.synchronizer, delay=self.config.search_debounce)

    async def start(self) -> None:
        await self.database.connect()
        await self.cache.create_schema()
        await self.synchronizer.prune_cache(self.config.cache_max_age_days)
        logger.info("Recipe planner ready (%s)", self.config.env.value)

    async def stop(self) -> None:
        await self.api.close()
        await self.auth.close()
        await self.realtime.close()
        await self.database.disconnect()


@contextlib.asynccontextmanager
async def lifespan(
    config: Config | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[AppContainer]:
    config = Config() if config is None else config
    configure_logging(config)
    container = AppContainer(config, transport=transport)
    await container.start()
    try:
        yield container
    finally:
        await container.stop()
