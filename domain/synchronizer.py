"""Remote-first recipe reads with the local cache as a fallback.

- Successful remote reads are written through to the cache.
- When the network cannot be reached, searches and detail lookups are served
  from the cache instead. Any other failure is raised as is.
- Favorites are written to the remote store first and mirrored into the cache
  only once that succeeded.
- `sync_favorites` only ever sets favorite flags. A recipe un-favorited on
  another device stays a favorite locally.
"""

import logging

from db import DEFAULT_QUERY, RecipeCache
from domain.errors import NoConnectivity
from domain.models import Recipe, RecipeDetail
from domain.recipe_api import PAGE_SIZE, RecipeApiClient
from domain.social import SocialStore


logger = logging.getLogger(__name__)


class RecipeSynchronizer:
    def __init__(
        self,
        *,
        api: RecipeApiClient,
        cache: RecipeCache,
        store: SocialStore,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self.api = api
        self.cache = cache
        self.store = store
        self.page_size = page_size

    async def _with_cached_flags(self, recipes: list[Recipe]) -> list[Recipe]:
        favorites = {r.id for r in await self.cache.list_favorites()}
        for recipe in recipes:
            recipe.is_favorite = recipe.id in favorites
        return recipes

    async def search_recipes(self, query: str, offset: int = 0) -> list[Recipe]:
        try:
            result = await self.api.search(
                query or DEFAULT_QUERY, offset=offset, page_size=self.page_size
            )
        except NoConnectivity:
            logger.info("Offline, searching cached recipes for %r", query)
            return await self.cache.query(query, offset, limit=self.page_size)

        await self.cache.upsert(result.results)
        return await self._with_cached_flags(result.results)

    async def get_recipe_detail(self, id: int) -> RecipeDetail:
        try:
            detail = await self.api.detail(id)
        except NoConnectivity:
            cached = await self.cache.get(id)
            if cached is None:
                raise
            logger.info("Offline, using cached recipe %s", id)
            return RecipeDetail.from_recipe(cached)

        await self.cache.upsert([detail.to_recipe()])
        cached = await self.cache.get(id)
        detail.is_favorite = cached is not None and cached.is_favorite
        return detail

    async def random_recipes(self, count: int) -> list[RecipeDetail]:
        details = await self.api.random(count)
        await self.cache.upsert([d.to_recipe() for d in details])
        return details

    async def toggle_favorite(self, recipe: Recipe, user_id: str) -> bool:
        is_favorite = not recipe.is_favorite

        if is_favorite:
            await self.store.add_favorite(user_id, recipe.id)
        else:
            await self.store.remove_favorite(user_id, recipe.id)

        await self.cache.set_favorite(recipe.id, is_favorite)
        return is_favorite

    async def get_favorites(self) -> list[Recipe]:
        return await self.cache.list_favorites()

    async def sync_favorites(self, user_id: str) -> None:
        ids = await self.store.favorite_ids(user_id)
        for id in ids:
            await self.cache.set_favorite(id, True)
        logger.debug("Synced %d favorites for %s", len(ids), user_id)

    async def prune_cache(self, days: int) -> int:
        return await self.cache.prune_older_than(days)
