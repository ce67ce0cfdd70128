import logging
from typing import Any, Callable, TypeVar

import httpx

from domain.errors import DecodeFailure
from domain.http import TIMEOUT, client_factory, request_json
from domain.models import RecipeDetail, SearchResult


logger = logging.getLogger(__name__)


BASE_URL = "https://api.spoonacular.com"
PAGE_SIZE = 20


T = TypeVar("T")


def recipe_api_client_factory(
    base_url: str = BASE_URL,
    *,
    timeout: float = TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return client_factory(base_url, timeout=timeout, transport=transport)


def decode(data: Any, parse: Callable[[Any], T]) -> T:
    try:
        return parse(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning("Could not decode recipe api response: %r", e)
        raise DecodeFailure(f"{type(e).__name__}: {e}") from e


class RecipeApiClient:
    """Search, detail and random lookups against the recipe api."""

    def __init__(
        self,
        *,
        api_key: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self._client = recipe_api_client_factory() if client is None else client

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        return await request_json(
            self._client, "GET", path, params={**params, "apiKey": self.api_key}
        )

    async def search(
        self, query: str, offset: int = 0, page_size: int = PAGE_SIZE
    ) -> SearchResult:
        data = await self._get(
            "/recipes/complexSearch",
            {
                "query": query,
                "offset": offset,
                "number": page_size,
                "addRecipeInformation": "true",
                "fillIngredients": "true",
            },
        )
        return decode(data, SearchResult.from_api)

    async def detail(self, id: int) -> RecipeDetail:
        data = await self._get(
            f"/recipes/{id}/information", {"includeNutrition": "false"}
        )
        return decode(data, RecipeDetail.from_api)

    async def random(self, count: int) -> list[RecipeDetail]:
        data = await self._get("/recipes/random", {"number": count})
        return decode(
            data, lambda d: [RecipeDetail.from_api(r) for r in d["recipes"]]
        )

    async def close(self) -> None:
        await self._client.aclose()
