"""Search-as-you-type and the paginated recipe feed.

Both expose their state as `State` containers for whatever renders them.
"""

import asyncio
import logging

from db import DEFAULT_QUERY
from domain.errors import RecipePlannerError
from domain.models import Recipe
from domain.recipe_api import PAGE_SIZE
from domain.state import State
from domain.synchronizer import RecipeSynchronizer
from domain.validation import clean_query


logger = logging.getLogger(__name__)


DEBOUNCE = 0.5


class SearchSession:
    """A task queue of one.

    Each submitted query waits out the debounce window before searching. A
    newer query cancels the older task: during the wait nothing is sent, and
    once the search is issued it runs to completion (its cache writes land)
    but its results are thrown away.
    """

    def __init__(
        self, synchronizer: RecipeSynchronizer, *, delay: float = DEBOUNCE
    ) -> None:
        self.synchronizer = synchronizer
        self.delay = delay
        self.results: State[list[Recipe]] = State([])
        self.is_loading = State(False)
        self.error_message: State[str | None] = State(None)
        self._task: asyncio.Task[None] | None = None
        self._last_query: str | None = None
        self._issued: set[asyncio.Task[list[Recipe]]] = set()

    def submit(self, query: str) -> asyncio.Task[None] | None:
        query = clean_query(query)
        if query == self._last_query:
            return self._task
        self._last_query = query
        self.cancel()

        if not query:
            self.results.set([])
            self.is_loading.set(False)
            return None

        self._task = asyncio.create_task(self._run(query))
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, query: str) -> None:
        await asyncio.sleep(self.delay)

        self.is_loading.set(True)
        self.error_message.set(None)

        search = asyncio.create_task(self.synchronizer.search_recipes(query, 0))
        self._issued.add(search)
        search.add_done_callback(self._forget)

        try:
            recipes = await asyncio.shield(search)
        except RecipePlannerError as e:
            self.error_message.set(str(e))
        else:
            self.results.set(recipes)
        self.is_loading.set(False)

    def _forget(self, search: asyncio.Task[list[Recipe]]) -> None:
        self._issued.discard(search)
        # Superseded searches still finish; mark their errors as seen.
        if not search.cancelled() and search.exception() is not None:
            logger.debug("Discarded search failed: %r", search.exception())

    async def settle(self) -> None:
        """Wait for the current query and any superseded searches to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        if self._issued:
            await asyncio.gather(*self._issued, return_exceptions=True)


class RecipeFeed:
    def __init__(
        self, synchronizer: RecipeSynchronizer, *, page_size: int = PAGE_SIZE
    ) -> None:
        self.synchronizer = synchronizer
        self.page_size = page_size
        self.recipes: State[list[Recipe]] = State([])
        self.is_loading = State(False)
        self.is_loading_more = State(False)
        self.error_message: State[str | None] = State(None)
        self.query = ""
        self.offset = 0
        self.can_load_more = True
        self._generation = 0

    async def load_initial(self) -> None:
        await self.search(DEFAULT_QUERY, reset=True)

    async def search(self, query: str, *, reset: bool = False) -> None:
        """Load the next page of `query`, or the first one when `reset`.

        Only the latest call changes the feed. A page that arrives after a
        newer call has started is dropped.
        """
        query = clean_query(query)
        self._generation += 1
        generation = self._generation
        if reset:
            self.query = query
            self.offset = 0
            self.can_load_more = True
            self.recipes.set([])
            self.is_loading_more.set(False)
            self.is_loading.set(True)
        else:
            self.is_loading_more.set(True)
        self.error_message.set(None)

        try:
            recipes = await self.synchronizer.search_recipes(
                query or DEFAULT_QUERY, self.offset
            )
        except RecipePlannerError as e:
            if generation == self._generation:
                self.error_message.set(str(e))
        else:
            if generation != self._generation:
                logger.debug("Dropping superseded page for %r", query)
                return
            self.recipes.set(self.recipes.value + recipes)
            self.offset += len(recipes)
            if len(recipes) < self.page_size:
                self.can_load_more = False
        finally:
            if generation == self._generation:
                self.is_loading.set(False)
                self.is_loading_more.set(False)

    async def load_more(self) -> None:
        if self.is_loading_more.value or not self.can_load_more:
            return
        await self.search(self.query)

    async def refresh(self) -> None:
        await self.search(self.query, reset=True)
