"""Local recipe cache.

One row per recipe id. Rows are refreshed by successful remote reads and are
only read directly when the remote source cannot be reached.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Callable, Iterable

from databases import Database
from databases.interfaces import Record

from domain.models import Recipe


logger = logging.getLogger(__name__)


CREATE_RECIPES_TABLE = """
CREATE TABLE IF NOT EXISTS Recipes (
    id INTEGER NOT NULL UNIQUE,
    title VARCHAR(512) NOT NULL,
    title_key VARCHAR(512) NOT NULL,
    image_url VARCHAR(1024),
    summary TEXT,
    ready_in_minutes INTEGER,
    servings INTEGER,
    source_url VARCHAR(1024),
    is_favorite BOOLEAN NOT NULL DEFAULT 0,
    timestamp REAL NOT NULL
)
"""


# is_favorite is left out of the update so a refresh never clears it.
UPSERT_RECIPE = """
INSERT INTO Recipes(
    id, title, title_key, image_url, summary, ready_in_minutes, servings,
    source_url, is_favorite, timestamp
)
VALUES (
    :id, :title, :title_key, :image_url, :summary, :ready_in_minutes, :servings,
    :source_url, 0, :timestamp
)
ON CONFLICT(id) DO UPDATE SET
    title = excluded.title,
    title_key = excluded.title_key,
    image_url = excluded.image_url,
    summary = excluded.summary,
    ready_in_minutes = excluded.ready_in_minutes,
    servings = excluded.servings,
    source_url = excluded.source_url,
    timestamp = excluded.timestamp
"""


GET_RECIPE = "SELECT * FROM Recipes WHERE id = :id"


LIST_RECIPES = """
SELECT * FROM Recipes ORDER BY timestamp DESC, rowid ASC LIMIT :limit OFFSET :offset
"""


SEARCH_RECIPES = """
SELECT * FROM Recipes WHERE title_key LIKE :pattern ESCAPE '\\'
ORDER BY timestamp DESC, rowid ASC LIMIT :limit OFFSET :offset
"""


LIST_FAVORITES = """
SELECT * FROM Recipes WHERE is_favorite = 1 ORDER BY timestamp DESC, rowid ASC
"""


SET_FAVORITE = "UPDATE Recipes SET is_favorite = :is_favorite WHERE id = :id"


COUNT_STALE = """
SELECT COUNT(*) AS n FROM Recipes WHERE timestamp < :cutoff AND is_favorite = 0
"""


DELETE_STALE = "DELETE FROM Recipes WHERE timestamp < :cutoff AND is_favorite = 0"


COUNT_RECIPES = "SELECT COUNT(*) AS n FROM Recipes"


DEFAULT_QUERY = "popular"
PAGE_SIZE = 20


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def stale_cutoff(threshold_days: int, now: datetime) -> datetime:
    return now - timedelta(days=threshold_days)


def is_stale(timestamp: datetime, threshold_days: int, now: datetime | None = None) -> bool:
    """Older than `threshold_days`. The same rule `prune_older_than` deletes by."""
    now = utcnow() if now is None else now
    return timestamp < stale_cutoff(threshold_days, now)


# SQLite only folds ASCII case, so titles are matched on a casefolded copy.
def title_key(title: str) -> str:
    return title.casefold()


def like_pattern(substring: str) -> str:
    escaped = (
        title_key(substring)
        .replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
    return f"%{escaped}%"


def recipe_from_record(record: Record) -> Recipe:
    return Recipe(
        id=record["id"],
        title=record["title"],
        image=record["image_url"],
        summary=record["summary"],
        ready_in_minutes=record["ready_in_minutes"],
        servings=record["servings"],
        source_url=record["source_url"],
        is_favorite=bool(record["is_favorite"]),
    )


def recipe_values(recipe: Recipe, timestamp: float) -> dict[str, Any]:
    return {
        "id": recipe.id,
        "title": recipe.title,
        "title_key": title_key(recipe.title),
        "image_url": recipe.image,
        "summary": recipe.summary,
        "ready_in_minutes": recipe.ready_in_minutes,
        "servings": recipe.servings,
        "source_url": recipe.source_url,
        "timestamp": timestamp,
    }


class RecipeCache:
    """Recipes repository backed by a local database."""

    def __init__(
        self,
        db: Database,
        *,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.now = now

    async def create_schema(self) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            query=CREATE_RECIPES_TABLE
        )

    async def upsert(self, recipes: Iterable[Recipe]) -> None:
        timestamp = self.now().timestamp()
        values = [recipe_values(r, timestamp) for r in recipes]
        if not values:
            return
        async with self.db.transaction():
            for v in values:
                await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
                    UPSERT_RECIPE, values=v
                )
        logger.debug("Cached %d recipes", len(values))

    async def get(self, id: int) -> Recipe | None:
        result = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_RECIPE, values={"id": id}
        )
        return None if result is None else recipe_from_record(result)

    async def query(
        self, substring: str, offset: int = 0, limit: int = PAGE_SIZE
    ) -> list[Recipe]:
        page = {"limit": limit, "offset": offset}
        if substring and substring != DEFAULT_QUERY:
            result = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                SEARCH_RECIPES, values={"pattern": like_pattern(substring), **page}
            )
        else:
            result = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                LIST_RECIPES, values=page
            )
        return [recipe_from_record(r) for r in result]

    async def set_favorite(self, id: int, is_favorite: bool) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            SET_FAVORITE, values={"id": id, "is_favorite": is_favorite}
        )

    async def list_favorites(self) -> list[Recipe]:
        result = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
            LIST_FAVORITES
        )
        return [recipe_from_record(r) for r in result]

    async def prune_older_than(self, days: int) -> int:
        cutoff = stale_cutoff(days, self.now()).timestamp()
        async with self.db.transaction():
            n = await self.db.fetch_val(  # pyright: ignore[reportUnknownMemberType]
                COUNT_STALE, values={"cutoff": cutoff}
            )
            await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
                DELETE_STALE, values={"cutoff": cutoff}
            )
        logger.info("Cleared %d old cached recipes", n)
        return int(n)

    async def count(self) -> int:
        n = await self.db.fetch_val(  # pyright: ignore[reportUnknownMemberType]
            COUNT_RECIPES
        )
        return int(n)
