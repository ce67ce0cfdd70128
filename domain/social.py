"""Comments, ratings, favorites, meal plans, recently viewed and profiles.

A thin layer over the realtime database: every method is a single request
and inputs are expected to be validated already. Children that do not decode
are skipped when reading a collection.
"""

import logging
from typing import Any, AsyncIterator, Callable, TypeVar

from domain.models import (
    Comment,
    MealPlanEntry,
    Rating,
    RecentlyViewedEntry,
    UserProfile,
)
from domain.realtime import SERVER_TIMESTAMP, RealtimeDatabase, apply_change, join


logger = logging.getLogger(__name__)


T = TypeVar("T")


def decode_children(
    data: Any, parse: Callable[[str, dict[str, Any]], T]
) -> list[T]:
    # Nodes keyed by small integers (recipe ids) can come back as arrays,
    # with null in the slots that have no child.
    if isinstance(data, list):
        children = [(str(i), value) for i, value in enumerate(data)]
    elif isinstance(data, dict):
        children = list(data.items())
    else:
        return []
    items: list[T] = []
    for key, value in children:
        if not isinstance(value, dict):
            continue
        try:
            items.append(parse(key, value))
        except (KeyError, TypeError, ValueError) as e:
            logger.debug("Skipping malformed child %s: %r", key, e)
    return items


RECENTLY_VIEWED_LIMIT = 10


class SocialStore:
    def __init__(
        self,
        db: RealtimeDatabase,
        *,
        recently_viewed_limit: int = RECENTLY_VIEWED_LIMIT,
    ) -> None:
        self.db = db
        self.recently_viewed_limit = recently_viewed_limit

    # Comments

    async def add_comment(
        self, recipe_id: int, user_id: str, username: str, text: str
    ) -> str:
        return await self.db.push(
            join("comments", recipe_id),
            {
                "userId": user_id,
                "username": username,
                "text": text,
                "timestamp": SERVER_TIMESTAMP,
            },
        )

    def _comments(self, recipe_id: int, data: Any) -> list[Comment]:
        comments = decode_children(
            data, lambda key, value: Comment.from_remote(key, recipe_id, value)
        )
        return sorted(comments, key=lambda c: c.timestamp, reverse=True)

    async def list_comments(self, recipe_id: int) -> list[Comment]:
        data = await self.db.get(join("comments", recipe_id))
        return self._comments(recipe_id, data)

    async def get_comment(self, recipe_id: int, comment_id: str) -> Comment | None:
        data = await self.db.get(join("comments", recipe_id, comment_id))
        comments = decode_children(
            {comment_id: data},
            lambda key, value: Comment.from_remote(key, recipe_id, value),
        )
        return comments[0] if comments else None

    async def delete_comment(self, recipe_id: int, comment_id: str) -> None:
        await self.db.remove(join("comments", recipe_id, comment_id))

    async def watch_comments(self, recipe_id: int) -> AsyncIterator[list[Comment]]:
        """Yield the full newest-first comment list each time it changes."""
        tree: Any = None
        async for change in self.db.listen(join("comments", recipe_id)):
            tree = apply_change(tree, change)
            yield self._comments(recipe_id, tree)

    # Ratings

    async def set_rating(
        self,
        recipe_id: int,
        user_id: str,
        username: str,
        rating: int,
        review: str | None,
    ) -> None:
        await self.db.set(
            join("ratings", recipe_id, user_id),
            {
                "userId": user_id,
                "username": username,
                "rating": rating,
                "review": review or "",
                "timestamp": SERVER_TIMESTAMP,
            },
        )

    async def list_ratings(self, recipe_id: int) -> list[Rating]:
        data = await self.db.get(join("ratings", recipe_id))
        ratings = decode_children(
            data, lambda key, value: Rating.from_remote(key, recipe_id, value)
        )
        return sorted(ratings, key=lambda r: r.timestamp, reverse=True)

    async def average_rating(self, recipe_id: int) -> float:
        ratings = await self.list_ratings(recipe_id)
        if not ratings:
            return 0.0
        return sum(r.rating for r in ratings) / len(ratings)

    # Favorites

    async def add_favorite(self, user_id: str, recipe_id: int) -> None:
        await self.db.set(
            join("users", user_id, "favorites", recipe_id),
            {"recipeId": recipe_id, "addedAt": SERVER_TIMESTAMP},
        )

    async def remove_favorite(self, user_id: str, recipe_id: int) -> None:
        await self.db.remove(join("users", user_id, "favorites", recipe_id))

    async def favorite_ids(self, user_id: str) -> list[int]:
        data = await self.db.get(join("users", user_id, "favorites"))
        return decode_children(data, lambda key, value: int(value["recipeId"]))

    # Meal plans

    async def add_meal_plan(self, entry: MealPlanEntry) -> None:
        await self.db.set(
            join("users", entry.user_id, "mealPlans", entry.id), entry.to_remote()
        )

    async def list_meal_plans(self, user_id: str) -> list[MealPlanEntry]:
        data = await self.db.get(join("users", user_id, "mealPlans"))
        entries = decode_children(
            data, lambda key, value: MealPlanEntry.from_remote(key, user_id, value)
        )
        return sorted(entries, key=lambda e: e.date)

    async def delete_meal_plan(self, user_id: str, entry_id: str) -> None:
        await self.db.remove(join("users", user_id, "mealPlans", entry_id))

    # Recently viewed

    async def record_recently_viewed(
        self,
        user_id: str,
        recipe_id: int,
        recipe_name: str,
        image_url: str | None,
    ) -> None:
        await self.db.set(
            join("users", user_id, "recentlyViewed", recipe_id),
            {
                "recipeId": recipe_id,
                "recipeName": recipe_name,
                "imageURL": image_url or "",
                "viewedAt": SERVER_TIMESTAMP,
            },
        )

    async def list_recently_viewed(
        self, user_id: str, limit: int | None = None
    ) -> list[RecentlyViewedEntry]:
        limit = self.recently_viewed_limit if limit is None else limit
        data = await self.db.get(
            join("users", user_id, "recentlyViewed"),
            order_by="viewedAt",
            limit_to_last=limit,
        )
        entries = decode_children(
            data, lambda key, value: RecentlyViewedEntry.from_remote(value)
        )
        entries.sort(key=lambda e: e.viewed_at, reverse=True)
        return entries[:limit]

    # Profiles

    async def save_profile(self, profile: UserProfile) -> None:
        # Replaces the whole user node, so only for accounts being created.
        await self.db.set(join("users", profile.id), profile.to_remote())

    async def load_profile(self, user_id: str) -> UserProfile | None:
        data = await self.db.get(join("users", user_id))
        profiles = decode_children(
            {user_id: data}, lambda key, value: UserProfile.from_remote(key, value)
        )
        return profiles[0] if profiles else None

    async def update_username(self, user_id: str, username: str) -> None:
        await self.db.update(join("users", user_id), {"username": username})
