"""What the user can do, with validation and sign-in checks up front."""

from datetime import datetime
import logging
import uuid

from db import DEFAULT_QUERY
from domain.auth import AuthService
from domain.errors import AuthRequired, NoConnectivity, NotAuthorized, RecipePlannerError
from domain.models import (
    MealPlanEntry,
    MealType,
    Recipe,
    RecipeDetail,
    RecentlyViewedEntry,
)
from domain.recommendations import recommend
from domain.social import SocialStore
from domain.synchronizer import RecipeSynchronizer
from domain.validation import validate_comment, validate_rating


logger = logging.getLogger(__name__)


RECOMMENDATION_POOL = 100


def _author(auth: AuthService) -> tuple[str, str]:
    user_id = auth.require_user_id()
    username = auth.current_username
    if username is None:
        raise AuthRequired()
    return user_id, username


async def post_comment(
    recipe_id: int,
    text: str,
    *,
    auth: AuthService,
    store: SocialStore,
) -> str:
    text = validate_comment(text)
    user_id, username = _author(auth)
    return await store.add_comment(recipe_id, user_id, username, text)


async def delete_comment(
    recipe_id: int,
    comment_id: str,
    *,
    auth: AuthService,
    store: SocialStore,
) -> None:
    user_id = auth.require_user_id()
    comment = await store.get_comment(recipe_id, comment_id)
    if comment is None:
        return
    if comment.user_id != user_id:
        raise NotAuthorized("You can only delete your own comments")
    await store.delete_comment(recipe_id, comment_id)


async def rate_recipe(
    recipe_id: int,
    rating: int,
    review: str | None = None,
    *,
    auth: AuthService,
    store: SocialStore,
) -> None:
    rating, review = validate_rating(rating, review)
    user_id, username = _author(auth)
    await store.set_rating(recipe_id, user_id, username, rating, review)


async def plan_meal(
    recipe_id: int,
    recipe_name: str,
    date: datetime,
    meal_type: MealType,
    *,
    auth: AuthService,
    store: SocialStore,
) -> MealPlanEntry:
    entry = MealPlanEntry(
        id=uuid.uuid4().hex,
        user_id=auth.require_user_id(),
        recipe_id=recipe_id,
        recipe_name=recipe_name,
        date=date,
        meal_type=meal_type,
    )
    await store.add_meal_plan(entry)
    return entry


async def meal_plans(*, auth: AuthService, store: SocialStore) -> list[MealPlanEntry]:
    return await store.list_meal_plans(auth.require_user_id())


async def delete_meal_plan(
    entry_id: str, *, auth: AuthService, store: SocialStore
) -> None:
    await store.delete_meal_plan(auth.require_user_id(), entry_id)


async def record_recently_viewed(
    recipe: Recipe,
    *,
    auth: AuthService,
    store: SocialStore,
) -> None:
    """Best effort: failures are logged and otherwise ignored."""
    user_id = auth.current_user_id
    if user_id is None:
        return
    try:
        await store.record_recently_viewed(
            user_id, recipe.id, recipe.title, recipe.image
        )
    except RecipePlannerError as e:
        logger.warning("Could not record recently viewed recipe %s: %s", recipe.id, e)


async def recently_viewed(
    *,
    auth: AuthService,
    store: SocialStore,
    limit: int | None = None,
) -> list[RecentlyViewedEntry]:
    return await store.list_recently_viewed(auth.require_user_id(), limit=limit)


async def open_recipe(
    recipe_id: int,
    *,
    synchronizer: RecipeSynchronizer,
    auth: AuthService,
    store: SocialStore,
) -> RecipeDetail:
    detail = await synchronizer.get_recipe_detail(recipe_id)
    await record_recently_viewed(detail, auth=auth, store=store)
    return detail


async def toggle_favorite(
    recipe: Recipe,
    *,
    synchronizer: RecipeSynchronizer,
    auth: AuthService,
) -> bool:
    is_favorite = await synchronizer.toggle_favorite(recipe, auth.require_user_id())
    recipe.is_favorite = is_favorite
    return is_favorite


async def load_favorites(
    *,
    synchronizer: RecipeSynchronizer,
    auth: AuthService,
) -> list[Recipe]:
    """Pull remote favorites into the cache, then list the cached favorites.

    Offline, the cached favorites are listed as they are.
    """
    user_id = auth.current_user_id
    if user_id is not None:
        try:
            await synchronizer.sync_favorites(user_id)
        except NoConnectivity:
            logger.info("Offline, listing cached favorites without syncing")
    return await synchronizer.get_favorites()


async def recommended_recipes(
    *,
    synchronizer: RecipeSynchronizer,
    auth: AuthService,
    store: SocialStore,
    n: int = 10,
) -> list[Recipe]:
    """Rank cached recipes by favorites, recent views and prep time."""
    recipes = await synchronizer.cache.query(DEFAULT_QUERY, 0, limit=RECOMMENDATION_POOL)
    favorites = await synchronizer.get_favorites()
    views: dict[int, int] = {}
    if auth.current_user_id is not None:
        for entry in await store.list_recently_viewed(auth.current_user_id):
            views[entry.recipe_id] = views.get(entry.recipe_id, 0) + 1
    return recommend(recipes, favorites, recent_views=views, n=n)
