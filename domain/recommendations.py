from domain.models import Recipe


FAVORITE_WEIGHT = 2
INGREDIENT_WEIGHT = 3
VIEW_WEIGHT = 1
QUICK_BONUS = 5
QUICK_MINUTES = 30


def score(
    recipe: Recipe,
    *,
    favorites_count: int = 0,
    ingredient_matches: int = 0,
    recent_views: int = 0,
) -> int:
    """Higher is a better recommendation. Quick recipes get a bonus."""
    total = (
        favorites_count * FAVORITE_WEIGHT
        + ingredient_matches * INGREDIENT_WEIGHT
        + recent_views * VIEW_WEIGHT
    )
    if recipe.ready_in_minutes is not None and recipe.ready_in_minutes <= QUICK_MINUTES:
        total += QUICK_BONUS
    return total


def recommend(
    recipes: list[Recipe],
    favorites: list[Recipe],
    *,
    recent_views: dict[int, int] | None = None,
    n: int = 10,
) -> list[Recipe]:
    recent_views = {} if recent_views is None else recent_views
    favorite_ids = [f.id for f in favorites]
    scored = [
        (
            score(
                recipe,
                favorites_count=favorite_ids.count(recipe.id),
                recent_views=recent_views.get(recipe.id, 0),
            ),
            i,
            recipe,
        )
        for i, recipe in enumerate(recipes)
    ]
    # Stable for equal scores: earlier recipes first.
    scored.sort(key=lambda s: (-s[0], s[1]))
    return [recipe for _, _, recipe in scored[:n]]
