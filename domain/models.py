from datetime import datetime, timezone
from enum import Enum
from typing import Any, Self

import bs4


def strip_html(html: str) -> str:
    return bs4.BeautifulSoup(html, features="html.parser").get_text().strip()


def from_server_timestamp(millis: float) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def from_epoch_seconds(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


class Recipe:
    def __init__(
        self,
        *,
        id: int,
        title: str,
        image: str | None = None,
        summary: str | None = None,
        ready_in_minutes: int | None = None,
        servings: int | None = None,
        source_url: str | None = None,
        is_favorite: bool = False,
    ) -> None:
        self.id = id
        self.title = title
        self.image = image
        self.summary = summary
        self.ready_in_minutes = ready_in_minutes
        self.servings = servings
        self.source_url = source_url
        self.is_favorite = is_favorite

    def __repr__(self) -> str:
        return f"<Recipe(id={self.id}, title={self.title})>"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Self:
        return cls(
            id=int(data["id"]),
            title=str(data["title"]),
            image=data.get("image"),
            summary=data.get("summary"),
            ready_in_minutes=data.get("readyInMinutes"),
            servings=data.get("servings"),
            source_url=data.get("sourceUrl"),
        )

    @property
    def plain_summary(self) -> str | None:
        return None if self.summary is None else strip_html(self.summary)


class Ingredient:
    def __init__(
        self,
        *,
        id: int,
        name: str,
        amount: float,
        unit: str,
        image: str | None = None,
    ) -> None:
        self.id = id
        self.name = name
        self.amount = amount
        self.unit = unit
        self.image = image

    def __repr__(self) -> str:
        return f"<Ingredient(name={self.name}, amount={self.amount} {self.unit})>"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Self:
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            amount=float(data["amount"]),
            unit=str(data["unit"]),
            image=data.get("image"),
        )


class RecipeDetail(Recipe):
    """A recipe with everything the detail endpoint returns.

    Details rebuilt from the local cache have no ingredients, instructions,
    cuisines or dish types.
    """

    def __init__(
        self,
        *,
        ingredients: list[Ingredient] | None = None,
        instructions: str | None = None,
        cuisines: list[str] | None = None,
        dish_types: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.ingredients = ingredients
        self.instructions = instructions
        self.cuisines = cuisines
        self.dish_types = dish_types

    def __repr__(self) -> str:
        return f"<RecipeDetail(id={self.id}, title={self.title})>"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Self:
        ingredients = data.get("extendedIngredients")
        cuisines = data.get("cuisines")
        dish_types = data.get("dishTypes")
        return cls(
            id=int(data["id"]),
            title=str(data["title"]),
            image=data.get("image"),
            summary=data.get("summary"),
            ready_in_minutes=data.get("readyInMinutes"),
            servings=data.get("servings"),
            source_url=data.get("sourceUrl"),
            ingredients=(
                None
                if ingredients is None
                else [Ingredient.from_api(i) for i in ingredients]
            ),
            instructions=data.get("instructions"),
            cuisines=None if cuisines is None else [str(c) for c in cuisines],
            dish_types=None if dish_types is None else [str(d) for d in dish_types],
        )

    @classmethod
    def from_recipe(cls, recipe: Recipe) -> Self:
        return cls(
            id=recipe.id,
            title=recipe.title,
            image=recipe.image,
            summary=recipe.summary,
            ready_in_minutes=recipe.ready_in_minutes,
            servings=recipe.servings,
            source_url=recipe.source_url,
            is_favorite=recipe.is_favorite,
        )

    @property
    def plain_instructions(self) -> str | None:
        return None if self.instructions is None else strip_html(self.instructions)

    def to_recipe(self) -> Recipe:
        return Recipe(
            id=self.id,
            title=self.title,
            image=self.image,
            summary=self.summary,
            ready_in_minutes=self.ready_in_minutes,
            servings=self.servings,
            source_url=self.source_url,
            is_favorite=self.is_favorite,
        )


class SearchResult:
    def __init__(
        self,
        *,
        results: list[Recipe],
        offset: int,
        number: int,
        total_results: int,
    ) -> None:
        self.results = results
        self.offset = offset
        self.number = number
        self.total_results = total_results

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Self:
        return cls(
            results=[Recipe.from_api(r) for r in data["results"]],
            offset=int(data["offset"]),
            number=int(data["number"]),
            total_results=int(data["totalResults"]),
        )


class Comment:
    def __init__(
        self,
        *,
        id: str,
        recipe_id: int,
        user_id: str,
        username: str,
        text: str,
        timestamp: datetime,
    ) -> None:
        self.id = id
        self.recipe_id = recipe_id
        self.user_id = user_id
        self.username = username
        self.text = text
        self.timestamp = timestamp

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, recipe_id={self.recipe_id})>"

    @classmethod
    def from_remote(cls, id: str, recipe_id: int, data: dict[str, Any]) -> Self:
        return cls(
            id=id,
            recipe_id=recipe_id,
            user_id=str(data["userId"]),
            username=str(data["username"]),
            text=str(data["text"]),
            timestamp=from_server_timestamp(data["timestamp"]),
        )


class Rating:
    def __init__(
        self,
        *,
        id: str,
        recipe_id: int,
        user_id: str,
        username: str,
        rating: int,
        review: str | None,
        timestamp: datetime,
    ) -> None:
        self.id = id
        self.recipe_id = recipe_id
        self.user_id = user_id
        self.username = username
        self.rating = rating
        self.review = review
        self.timestamp = timestamp

    def __repr__(self) -> str:
        return f"<Rating(recipe_id={self.recipe_id}, user_id={self.user_id})>"

    @classmethod
    def from_remote(cls, id: str, recipe_id: int, data: dict[str, Any]) -> Self:
        rating = data["rating"]
        if not isinstance(rating, int):
            raise TypeError(f"rating must be an int, got {rating!r}")
        return cls(
            id=id,
            recipe_id=recipe_id,
            user_id=str(data["userId"]),
            username=str(data["username"]),
            rating=rating,
            review=data.get("review") or None,
            timestamp=from_server_timestamp(data["timestamp"]),
        )


class MealType(Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"


class MealPlanEntry:
    def __init__(
        self,
        *,
        id: str,
        user_id: str,
        recipe_id: int,
        recipe_name: str,
        date: datetime,
        meal_type: MealType,
    ) -> None:
        self.id = id
        self.user_id = user_id
        self.recipe_id = recipe_id
        self.recipe_name = recipe_name
        self.date = date
        self.meal_type = meal_type

    def __repr__(self) -> str:
        return (
            f"<MealPlanEntry(id={self.id}, recipe_id={self.recipe_id}, "
            f"date={self.date:%Y-%m-%d}, meal_type={self.meal_type.value})>"
        )

    @classmethod
    def from_remote(cls, id: str, user_id: str, data: dict[str, Any]) -> Self:
        return cls(
            id=id,
            user_id=user_id,
            recipe_id=int(data["recipeId"]),
            recipe_name=str(data["recipeName"]),
            date=from_epoch_seconds(data["date"]),
            meal_type=MealType(data["mealType"]),
        )

    def to_remote(self) -> dict[str, Any]:
        return {
            "recipeId": self.recipe_id,
            "recipeName": self.recipe_name,
            "date": self.date.timestamp(),
            "mealType": self.meal_type.value,
        }


class RecentlyViewedEntry:
    def __init__(
        self,
        *,
        recipe_id: int,
        recipe_name: str,
        image_url: str | None,
        viewed_at: datetime,
    ) -> None:
        self.recipe_id = recipe_id
        self.recipe_name = recipe_name
        self.image_url = image_url
        self.viewed_at = viewed_at

    def __repr__(self) -> str:
        return f"<RecentlyViewedEntry(recipe_id={self.recipe_id})>"

    @classmethod
    def from_remote(cls, data: dict[str, Any]) -> Self:
        return cls(
            recipe_id=int(data["recipeId"]),
            recipe_name=str(data["recipeName"]),
            image_url=data.get("imageURL") or None,
            viewed_at=from_server_timestamp(data["viewedAt"]),
        )


class UserProfile:
    def __init__(
        self,
        *,
        id: str,
        username: str,
        email: str,
        created_at: datetime,
    ) -> None:
        self.id = id
        self.username = username
        self.email = email
        self.created_at = created_at

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id}, username={self.username})>"

    @classmethod
    def from_remote(cls, id: str, data: dict[str, Any]) -> Self:
        return cls(
            id=id,
            username=str(data["username"]),
            email=str(data["email"]),
            created_at=from_epoch_seconds(data["createdAt"]),
        )

    def to_remote(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "email": self.email,
            "createdAt": self.created_at.timestamp(),
        }
