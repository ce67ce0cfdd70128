import asyncio
from datetime import datetime, timedelta, timezone
import json
from typing import Any
from urllib.parse import parse_qs

from databases import Database
import httpx
import pytest
import pytest_asyncio

from db import RecipeCache
from domain.auth import AuthService
from domain.realtime import RealtimeDatabase
from domain.recipe_api import RecipeApiClient, recipe_api_client_factory
from domain.social import SocialStore
from domain.synchronizer import RecipeSynchronizer


API_URL = "https://api.spoonacular.com"
FIREBASE_URL = "https://planner-test.firebaseio.com"


def json_response(value: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(value).encode(),
        headers={"content-type": "application/json"},
    )


def recipe_json(id: int, title: str, **extra: Any) -> dict[str, Any]:
    return {
        "id": id,
        "title": title,
        "image": f"https://img.spoonacular.com/recipes/{id}-312x231.jpg",
        "summary": f"<b>{title}</b> is a <i>weeknight</i> favourite.",
        "readyInMinutes": 25,
        "servings": 4,
        "sourceUrl": f"https://example.com/recipes/{id}",
        **extra,
    }


def detail_json(id: int, title: str, **extra: Any) -> dict[str, Any]:
    return recipe_json(
        id,
        title,
        extendedIngredients=[
            {"id": 20420, "name": "pasta", "amount": 200.0, "unit": "g", "image": None},
            {"id": 1123, "name": "egg", "amount": 2, "unit": "", "image": "egg.png"},
        ],
        instructions="<ol><li>Boil the pasta.</li><li>Whisk the eggs.</li></ol>",
        cuisines=["Italian"],
        dishTypes=["main course"],
        **extra,
    )


class Clock:
    def __init__(self, start: datetime | None = None) -> None:
        self.current = (
            datetime(2024, 3, 1, 12, tzinfo=timezone.utc) if start is None else start
        )

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class FakeRecipeApi:
    """Serves canned recipes the way the search, detail and random endpoints do."""

    def __init__(self, recipes: list[dict[str, Any]] | None = None) -> None:
        self.recipes = [] if recipes is None else recipes
        self.online = True
        self.status: int | None = None
        self.queries: list[str] = []
        self.started = asyncio.Event()
        self.gate: asyncio.Event | None = None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if not self.online:
            raise httpx.ConnectError("The Internet connection appears to be offline.")
        if self.status is not None:
            return json_response({"status": "failure"}, self.status)

        params = request.url.params
        path = request.url.path
        if path == "/recipes/complexSearch":
            query = params["query"]
            self.queries.append(query)
            self.started.set()
            if self.gate is not None:
                await self.gate.wait()
            matches = [
                r
                for r in self.recipes
                if query == "popular" or query.lower() in r["title"].lower()
            ]
            offset, number = int(params["offset"]), int(params["number"])
            return json_response(
                {
                    "results": matches[offset : offset + number],
                    "offset": offset,
                    "number": number,
                    "totalResults": len(matches),
                }
            )
        if path == "/recipes/random":
            return json_response({"recipes": self.recipes[: int(params["number"])]})
        if path.endswith("/information"):
            id = int(path.split("/")[2])
            for r in self.recipes:
                if r["id"] == id:
                    return json_response(r)
            return json_response({"status": "failure", "code": 404}, 404)
        return json_response({"status": "failure"}, 404)


class FakeFirebase:
    """An in-memory realtime database speaking the REST protocol."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.clock = 1_709_294_400_000
        self.pushes = 0
        self.requests: list[httpx.Request] = []
        self.online = True
        self.fail_writes = False

    def tick(self) -> int:
        self.clock += 1000
        return self.clock

    def resolve(self, value: Any) -> Any:
        if value == {".sv": "timestamp"}:
            return self.tick()
        if isinstance(value, dict):
            return {k: self.resolve(v) for k, v in value.items()}
        return value

    def get(self, keys: list[str]) -> Any:
        node: Any = self.data
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
        return node

    def put(self, keys: list[str], value: Any) -> None:
        if not keys:
            self.data = value if isinstance(value, dict) else {}
            return
        node = self.data
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        if value is None:
            node.pop(keys[-1], None)
        else:
            node[keys[-1]] = value

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.online:
            raise httpx.ConnectError("offline")
        if self.fail_writes and request.method != "GET":
            return json_response({"error": "Permission denied"}, 401)

        path = request.url.path
        assert path.endswith(".json")
        keys = [k for k in path[: -len(".json")].split("/") if k]
        body = json.loads(request.content) if request.content else None

        match request.method:
            case "GET":
                value = self.get(keys)
                if "orderBy" in request.url.params and isinstance(value, dict):
                    child = json.loads(request.url.params["orderBy"])
                    items = sorted(value.items(), key=lambda kv: kv[1].get(child, 0))
                    if "limitToLast" in request.url.params:
                        items = items[-int(request.url.params["limitToLast"]) :]
                    value = dict(items)
                return json_response(value)
            case "PUT":
                value = self.resolve(body)
                self.put(keys, value)
                return json_response(value)
            case "PATCH":
                value = self.resolve(body)
                for key, child in value.items():
                    self.put(keys + [key], child)
                return json_response(value)
            case "POST":
                self.pushes += 1
                key = f"-Nq{self.pushes:05d}"
                self.put(keys + [key], self.resolve(body))
                return json_response({"name": key})
            case "DELETE":
                self.put(keys, None)
                return json_response(None)
        return json_response({"error": "bad method"}, 405)


class FakeAuthProvider:
    """Email/password accounts as the identity toolkit api hands them out."""

    def __init__(self) -> None:
        self.users: dict[str, dict[str, str]] = {}
        self.issued = 0
        self.calls: list[str] = []

    def _tokens(self, user: dict[str, str]) -> dict[str, str]:
        self.issued += 1
        return {
            "idToken": f"id-{user['localId']}-{self.issued}",
            "refreshToken": f"refresh-{user['localId']}",
            "expiresIn": "3600",
            "localId": user["localId"],
            "email": user["email"],
        }

    @staticmethod
    def error(message: str) -> httpx.Response:
        return json_response(
            {"error": {"code": 400, "message": message, "errors": []}}, 400
        )

    async def handler(self, request: httpx.Request) -> httpx.Response:
        action = request.url.path.rsplit("/", 1)[-1]
        self.calls.append(action)
        assert request.url.params["key"] == "test-key"

        if request.url.host == "securetoken.googleapis.com":
            form = parse_qs(request.content.decode())
            uid = form["refresh_token"][0].removeprefix("refresh-")
            user = next(u for u in self.users.values() if u["localId"] == uid)
            tokens = self._tokens(user)
            return json_response(
                {
                    "id_token": tokens["idToken"],
                    "refresh_token": tokens["refreshToken"],
                    "expires_in": tokens["expiresIn"],
                    "user_id": uid,
                }
            )

        body = json.loads(request.content)
        match action:
            case "accounts:signUp":
                if body["email"] in self.users:
                    return self.error("EMAIL_EXISTS")
                user = {
                    "email": body["email"],
                    "password": body["password"],
                    "localId": f"uid{len(self.users) + 1}",
                }
                self.users[body["email"]] = user
                return json_response(self._tokens(user))
            case "accounts:signInWithPassword":
                user = self.users.get(body["email"])
                if user is None or user["password"] != body["password"]:
                    return self.error("INVALID_LOGIN_CREDENTIALS")
                return json_response({**self._tokens(user), "registered": True})
            case "accounts:update":
                uid = body["idToken"].split("-")[1]
                user = next(u for u in self.users.values() if u["localId"] == uid)
                user["password"] = body["password"]
                return json_response(self._tokens(user))
        return json_response({"error": {"message": "NOT_FOUND"}}, 404)


class Backend:
    """Routes requests to whichever fake owns the host."""

    def __init__(self) -> None:
        self.api = FakeRecipeApi()
        self.firebase = FakeFirebase()
        self.auth = FakeAuthProvider()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == httpx.URL(API_URL).host:
            return await self.api.handler(request)
        if host == httpx.URL(FIREBASE_URL).host:
            return await self.firebase.handler(request)
        return await self.auth.handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def backend() -> Backend:
    return Backend()


@pytest_asyncio.fixture
async def database(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'recipes.db'}")
    await database.connect()
    yield database
    await database.disconnect()


@pytest_asyncio.fixture
async def cache(database: Database, clock: Clock) -> RecipeCache:
    cache = RecipeCache(database, now=clock.now)
    await cache.create_schema()
    return cache


@pytest_asyncio.fixture
async def api(backend: Backend):
    api = RecipeApiClient(
        api_key="test-key",
        client=recipe_api_client_factory(API_URL, transport=backend.transport),
    )
    yield api
    await api.close()


@pytest_asyncio.fixture
async def store(backend: Backend):
    realtime = RealtimeDatabase(
        client=httpx.AsyncClient(base_url=FIREBASE_URL, transport=backend.transport)
    )
    yield SocialStore(realtime)
    await realtime.close()


@pytest_asyncio.fixture
async def auth(backend: Backend, store: SocialStore, clock: Clock):
    auth = AuthService(
        api_key="test-key",
        store=store,
        client=httpx.AsyncClient(transport=backend.transport),
        now=clock.now,
    )
    yield auth
    await auth.close()


@pytest.fixture
def synchronizer(
    api: RecipeApiClient, cache: RecipeCache, store: SocialStore
) -> RecipeSynchronizer:
    return RecipeSynchronizer(api=api, cache=cache, store=store)
