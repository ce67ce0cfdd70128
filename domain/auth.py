"""Email and password accounts against the Firebase auth REST api.

The signed-in session and the user's profile are held in `State` containers
so whatever shows them can subscribe to changes.
"""

from datetime import datetime, timedelta, timezone
import json
import logging
from typing import TYPE_CHECKING, Any, Callable

import httpx

from domain.errors import AuthFailure, AuthRequired, HttpStatus
from domain.http import client_factory, request_json
from domain.models import UserProfile
from domain.state import State
from domain.validation import (
    validate_credentials,
    validate_password_change,
    validate_username,
)

if TYPE_CHECKING:
    from domain.social import SocialStore


logger = logging.getLogger(__name__)


IDENTITY_URL = "https://identitytoolkit.googleapis.com/v1"
TOKEN_URL = "https://securetoken.googleapis.com/v1/token"
# Refresh a little before the provider would reject the token.
EXPIRY_MARGIN = timedelta(minutes=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def auth_client_factory(
    *, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    return client_factory(transport=transport)


class Session:
    def __init__(
        self,
        *,
        user_id: str,
        email: str,
        id_token: str,
        refresh_token: str,
        expires_at: datetime,
    ) -> None:
        self.user_id = user_id
        self.email = email
        self.id_token = id_token
        self.refresh_token = refresh_token
        self.expires_at = expires_at

    def __repr__(self) -> str:
        return f"<Session(user_id={self.user_id})>"


class AuthService:
    def __init__(
        self,
        *,
        api_key: str,
        store: "SocialStore",
        client: httpx.AsyncClient | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.api_key = api_key
        self.store = store
        self._client = auth_client_factory() if client is None else client
        self.now = now
        self.session: State[Session | None] = State(None)
        self.profile: State[UserProfile | None] = State(None)

    @property
    def is_authenticated(self) -> bool:
        return self.session.value is not None

    @property
    def current_user_id(self) -> str | None:
        session = self.session.value
        return None if session is None else session.user_id

    @property
    def current_username(self) -> str | None:
        profile = self.profile.value
        return None if profile is None else profile.username

    def require_user_id(self) -> str:
        user_id = self.current_user_id
        if user_id is None:
            raise AuthRequired()
        return user_id

    async def _call(self, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            return await request_json(
                self._client, "POST", url, params={"key": self.api_key}, **kwargs
            )
        except HttpStatus as e:
            if e.code != 400:
                raise
            try:
                reason = json.loads(e.detail)["error"]["message"]
            except (json.JSONDecodeError, KeyError, TypeError):
                raise e from None
            raise AuthFailure(reason) from e

    def _start_session(self, data: dict[str, Any]) -> Session:
        session = Session(
            user_id=data["localId"],
            email=data["email"],
            id_token=data["idToken"],
            refresh_token=data["refreshToken"],
            expires_at=self.now() + timedelta(seconds=int(data["expiresIn"])),
        )
        self.session.set(session)
        return session

    async def sign_up(self, email: str, password: str, username: str) -> UserProfile:
        email = validate_credentials(email, password)
        username = validate_username(username)

        data = await self._call(
            f"{IDENTITY_URL}/accounts:signUp",
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        session = self._start_session(data)
        logger.info("Created account %s", session.user_id)

        profile = UserProfile(
            id=session.user_id,
            username=username,
            email=email,
            created_at=self.now(),
        )
        await self.store.save_profile(profile)
        self.profile.set(profile)
        return profile

    async def sign_in(self, email: str, password: str) -> Session:
        email = validate_credentials(email, password)
        data = await self._call(
            f"{IDENTITY_URL}/accounts:signInWithPassword",
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        session = self._start_session(data)
        logger.info("Signed in %s", session.user_id)
        await self.load_profile()
        return session

    def sign_out(self) -> None:
        self.session.set(None)
        self.profile.set(None)

    async def load_profile(self) -> UserProfile | None:
        user_id = self.require_user_id()
        profile = await self.store.load_profile(user_id)
        if profile is None:
            logger.warning("No profile stored for %s", user_id)
        self.profile.set(profile)
        return profile

    async def id_token(self) -> str | None:
        """The current id token, refreshed first when it is about to expire."""
        session = self.session.value
        if session is None:
            return None
        if self.now() + EXPIRY_MARGIN < session.expires_at:
            return session.id_token

        data = await self._call(
            TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": session.refresh_token,
            },
        )
        session.id_token = data["id_token"]
        session.refresh_token = data["refresh_token"]
        session.expires_at = self.now() + timedelta(seconds=int(data["expires_in"]))
        self.session.set(session)
        logger.debug("Refreshed id token for %s", session.user_id)
        return session.id_token

    async def update_username(self, username: str) -> UserProfile:
        username = validate_username(username)
        session = self.session.value
        if session is None:
            raise AuthRequired()
        await self.store.update_username(session.user_id, username)
        current = self.profile.value
        profile = UserProfile(
            id=session.user_id,
            username=username,
            email=session.email if current is None else current.email,
            created_at=self.now() if current is None else current.created_at,
        )
        self.profile.set(profile)
        return profile

    async def update_password(
        self, current_password: str, new_password: str, confirm_password: str
    ) -> None:
        validate_password_change(current_password, new_password, confirm_password)
        session = self.session.value
        if session is None:
            raise AuthRequired()

        # Re-authenticate first; the provider rejects stale credentials.
        data = await self._call(
            f"{IDENTITY_URL}/accounts:signInWithPassword",
            json={
                "email": session.email,
                "password": current_password,
                "returnSecureToken": True,
            },
        )
        self._start_session(data)
        data = await self._call(
            f"{IDENTITY_URL}/accounts:update",
            json={
                "idToken": data["idToken"],
                "password": new_password,
                "returnSecureToken": True,
            },
        )
        self._start_session({**data, "email": data.get("email", session.email)})
        logger.info("Updated password for %s", session.user_id)

    async def close(self) -> None:
        await self._client.aclose()
