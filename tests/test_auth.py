import pytest

from domain.auth import AuthService, Session
from domain.errors import AuthFailure, AuthRequired, ValidationFailure
from domain.social import SocialStore

from conftest import Backend, Clock


@pytest.mark.asyncio
async def test_sign_up_stores_profile(
    auth: AuthService, store: SocialStore, clock: Clock
) -> None:
    profile = await auth.sign_up(" cook@example.com ", "secret1", " chef ")

    assert profile.id == "uid1"
    assert profile.username == "chef"
    assert profile.email == "cook@example.com"
    assert profile.created_at == clock.now()
    assert auth.is_authenticated
    assert auth.current_user_id == "uid1"
    assert auth.current_username == "chef"

    stored = await store.load_profile("uid1")
    assert stored is not None
    assert stored.username == "chef"


@pytest.mark.asyncio
async def test_sign_in_loads_profile(auth: AuthService, backend: Backend) -> None:
    await auth.sign_up("cook@example.com", "secret1", "chef")
    auth.sign_out()
    assert not auth.is_authenticated
    assert auth.current_username is None

    session = await auth.sign_in("cook@example.com", "secret1")

    assert session.user_id == "uid1"
    assert auth.current_username == "chef"
    assert backend.auth.calls == ["accounts:signUp", "accounts:signInWithPassword"]


@pytest.mark.asyncio
async def test_session_changes_are_published(auth: AuthService) -> None:
    seen: list[Session | None] = []
    auth.session.subscribe(seen.append)

    await auth.sign_up("cook@example.com", "secret1", "chef")
    auth.sign_out()

    assert [s is not None for s in seen] == [True, False]


@pytest.mark.parametrize(
    "email,password,username",
    (
        ("not-an-email", "secret1", "chef"),
        ("cook@example.com", "short", "chef"),
        ("cook@example.com", "secret1", "   "),
    ),
)
@pytest.mark.asyncio
async def test_sign_up_validates_before_calling_out(
    auth: AuthService, backend: Backend, email: str, password: str, username: str
) -> None:
    with pytest.raises(ValidationFailure):
        await auth.sign_up(email, password, username)
    assert backend.auth.calls == []
    assert not auth.is_authenticated


@pytest.mark.asyncio
async def test_duplicate_email(auth: AuthService) -> None:
    await auth.sign_up("cook@example.com", "secret1", "chef")

    with pytest.raises(AuthFailure) as exc:
        await auth.sign_up("cook@example.com", "secret2", "other")

    assert exc.value.reason == "EMAIL_EXISTS"
    assert str(exc.value) == "An account with this email already exists"


@pytest.mark.asyncio
async def test_wrong_password(auth: AuthService) -> None:
    await auth.sign_up("cook@example.com", "secret1", "chef")
    auth.sign_out()

    with pytest.raises(AuthFailure, match="Incorrect email or password"):
        await auth.sign_in("cook@example.com", "wrong-password")
    assert not auth.is_authenticated


def test_unknown_reason_keeps_provider_text() -> None:
    error = AuthFailure("WEAK_PASSWORD : Password should be at least 6 characters")
    assert str(error).startswith("Authentication failed: WEAK_PASSWORD")
    assert str(AuthFailure("TOKEN_EXPIRED")) == "Please sign in again"


@pytest.mark.asyncio
async def test_id_token_is_refreshed_near_expiry(
    auth: AuthService, backend: Backend, clock: Clock
) -> None:
    assert await auth.id_token() is None

    await auth.sign_up("cook@example.com", "secret1", "chef")
    assert await auth.id_token() == "id-uid1-1"

    clock.advance(minutes=59, seconds=30)
    assert await auth.id_token() == "id-uid1-2"
    assert await auth.id_token() == "id-uid1-2"
    assert backend.auth.calls == ["accounts:signUp", "token"]


@pytest.mark.asyncio
async def test_update_username(auth: AuthService, store: SocialStore) -> None:
    await auth.sign_up("cook@example.com", "secret1", "chef")
    await store.add_favorite("uid1", 42)

    profile = await auth.update_username("  head_chef ")

    assert profile.username == "head_chef"
    assert auth.current_username == "head_chef"
    stored = await store.load_profile("uid1")
    assert stored is not None and stored.username == "head_chef"
    assert await store.favorite_ids("uid1") == [42]


@pytest.mark.asyncio
async def test_update_username_requires_sign_in(auth: AuthService) -> None:
    with pytest.raises(AuthRequired):
        await auth.update_username("chef")


@pytest.mark.asyncio
async def test_update_password(auth: AuthService, backend: Backend) -> None:
    await auth.sign_up("cook@example.com", "secret1", "chef")

    await auth.update_password("secret1", "newpass1", "newpass1")

    assert backend.auth.calls[-2:] == ["accounts:signInWithPassword", "accounts:update"]
    assert auth.is_authenticated
    auth.sign_out()
    with pytest.raises(AuthFailure):
        await auth.sign_in("cook@example.com", "secret1")
    await auth.sign_in("cook@example.com", "newpass1")


@pytest.mark.asyncio
async def test_update_password_with_wrong_current_password(auth: AuthService) -> None:
    await auth.sign_up("cook@example.com", "secret1", "chef")

    with pytest.raises(AuthFailure):
        await auth.update_password("not-it", "newpass1", "newpass1")


@pytest.mark.asyncio
async def test_update_password_validates_first(
    auth: AuthService, backend: Backend
) -> None:
    await auth.sign_up("cook@example.com", "secret1", "chef")

    with pytest.raises(ValidationFailure, match="do not match"):
        await auth.update_password("secret1", "newpass1", "newpass2")
    assert backend.auth.calls == ["accounts:signUp"]
