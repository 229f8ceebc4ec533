import pytest

from hackhub.db.enums import AuthEvent, AuthProvider
from hackhub.errors import AuthError, AuthRequired
from hackhub.services.auth import AuthService, require_identity
from hackhub.services.local_state import CURRENT_USER_KEY, LocalStateStore

from conftest import PASSWORD


@pytest.mark.asyncio
async def test_sign_up_opens_session(db):
    auth = AuthService()

    session = await auth.sign_up(" Ada@Example.com ", PASSWORD, "  Ada Lovelace ")

    assert session.identity.email == "ada@example.com"
    assert session.identity.full_name == "Ada Lovelace"
    assert session.identity.provider == AuthProvider.EMAIL
    assert auth.get_current_session() == session
    assert auth.get_session(session.access_token) == session
    assert LocalStateStore().get(CURRENT_USER_KEY) == {"id": str(session.user_id), "email": "ada@example.com"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "password",
    ["Short1", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere", "Aa1" + "x" * 70],
)
async def test_sign_up_password_rules(db, password):
    with pytest.raises(AuthError):
        await AuthService().sign_up("ada@example.com", password)


@pytest.mark.asyncio
async def test_sign_up_rejects_bad_email(db):
    with pytest.raises(AuthError):
        await AuthService().sign_up("not-an-email", PASSWORD)


@pytest.mark.asyncio
async def test_sign_up_twice(db):
    await AuthService().sign_up("ada@example.com", PASSWORD)

    with pytest.raises(AuthError, match="already registered"):
        await AuthService().sign_up("ADA@example.com", PASSWORD)


@pytest.mark.asyncio
async def test_sign_in_with_password(db):
    auth = AuthService()
    first = await auth.sign_up("ada@example.com", PASSWORD)

    session = await auth.sign_in_with_password("ada@example.com", PASSWORD)

    assert session.user_id == first.user_id
    assert session.access_token != first.access_token


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email,password",
    [("ada@example.com", "Wr0ngPass"), ("nobody@example.com", PASSWORD), ("ada@example.com", "abc")],
)
async def test_sign_in_failures(db, email, password):
    await AuthService().sign_up("ada@example.com", PASSWORD)

    with pytest.raises(AuthError):
        await AuthService().sign_in_with_password(email, password)


@pytest.mark.asyncio
async def test_oauth_creates_then_reuses_account(db):
    auth = AuthService()

    first = await auth.sign_in_with_oauth("github", "dev@example.com", "Dev", "http://img.example.com/dev.png")
    second = await auth.sign_in_with_oauth(AuthProvider.GITHUB, "dev@example.com", full_name="Dev Renamed")

    assert first.identity.provider == AuthProvider.GITHUB
    assert second.user_id == first.user_id
    assert second.identity.full_name == "Dev Renamed"
    assert second.identity.avatar_url == "http://img.example.com/dev.png"


@pytest.mark.asyncio
async def test_oauth_email_taken_by_other_provider(db):
    await AuthService().sign_up("ada@example.com", PASSWORD)

    with pytest.raises(AuthError, match="another provider"):
        await AuthService().sign_in_with_oauth("google", "ada@example.com")


@pytest.mark.asyncio
async def test_oauth_unknown_provider(db):
    with pytest.raises(AuthError):
        await AuthService().sign_in_with_oauth("myspace", "ada@example.com")
    with pytest.raises(AuthError):
        await AuthService().sign_in_with_oauth("email", "ada@example.com")


@pytest.mark.asyncio
async def test_sign_out_clears_state(db):
    auth = AuthService()
    session = await auth.sign_up("ada@example.com", PASSWORD)

    await auth.sign_out()

    assert auth.get_current_session() is None
    assert auth.get_session(session.access_token) is None
    assert LocalStateStore().get(CURRENT_USER_KEY) is None
    # nothing to do the second time
    await auth.sign_out()


@pytest.mark.asyncio
async def test_listeners_receive_events(db):
    auth = AuthService()
    events = []

    def sync_listener(event, identity):
        events.append((event, identity.email if identity else None))

    async def async_listener(event, identity):
        events.append(("async", event))

    def broken_listener(event, identity):
        raise RuntimeError("boom")

    auth.on_auth_state_change(broken_listener)
    auth.on_auth_state_change(sync_listener)
    unsubscribe = auth.on_auth_state_change(async_listener)

    await auth.sign_up("ada@example.com", PASSWORD)
    unsubscribe()
    await auth.sign_out()

    assert events == [
        (AuthEvent.SIGNED_IN, "ada@example.com"),
        ("async", AuthEvent.SIGNED_IN),
        (AuthEvent.SIGNED_OUT, None),
    ]


@pytest.mark.asyncio
async def test_refresh_identity_picks_up_metadata(db):
    auth = AuthService()
    session = await auth.sign_in_with_oauth("google", "g@example.com", "Old")
    await db.update_user_metadata(session.user_id, full_name="New")

    refreshed = await auth.refresh_identity(session)

    assert refreshed.identity.full_name == "New"
    assert refreshed.access_token == session.access_token
    assert auth.get_current_session() == refreshed


def test_require_identity():
    with pytest.raises(AuthRequired):
        require_identity(None, "do things")
