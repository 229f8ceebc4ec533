import pytest

from hackhub.db.schemas.profile import ProfileUpdate
from hackhub.errors import AuthRequired
from hackhub.services.profile import ProfileService, profile_completion
from hackhub.services.storage import AVATARS_BUCKET, ObjectStorage


@pytest.mark.asyncio
async def test_first_save_creates_profile(db, owner):
    svc = ProfileService()
    assert await svc.get_profile(owner.user_id) is None
    assert await svc.completion(owner.user_id) == 0

    profile = await svc.save_profile(owner, ProfileUpdate(full_name="  Olivia  ", username="olivia"))

    assert profile.id == owner.user_id
    assert profile.full_name == "Olivia"
    assert profile.username == "olivia"
    assert await svc.completion(owner.user_id) == 40


@pytest.mark.asyncio
async def test_partial_update_keeps_other_fields(db, owner):
    svc = ProfileService()
    await svc.save_profile(owner, ProfileUpdate(full_name="Olivia", country="NL"))

    profile = await svc.save_profile(owner, ProfileUpdate(bio="Builds things", country="  "))

    assert profile.full_name == "Olivia"
    assert profile.bio == "Builds things"
    # blank input clears the field
    assert profile.country is None


@pytest.mark.asyncio
async def test_save_requires_session(db):
    with pytest.raises(AuthRequired):
        await ProfileService().save_profile(None, ProfileUpdate(full_name="x"))


def test_completion_counts_filled_fields():
    assert profile_completion(None) == 0


@pytest.mark.asyncio
async def test_upload_avatar_overwrites(db, owner):
    svc = ProfileService()

    url = await svc.upload_avatar(owner, "me.JPG", b"first")
    again = await svc.upload_avatar(owner, "me.jpg", b"second")

    path = f"avatars/{owner.user_id}.jpg"
    assert url == again == f"http://cdn.example.com/storage/{AVATARS_BUCKET}/{path}"
    assert await ObjectStorage().download(AVATARS_BUCKET, path) == b"second"

    profile = await svc.save_profile(owner, ProfileUpdate(avatar_url=url))
    assert profile.avatar_url == url
