import uuid

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from hackhub.db.schemas.team import TeamCreate, TeamUpdate
from hackhub.db.schemas.team_invitation import TeamInvitationCreate
from hackhub.errors import AlreadyTeamMember, AuthRequired, NotFound, TeamTooSmall
from hackhub.services.registration import RegistrationService
from hackhub.services.team import TeamService
from hackhub.utils.time import utcnow

from conftest import make_team, make_user


@pytest.mark.asyncio
async def test_create_team_requires_session(db):
    with pytest.raises(AuthRequired):
        await TeamService().create_team(None, "Nobody's team")


@pytest.mark.asyncio
async def test_create_team_does_not_add_creator_as_member(db, owner):
    team = await TeamService().create_team(owner, "  Rockets  ", "we go fast")

    assert team.name == "Rockets"
    assert team.created_by == owner.user_id
    assert await TeamService().count_members(team.id) == 0


@pytest.mark.asyncio
async def test_blank_team_name_is_rejected(db, owner):
    with pytest.raises(ValidationError):
        await TeamService().create_team(owner, "   ")


@pytest.mark.asyncio
async def test_update_team(db, owner):
    team, _ = await make_team(db, owner)
    svc = TeamService()

    updated = await svc.update_team(TeamUpdate(id=team.id, description="new"))
    assert updated.name == team.name
    assert updated.description == "new"

    assert await svc.update_team(TeamUpdate(id=uuid.uuid4(), name="ghost")) is None


@pytest.mark.asyncio
async def test_add_member_twice(db, owner):
    team, (a,) = await make_team(db, owner, "a")

    with pytest.raises(AlreadyTeamMember):
        await TeamService().add_member(team.id, a.id)


@pytest.mark.asyncio
async def test_add_member_to_missing_team(db):
    user = await make_user(db, "a")
    with pytest.raises(NotFound):
        await TeamService().add_member(uuid.uuid4(), user.id)


@pytest.mark.asyncio
async def test_remove_member_keeps_at_least_two(db, owner):
    team, (a, b, c) = await make_team(db, owner, "a", "b", "c")
    svc = TeamService()

    assert await svc.remove_member(team.id, c.id) is True
    assert await svc.count_members(team.id) == 2

    with pytest.raises(TeamTooSmall):
        await svc.remove_member(team.id, b.id)
    assert await svc.is_member(team.id, b.id) is True


@pytest.mark.asyncio
async def test_remove_from_team_of_one_is_rejected(db, owner):
    team, (a,) = await make_team(db, owner, "a")

    with pytest.raises(TeamTooSmall):
        await TeamService().remove_member(team.id, a.id)


@pytest.mark.asyncio
async def test_remove_non_member(db, owner):
    team, _ = await make_team(db, owner, "a", "b", "c")
    outsider = await make_user(db, "outsider")

    with pytest.raises(NotFound):
        await TeamService().remove_member(team.id, outsider.id)


@pytest.mark.asyncio
async def test_delete_team_cascades(db, owner, team_hackathon):
    team, (a, b) = await make_team(db, owner, "a", "b")
    await RegistrationService().register_team(team_hackathon.id, team.id)
    await db.create_invitation(TeamInvitationCreate(team_id=team.id, email="new@example.com", invited_by=owner.user_id))

    assert await TeamService().delete_team(team.id) is True

    assert await TeamService().get_team(team.id) is None
    assert await db.get_memberships_by_team(team.id) == []
    assert await db.list_invitations_by_team(team.id) == []
    assert await RegistrationService().is_team_registered(team_hackathon.id, team.id) is False


@pytest.mark.asyncio
async def test_delete_missing_team(db):
    assert await TeamService().delete_team(uuid.uuid4()) is False


@pytest.mark.asyncio
async def test_resume_interrupted_deletion(db, owner, team_hackathon):
    team, _ = await make_team(db, owner, "a", "b")
    other, _ = await make_team(db, owner, "c", "d")
    await RegistrationService().register_team(team_hackathon.id, team.id)
    # cascade stopped right after the mark was written
    await db.mark_team_deleting(team.id, utcnow())
    await db.delete_registrations_by_team(team.id)

    resumed = await TeamService().resume_pending_deletions()

    assert resumed == [team.id]
    assert await db.get_team(team.id) is None
    assert await db.count_team_members(team.id) == 0
    assert await db.get_team(other.id) is not None
    assert await TeamService().resume_pending_deletions() == []


@pytest.mark.asyncio
async def test_list_user_teams_lists_each_team_once(db, owner):
    owned, _ = await make_team(db, owner, "a", "b")
    await TeamService().add_member(owned.id, owner.user_id)
    other_owner = await make_user(db, "boss")
    foreign = await db.create_team(TeamCreate(name="Foreign", created_by=other_owner.id))
    await TeamService().add_member(foreign.id, owner.user_id)
    unrelated = await db.create_team(TeamCreate(name="Unrelated", created_by=other_owner.id))

    teams = await TeamService().list_user_teams(owner.user_id)

    ids = [t.id for t in teams]
    assert sorted(ids) == sorted([owned.id, foreign.id])
    assert unrelated.id not in ids
    owned_view = next(t for t in teams if t.id == owned.id)
    assert owner.user_id in owned_view.member_ids
    assert len(owned_view.members) == 3


@pytest.mark.asyncio
async def test_list_created_teams(db, owner):
    team, _ = await make_team(db, owner, "a")
    teams = await TeamService().list_created_teams(owner.user_id)
    assert [t.id for t in teams] == [team.id]


CASCADE_STEPS = (
    "delete_registrations_by_team",
    "delete_team_members",
    "delete_invitations_by_team",
    "delete_team",
)


@pytest.mark.asyncio
async def test_delete_team_runs_steps_in_order(db, owner, team_hackathon, monkeypatch):
    team, _ = await make_team(db, owner, "a", "b")
    await RegistrationService().register_team(team_hackathon.id, team.id)
    calls = []

    def recording(name):
        original = getattr(db, name)

        async def step(team_id):
            calls.append(name)
            return await original(team_id)

        return step

    for name in CASCADE_STEPS:
        monkeypatch.setattr(db, name, recording(name))

    await TeamService().delete_team(team.id)

    assert calls == list(CASCADE_STEPS)


@pytest.mark.asyncio
async def test_cascade_stopped_half_way_is_resumed(db, owner, team_hackathon, monkeypatch):
    team, _ = await make_team(db, owner, "a", "b")
    await RegistrationService().register_team(team_hackathon.id, team.id)
    original = db.delete_team_members
    broken = True

    async def delete_team_members(team_id):
        if broken:
            raise OperationalError("DELETE FROM team_member", {}, Exception("connection lost"))
        return await original(team_id)

    monkeypatch.setattr(db, "delete_team_members", delete_team_members)

    with pytest.raises(OperationalError):
        await TeamService().delete_team(team.id)

    assert await RegistrationService().is_team_registered(team_hackathon.id, team.id) is False
    stuck = await db.get_team(team.id)
    assert stuck is not None
    assert stuck.deleting_at is not None
    assert await db.count_team_members(team.id) == 2

    broken = False
    assert await TeamService().resume_pending_deletions() == [team.id]
    assert await db.get_team(team.id) is None
    assert await db.count_team_members(team.id) == 0
