import logging
import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from hackhub.config import Settings
from hackhub.db.database import DataBase
from hackhub.db.enums import ParticipationType
from hackhub.errors import StorageError, TeamTooSmall
from hackhub.services.audit_log import AuditLogService
from hackhub.services.registration import RegistrationService
from hackhub.services.team import TeamService

from conftest import make_team, make_user


@pytest.mark.asyncio
async def test_sign_in_is_audited_without_token(db, owner):
    entries, total = await AuditLogService().list_entries(action="auth.sign_in")

    assert total == 1
    (entry,) = entries
    assert entry.actor_id == owner.user_id
    assert entry.payload["actor"]["email"] == "owner@example.com"
    assert owner.access_token not in str(entry.payload)


@pytest.mark.asyncio
async def test_service_calls_are_audited(db, owner):
    team = await TeamService().create_team(owner, "Audited")

    entries, total = await AuditLogService().list_entries(action="services.team.create_team")

    assert total == 1
    payload = entries[0].payload
    assert entries[0].actor_id == owner.user_id
    assert payload["data"]["args"] == [{"user_id": str(owner.user_id)}, "Audited"]
    assert payload["data"]["result"]["id"] == str(team.id)


@pytest.mark.asyncio
async def test_failures_are_audited_with_error_suffix(db, owner, team_hackathon):
    team, _ = await make_team(db, owner, "a")

    with pytest.raises(TeamTooSmall):
        await RegistrationService().register_team(team_hackathon.id, team.id)

    entries, total = await AuditLogService().list_entries(action="services.registration.register_team.error")
    assert total == 1
    assert "TeamTooSmall" in entries[0].payload["error"]


@pytest.mark.asyncio
async def test_bound_actor_is_used_for_anonymous_calls(db, solo_hackathon):
    audit = AuditLogService()
    user = await make_user(db, "ada")

    token = audit.bind_actor(user.id)
    try:
        await RegistrationService().register_individual(solo_hackathon.id, user.id)
    finally:
        audit.unbind_actor(token)

    entries, _ = await audit.list_entries(action="services.registration.register_individual")
    assert entries[0].actor_id == user.id
    assert audit.current_actor() is None


@pytest.mark.asyncio
async def test_disabled_audit_writes_nothing(db, monkeypatch):
    monkeypatch.setattr(AuditLogService, "_instance", None)
    monkeypatch.setenv("AUDIT_LOG_ENABLED", "0")
    monkeypatch.setattr(Settings, "_instance", None)

    assert await AuditLogService().log(action="noop", actor_id=uuid.uuid4()) is None
    assert await AuditLogService().list_entries() == ([], 0)


def test_serialize_hides_bytes_and_enums():
    audit = AuditLogService()
    assert audit.serialize(b"abc") == "<3 bytes>"
    assert audit.serialize(ParticipationType.TEAM) == "Team"
    assert audit.serialize({"ids": (uuid.UUID(int=1),)}) == {"ids": [str(uuid.UUID(int=1))]}


def _failing_write(*_args, **_kwargs):
    raise OperationalError("INSERT INTO audit_log", {}, Exception("database is unavailable"))


@pytest.mark.asyncio
async def test_failed_audit_write_does_not_hide_the_result(db, solo_hackathon, monkeypatch, caplog):
    user = await make_user(db, "ada")
    monkeypatch.setattr(DataBase, "create_audit_log", AsyncMock(side_effect=_failing_write))

    with caplog.at_level(logging.ERROR, logger="hackhub.audit"):
        reg = await RegistrationService().register_individual(solo_hackathon.id, user.id)

    assert reg.user_id == user.id
    assert await RegistrationService().is_registered(solo_hackathon.id, user.id) is True
    assert "Audit write failed for services.registration.register_individual" in caplog.text


@pytest.mark.asyncio
async def test_failed_audit_write_keeps_the_service_error(db, solo_hackathon, monkeypatch):
    user = await make_user(db, "ada")
    monkeypatch.setattr(DataBase, "create_audit_log", AsyncMock(side_effect=_failing_write))
    monkeypatch.setattr(DataBase, "create_registration", AsyncMock(side_effect=_failing_write))

    with pytest.raises(StorageError) as info:
        await RegistrationService().register_individual(solo_hackathon.id, user.id)

    assert isinstance(info.value.__cause__, OperationalError)
