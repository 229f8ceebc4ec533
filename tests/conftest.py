import uuid

import pytest
import pytest_asyncio

from hackhub.config import Settings
from hackhub.db.database import DataBase
from hackhub.db.enums import ParticipationType
from hackhub.db.schemas.hackathon import HackathonCreate
from hackhub.db.schemas.user import UserCreate, UserRead
from hackhub.services.audit_log import AuditLogService
from hackhub.services.auth import AuthService
from hackhub.services.hackathon import HackathonService
from hackhub.services.invitation import InvitationService
from hackhub.services.local_state import LocalStateStore
from hackhub.services.profile import ProfileService
from hackhub.services.registration import RegistrationService
from hackhub.services.storage import ObjectStorage
from hackhub.services.team import TeamService

PASSWORD = "Passw0rd!"

SINGLETONS = (
    Settings,
    DataBase,
    AuditLogService,
    AuthService,
    LocalStateStore,
    ObjectStorage,
    HackathonService,
    RegistrationService,
    TeamService,
    InvitationService,
    ProfileService,
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Fresh SQLite file, storage dir and singletons for every test."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'hackhub.db'}")
    monkeypatch.setenv("DATABASE_ECHO", "0")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv("STORAGE_PUBLIC_URL", "http://cdn.example.com/storage")
    monkeypatch.setenv("LOCAL_STATE_PATH", str(tmp_path / "state.json"))
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("AUDIT_LOG_ENABLED", "1")
    monkeypatch.setenv("RECENT_HACKATHONS_LIMIT", "6")
    for cls in SINGLETONS:
        monkeypatch.setattr(cls, "_instance", None)
    yield


@pytest_asyncio.fixture
async def db():
    database = DataBase()
    await database.create_all()
    yield database
    await database.dispose()


async def make_user(db: DataBase, name: str, full_name: str | None = None) -> UserRead:
    return await db.create_user(UserCreate(email=f"{name}@example.com", full_name=full_name))


@pytest_asyncio.fixture
async def owner(db):
    """Signed-in session of the user who creates hackathons and teams."""
    return await AuthService().sign_up("owner@example.com", PASSWORD, "Olivia Owner")


@pytest_asyncio.fixture
async def team_hackathon(db, owner):
    return await HackathonService().create_hackathon(
        owner,
        HackathonCreate(title="Team Hack", participation_type=ParticipationType.TEAM, max_team_size=3),
    )


@pytest_asyncio.fixture
async def solo_hackathon(db, owner):
    return await HackathonService().create_hackathon(
        owner,
        HackathonCreate(title="Solo Hack", participation_type=ParticipationType.INDIVIDUAL),
    )


async def make_team(db: DataBase, owner_session, *member_names: str):
    """Team owned by ``owner_session`` with one fresh user per name as members."""
    team = await TeamService().create_team(owner_session, f"team-{uuid.uuid4().hex[:6]}")
    members = []
    for name in member_names:
        user = await make_user(db, name)
        await TeamService().add_member(team.id, user.id)
        members.append(user)
    return team, members
