import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, Optional, ClassVar, Self, Any, List, Dict, Tuple

from sqlalchemy import select, func, delete, or_
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.exc import IntegrityError

from hackhub.db.models._base import Base
from hackhub.db.models.user import User
from hackhub.db.models.profile import Profile
from hackhub.db.models.hackathon import Hackathon
from hackhub.db.models.registration import Registration
from hackhub.db.models.team import Team
from hackhub.db.models.team_member import TeamMember
from hackhub.db.models.team_invitation import TeamInvitation
from hackhub.db.models.audit_log import AuditLog
from hackhub.db.schemas.user import UserCreate, UserRead, UserCredentials
from hackhub.db.schemas.profile import ProfileRead, ProfileUpdate
from hackhub.db.schemas.hackathon import HackathonCreate, HackathonRead, HackathonUpdate
from hackhub.db.schemas.registration import RegistrationCreate, RegistrationRead
from hackhub.db.schemas.team import TeamCreate, TeamRead, TeamUpdate
from hackhub.db.schemas.team_member import TeamMemberCreate, TeamMemberRead
from hackhub.db.schemas.team_invitation import TeamInvitationCreate, TeamInvitationRead
from hackhub.db.schemas.audit_log import AuditLogCreate, AuditLogRead
from hackhub.db.enums import InvitationStatus
from hackhub.config import Settings
from hackhub.utils.sentinels import provided
from hackhub.utils.time import utcnow


UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """
    True when an IntegrityError was caused by a UNIQUE constraint.

    PostgreSQL drivers expose the SQLSTATE (``sqlstate`` on asyncpg,
    ``pgcode`` on psycopg); SQLite only reports it in the message.
    """
    orig = getattr(exc, "orig", None)
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code is not None:
            return str(code) == UNIQUE_VIOLATION_SQLSTATE
    # asyncpg errors arrive wrapped by the SQLAlchemy adapter
    cause = getattr(orig, "__cause__", None)
    code = getattr(cause, "sqlstate", None)
    if code is not None:
        return str(code) == UNIQUE_VIOLATION_SQLSTATE
    message = str(orig if orig is not None else exc)
    return "UNIQUE constraint failed" in message or "duplicate key value" in message


class DataBase():
    """
    Async SQLAlchemy database singleton.
    Usage:
        db = DataBase()  # same instance everywhere
        async with db.session() as s:
            ...

    Every ``get_*`` method returns ``None`` when the row does not exist;
    every other driver error propagates unchanged.
    """
    _instance: ClassVar[Optional["DataBase"]] = None

    def __new__(cls, *args: Any, **kwargs: Any) -> Self:
        if cls._instance is None:
            cls._instance = super().__new__(cls)

        return cls._instance

    def __init__(self, echo: Optional[bool] = None) -> None:
        if getattr(self, "_initialized", False):
            return

        settings = Settings()
        self._engine: AsyncEngine = create_async_engine(
            settings.database_url,
            echo=settings.database_echo if echo is None else echo,
            pool_pre_ping=True,
        )
        self._sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            autoflush=False,
        )

        self._initialized = True

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Provides an AsyncSession with safe commit/rollback semantics.
        """
        session: AsyncSession = self._sessionmaker()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # --- schema management helpers ---

    async def create_all(self) -> None:
        """
        Create tables based on Base metadata. Use only in dev/tests; prefer migrations in prod.
        """
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    # ---------------------------------
    # Identities
    # ---------------------------------

    async def create_user(self, data: UserCreate) -> UserRead:
        """
        Create an identity row.

        Raises:
            IntegrityError: when the email is already taken.
        """
        user = User(
            email=str(data.email).lower(),
            password_hash=data.password_hash,
            provider=data.provider,
            full_name=data.full_name,
            avatar_url=data.avatar_url,
        )
        async with self.session() as s:
            s.add(user)
            await s.flush()
            await s.refresh(user)

        return UserRead.model_validate(user)

    async def get_user_by_id(self, uid: Optional[uuid.UUID] = None) -> Optional[UserRead]:
        if uid is None:
            return None

        async with self.session() as s:
            row = await s.get(User, uid)

        return UserRead.model_validate(row) if row is not None else None

    async def get_credentials_by_email(self, email: Optional[str] = None) -> Optional[UserCredentials]:
        """
        Fetch an identity together with its password hash (case-insensitive email match).
        """
        if not email:
            return None

        async with self.session() as s:
            stmt = select(User).where(User.email == email.strip().lower())
            row = (await s.execute(stmt)).scalar_one_or_none()

        return UserCredentials.model_validate(row) if row is not None else None

    async def get_users(self, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, UserRead]:
        ids = list(set(user_ids))
        if not ids:
            return {}

        async with self.session() as s:
            rows = (await s.execute(select(User).where(User.id.in_(ids)))).scalars().all()

        return {r.id: UserRead.model_validate(r) for r in rows}

    async def update_user_metadata(
        self,
        uid: uuid.UUID,
        *,
        full_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Optional[UserRead]:
        """Overwrite identity metadata with the non-null values given."""
        async with self.session() as s:
            row = await s.get(User, uid)
            if row is None:
                return None
            if full_name is not None:
                row.full_name = full_name
            if avatar_url is not None:
                row.avatar_url = avatar_url
            await s.flush()
            await s.refresh(row)

        return UserRead.model_validate(row)

    # ---------------------------------
    # Profiles
    # ---------------------------------

    async def get_profile(self, profile_id: uuid.UUID) -> Optional[ProfileRead]:
        async with self.session() as s:
            row = await s.get(Profile, profile_id)

        return ProfileRead.model_validate(row) if row is not None else None

    async def get_profiles(self, profile_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, ProfileRead]:
        ids = list(set(profile_ids))
        if not ids:
            return {}

        async with self.session() as s:
            rows = (await s.execute(select(Profile).where(Profile.id.in_(ids)))).scalars().all()

        return {r.id: ProfileRead.model_validate(r) for r in rows}

    @staticmethod
    def _apply_profile(row: Profile, data: ProfileUpdate) -> None:
        for field in ("full_name", "username", "bio", "country", "avatar_url"):
            value = getattr(data, field)
            if provided(value):
                setattr(row, field, value)
        row.updated_at = utcnow()

    async def update_profile(self, profile_id: uuid.UUID, data: ProfileUpdate) -> Optional[ProfileRead]:
        """
        Partially update a profile. Returns None when no profile row exists yet.
        """
        async with self.session() as s:
            row = await s.get(Profile, profile_id)
            if row is None:
                return None
            self._apply_profile(row, data)
            await s.flush()
            await s.refresh(row)

        return ProfileRead.model_validate(row)

    async def upsert_profile(self, profile_id: uuid.UUID, data: ProfileUpdate) -> ProfileRead:
        """
        Create the profile row when missing, otherwise update it in place.

        Semantics mirror ``INSERT ... ON CONFLICT (id) DO UPDATE``: a concurrent
        insert of the same id surfaces as IntegrityError.
        """
        async with self.session() as s:
            row = await s.get(Profile, profile_id)
            if row is None:
                row = Profile(id=profile_id)
                s.add(row)
            self._apply_profile(row, data)
            await s.flush()
            await s.refresh(row)

        return ProfileRead.model_validate(row)

    # ---------------------------------
    # Hackathons
    # ---------------------------------

    async def list_hackathons(self) -> List[HackathonRead]:
        """All hackathons ordered by start date (undated last)."""
        async with self.session() as s:
            stmt = select(Hackathon).order_by(
                Hackathon.start_date.is_(None),
                Hackathon.start_date.asc(),
                Hackathon.created_at.asc(),
            )
            rows = (await s.execute(stmt)).scalars().all()

        return [HackathonRead.model_validate(r) for r in rows]

    async def list_recent_hackathons(self, *, limit: int) -> List[HackathonRead]:
        limit = max(0, int(limit))
        if limit == 0:
            return []

        async with self.session() as s:
            stmt = select(Hackathon).order_by(Hackathon.created_at.desc(), Hackathon.id.asc()).limit(limit)
            rows = (await s.execute(stmt)).scalars().all()

        return [HackathonRead.model_validate(r) for r in rows]

    async def list_hackathons_by_creator(self, user_id: uuid.UUID) -> List[HackathonRead]:
        async with self.session() as s:
            stmt = (
                select(Hackathon)
                .where(Hackathon.created_by == user_id)
                .order_by(Hackathon.created_at.desc(), Hackathon.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()

        return [HackathonRead.model_validate(r) for r in rows]

    async def get_hackathon(self, hackathon_id: Optional[uuid.UUID]) -> Optional[HackathonRead]:
        """
        Fetch a hackathon by its UUID.

        Returns:
            Optional[HackathonRead]: DTO if found; otherwise None.
        """
        if not hackathon_id:
            return None

        async with self.session() as s:
            row = await s.get(Hackathon, hackathon_id)

        return HackathonRead.model_validate(row) if row is not None else None

    async def create_hackathon(self, payload: HackathonCreate, created_by: Optional[uuid.UUID]) -> HackathonRead:
        row = Hackathon(
            title=payload.title,
            description=payload.description,
            start_date=payload.start_date,
            end_date=payload.end_date,
            location=payload.location,
            prize=payload.prize,
            image_url=payload.image_url,
            participation_type=payload.participation_type,
            max_team_size=payload.max_team_size,
            created_by=created_by,
        )
        async with self.session() as s:
            s.add(row)
            await s.flush()
            await s.refresh(row)

        return HackathonRead.model_validate(row)

    async def update_hackathon(self, payload: HackathonUpdate) -> Optional[HackathonRead]:
        """
        Partially update a hackathon by id.

        Notes:
            Only fields explicitly provided (i.e., not MISSING) are updated.
            Passing None for a provided optional field writes NULL.

        Returns:
            Optional[HackathonRead]: updated snapshot, or None if no such row.
        """
        async with self.session() as s:
            row = await s.get(Hackathon, payload.id)
            if row is None:
                return None

            for field in (
                "title", "description", "start_date", "end_date", "location",
                "prize", "image_url", "participation_type", "max_team_size",
            ):
                value = getattr(payload, field)
                if provided(value):
                    setattr(row, field, value)

            await s.flush()
            await s.refresh(row)

        return HackathonRead.model_validate(row)

    async def delete_hackathon(self, hackathon_id: uuid.UUID) -> int:
        async with self.session() as s:
            res = await s.execute(delete(Hackathon).where(Hackathon.id == hackathon_id))
            return res.rowcount or 0

    # ---------------------------------
    # Registrations
    # ---------------------------------

    async def create_registration(self, payload: RegistrationCreate) -> RegistrationRead:
        """
        Insert a registration row.

        Raises:
            IntegrityError: on the (hackathon, user) / (hackathon, team) uniqueness
                constraints; the caller classifies it.
        """
        row = Registration(
            hackathon_id=payload.hackathon_id,
            user_id=payload.user_id,
            team_id=payload.team_id,
        )
        async with self.session() as s:
            s.add(row)
            await s.flush()
            await s.refresh(row)

        return RegistrationRead.model_validate(row)

    async def find_registration(
        self,
        hackathon_id: uuid.UUID,
        *,
        user_id: Optional[uuid.UUID] = None,
        team_id: Optional[uuid.UUID] = None,
    ) -> Optional[RegistrationRead]:
        stmt = select(Registration).where(Registration.hackathon_id == hackathon_id)
        if user_id is not None:
            stmt = stmt.where(Registration.user_id == user_id)
        if team_id is not None:
            stmt = stmt.where(Registration.team_id == team_id)

        async with self.session() as s:
            row = (await s.execute(stmt.limit(1))).scalars().first()

        return RegistrationRead.model_validate(row) if row is not None else None

    async def list_registrations(self, hackathon_id: uuid.UUID) -> List[RegistrationRead]:
        async with self.session() as s:
            stmt = (
                select(Registration)
                .where(Registration.hackathon_id == hackathon_id)
                .order_by(Registration.registered_at.asc(), Registration.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()

        return [RegistrationRead.model_validate(r) for r in rows]

    async def delete_registrations(
        self,
        hackathon_id: uuid.UUID,
        *,
        user_id: Optional[uuid.UUID] = None,
        team_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Delete the registration(s) of one user or one team; returns affected rows."""
        stmt = delete(Registration).where(Registration.hackathon_id == hackathon_id)
        if user_id is not None:
            stmt = stmt.where(Registration.user_id == user_id)
        if team_id is not None:
            stmt = stmt.where(Registration.team_id == team_id)

        async with self.session() as s:
            res = await s.execute(stmt)
            return res.rowcount or 0

    async def delete_registrations_by_team(self, team_id: uuid.UUID) -> int:
        async with self.session() as s:
            res = await s.execute(delete(Registration).where(Registration.team_id == team_id))
            return res.rowcount or 0

    async def delete_registrations_by_hackathon(self, hackathon_id: uuid.UUID) -> int:
        async with self.session() as s:
            res = await s.execute(delete(Registration).where(Registration.hackathon_id == hackathon_id))
            return res.rowcount or 0

    # ---------------------------------
    # Teams
    # ---------------------------------

    async def get_team(self, team_id: Optional[uuid.UUID]) -> Optional[TeamRead]:
        """
        Fetch a team by its UUID.

        Args:
            team_id: Team primary key.

        Returns:
            Optional[TeamRead]: DTO if found; otherwise None.
        """
        if not team_id:
            return None

        async with self.session() as s:
            row = await s.get(Team, team_id)

        return TeamRead.model_validate(row) if row is not None else None

    async def get_teams(self, team_ids: Iterable[uuid.UUID]) -> List[TeamRead]:
        ids = list(set(team_ids))
        if not ids:
            return []

        async with self.session() as s:
            stmt = select(Team).where(Team.id.in_(ids)).order_by(Team.created_at.desc(), Team.id.asc())
            rows = (await s.execute(stmt)).scalars().all()

        return [TeamRead.model_validate(r) for r in rows]

    async def list_teams_by_creator(self, user_id: uuid.UUID) -> List[TeamRead]:
        async with self.session() as s:
            stmt = select(Team).where(Team.created_by == user_id).order_by(Team.created_at.desc(), Team.id.asc())
            rows = (await s.execute(stmt)).scalars().all()

        return [TeamRead.model_validate(r) for r in rows]

    async def list_teams_for_user(self, user_id: uuid.UUID) -> List[TeamRead]:
        """Teams the user created or belongs to, each team once."""
        member_of = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
        async with self.session() as s:
            stmt = (
                select(Team)
                .where(or_(Team.created_by == user_id, Team.id.in_(member_of)))
                .order_by(Team.created_at.desc(), Team.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()

        return [TeamRead.model_validate(r) for r in rows]

    async def list_teams_pending_deletion(self) -> List[TeamRead]:
        async with self.session() as s:
            stmt = select(Team).where(Team.deleting_at.is_not(None)).order_by(Team.deleting_at.asc())
            rows = (await s.execute(stmt)).scalars().all()

        return [TeamRead.model_validate(r) for r in rows]

    async def create_team(self, payload: TeamCreate) -> TeamRead:
        """
        Create a new team.

        Args:
            payload: TeamCreate DTO.

        Returns:
            TeamRead: Created team snapshot.
        """
        team = Team(
            name=payload.name,
            description=payload.description,
            created_by=payload.created_by,
        )

        async with self.session() as s:
            s.add(team)
            await s.flush()
            await s.refresh(team)

        return TeamRead.model_validate(team)

    async def update_team(self, payload: TeamUpdate) -> Optional[TeamRead]:
        """
        Partially update a team by id.

        Notes:
            Only fields explicitly provided (i.e., not MISSING) are updated.

        Returns:
            Optional[TeamRead]: Updated team snapshot, None if the team does not exist.
        """
        async with self.session() as s:
            db_team = await s.get(Team, payload.id)
            if db_team is None:
                return None

            if provided(payload.name):
                db_team.name = payload.name
            if provided(payload.description):
                db_team.description = payload.description

            await s.flush()
            await s.refresh(db_team)

        return TeamRead.model_validate(db_team)

    async def mark_team_deleting(self, team_id: uuid.UUID, at: datetime) -> bool:
        """Stamp ``deleting_at`` unless it is already set; False if the team is gone."""
        async with self.session() as s:
            db_team = await s.get(Team, team_id)
            if db_team is None:
                return False
            if db_team.deleting_at is None:
                db_team.deleting_at = at
                await s.flush()
            return True

    async def delete_team(self, team_id: uuid.UUID) -> int:
        async with self.session() as s:
            res = await s.execute(delete(Team).where(Team.id == team_id))
            return res.rowcount or 0

    # ---------------------------------
    # Team members
    # ---------------------------------

    async def add_team_member(self, payload: TeamMemberCreate) -> TeamMemberRead:
        """
        Insert a membership row.

        Raises:
            IntegrityError: when (team_id, user_id) already exists.
        """
        row = TeamMember(team_id=payload.team_id, user_id=payload.user_id)
        async with self.session() as s:
            s.add(row)
            await s.flush()
            await s.refresh(row)

        return TeamMemberRead.model_validate(row)

    async def get_memberships_by_team(self, team_id: uuid.UUID) -> List[TeamMemberRead]:
        """
        List all memberships for a given team.

        Returns:
            list[TeamMemberRead]: Memberships of the team (possibly empty).
        """
        async with self.session() as s:
            stmt = (
                select(TeamMember)
                .where(TeamMember.team_id == team_id)
                .order_by(TeamMember.joined_at.asc(), TeamMember.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()
        return [TeamMemberRead.model_validate(r) for r in rows]

    async def get_memberships_by_teams(self, team_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, List[TeamMemberRead]]:
        ids = list(set(team_ids))
        grouped: Dict[uuid.UUID, List[TeamMemberRead]] = {tid: [] for tid in ids}
        if not ids:
            return grouped

        async with self.session() as s:
            stmt = (
                select(TeamMember)
                .where(TeamMember.team_id.in_(ids))
                .order_by(TeamMember.joined_at.asc(), TeamMember.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()

        for r in rows:
            grouped[r.team_id].append(TeamMemberRead.model_validate(r))
        return grouped

    async def get_membership(self, team_id: uuid.UUID, user_id: uuid.UUID) -> Optional[TeamMemberRead]:
        """
        Fetch a membership by (team_id, user_id).

        Returns:
            Optional[TeamMemberRead]: DTO if found; otherwise None.
        """
        async with self.session() as s:
            stmt = select(TeamMember).where(
                TeamMember.team_id == team_id,
                TeamMember.user_id == user_id,
            )
            row = (await s.execute(stmt)).scalar_one_or_none()
        return TeamMemberRead.model_validate(row) if row else None

    async def count_team_members(self, team_id: uuid.UUID) -> int:
        async with self.session() as s:
            stmt = select(func.count(TeamMember.id)).where(TeamMember.team_id == team_id)
            return int((await s.execute(stmt)).scalar_one())

    async def delete_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> int:
        async with self.session() as s:
            res = await s.execute(
                delete(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
            )
            return res.rowcount or 0

    async def delete_team_members(self, team_id: uuid.UUID) -> int:
        async with self.session() as s:
            res = await s.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
            return res.rowcount or 0

    # ---------------------------------
    # Team invitations
    # ---------------------------------

    async def create_invitation(self, payload: TeamInvitationCreate) -> TeamInvitationRead:
        row = TeamInvitation(
            team_id=payload.team_id,
            email=str(payload.email).lower(),
            invited_by=payload.invited_by,
            status=InvitationStatus.PENDING,
        )
        async with self.session() as s:
            s.add(row)
            await s.flush()
            await s.refresh(row)

        return TeamInvitationRead.model_validate(row)

    async def get_invitation(self, invitation_id: uuid.UUID) -> Optional[TeamInvitationRead]:
        async with self.session() as s:
            row = await s.get(TeamInvitation, invitation_id)

        return TeamInvitationRead.model_validate(row) if row is not None else None

    async def find_pending_invitation(self, team_id: uuid.UUID, email: str) -> Optional[TeamInvitationRead]:
        async with self.session() as s:
            stmt = select(TeamInvitation).where(
                TeamInvitation.team_id == team_id,
                TeamInvitation.email == email.strip().lower(),
                TeamInvitation.status == InvitationStatus.PENDING,
            )
            row = (await s.execute(stmt.limit(1))).scalars().first()

        return TeamInvitationRead.model_validate(row) if row is not None else None

    async def list_invitations_by_team(self, team_id: uuid.UUID) -> List[TeamInvitationRead]:
        async with self.session() as s:
            stmt = (
                select(TeamInvitation)
                .where(TeamInvitation.team_id == team_id)
                .order_by(TeamInvitation.created_at.desc(), TeamInvitation.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()

        return [TeamInvitationRead.model_validate(r) for r in rows]

    async def list_pending_invitations_by_email(self, email: str) -> List[TeamInvitationRead]:
        async with self.session() as s:
            stmt = (
                select(TeamInvitation)
                .where(
                    TeamInvitation.email == email.strip().lower(),
                    TeamInvitation.status == InvitationStatus.PENDING,
                )
                .order_by(TeamInvitation.created_at.desc(), TeamInvitation.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()

        return [TeamInvitationRead.model_validate(r) for r in rows]

    async def set_invitation_status(self, invitation_id: uuid.UUID, status: InvitationStatus) -> Optional[TeamInvitationRead]:
        async with self.session() as s:
            row = await s.get(TeamInvitation, invitation_id)
            if row is None:
                return None
            row.status = status
            await s.flush()
            await s.refresh(row)

        return TeamInvitationRead.model_validate(row)

    async def delete_invitation(self, invitation_id: uuid.UUID) -> int:
        async with self.session() as s:
            res = await s.execute(delete(TeamInvitation).where(TeamInvitation.id == invitation_id))
            return res.rowcount or 0

    async def delete_invitations_by_team(self, team_id: uuid.UUID) -> int:
        async with self.session() as s:
            res = await s.execute(delete(TeamInvitation).where(TeamInvitation.team_id == team_id))
            return res.rowcount or 0

    # ---------------------------------
    # Audit log helpers
    # ---------------------------------

    async def create_audit_log(self, payload: AuditLogCreate) -> AuditLogRead:
        """Persist a new audit log entry."""
        async with self.session() as s:
            record = AuditLog(
                actor_id=payload.actor_id,
                action=payload.action,
                payload=dict(payload.payload or {}),
            )
            s.add(record)
            await s.flush()
            await s.refresh(record)
            return AuditLogRead.model_validate(record)

    async def list_audit_logs(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        actor_id: uuid.UUID | None = None,
        action: str | None = None,
    ) -> Tuple[list[AuditLogRead], int]:
        """Return paginated audit log entries filtered by actor/action."""
        limit = max(0, int(limit))
        offset = max(0, int(offset))

        async with self.session() as s:
            stmt = select(AuditLog).order_by(AuditLog.created_at.desc())
            count_stmt = select(func.count(AuditLog.id))
            if actor_id:
                stmt = stmt.where(AuditLog.actor_id == actor_id)
                count_stmt = count_stmt.where(AuditLog.actor_id == actor_id)
            if action:
                stmt = stmt.where(AuditLog.action == action)
                count_stmt = count_stmt.where(AuditLog.action == action)

            if limit:
                stmt = stmt.limit(limit)
            if offset:
                stmt = stmt.offset(offset)

            rows = (await s.execute(stmt)).scalars().all()
            total = int((await s.execute(count_stmt)).scalar_one())

        return [AuditLogRead.model_validate(row) for row in rows], total
