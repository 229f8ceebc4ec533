# services/registration.py
import logging
from uuid import UUID
from typing import ClassVar, Dict, List, Optional, Self

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hackhub.db.database import DataBase, is_unique_violation
from hackhub.db.schemas.insights import HackathonInsights, ParticipantInfo, TeamInsight
from hackhub.db.schemas.profile import ProfileRead
from hackhub.db.schemas.registration import RegistrationCreate, RegistrationRead
from hackhub.db.schemas.session import AuthSession
from hackhub.db.schemas.user import UserRead
from hackhub.errors import (
	DuplicateRegistration,
	Forbidden,
	InvalidParticipationType,
	NotFound,
	StorageError,
	TeamTooLarge,
	TeamTooSmall,
)
from hackhub.services.audit_log import instrument_service_class
from hackhub.services.auth import require_identity

logger = logging.getLogger(__name__)

MIN_TEAM_MEMBERS = 2


def display_name(user_id: UUID, profile: Optional[ProfileRead] = None, user: Optional[UserRead] = None) -> str:
	"""Profile name, then identity metadata, then the raw id."""
	if profile is not None:
		if profile.full_name:
			return profile.full_name
		if profile.username:
			return profile.username
	if user is not None and user.full_name:
		return user.full_name
	return str(user_id)


class RegistrationService:
	"""
	Registration rules: who may register for a hackathon, and what the
	registrations of a hackathon add up to.

	The eligibility checks in ``register_team`` run before the insert and are not
	atomic with it; the uniqueness constraints of ``hackathon_registration`` are
	what actually guarantees at most one registration per user/team.
	"""
	_instance: ClassVar[Optional["RegistrationService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = DataBase()
		self._initialized = True

	async def _insert(self, payload: RegistrationCreate) -> RegistrationRead:
		try:
			return await self._database.create_registration(payload)
		except IntegrityError as exc:
			if is_unique_violation(exc):
				raise DuplicateRegistration(
					payload.hackathon_id, user_id=payload.user_id, team_id=payload.team_id
				) from exc
			raise StorageError(f"Registration insert failed: {exc.orig}") from exc
		except SQLAlchemyError as exc:
			raise StorageError(f"Registration insert failed: {exc}") from exc

	async def register_individual(self, hackathon_id: UUID, user_id: UUID) -> RegistrationRead:
		"""
		Register one user. The caller has already picked this operation for an
		individual hackathon; the participation type is not re-checked here.
		"""
		registration = await self._insert(RegistrationCreate(hackathon_id=hackathon_id, user_id=user_id, team_id=None))
		logger.info("User %s registered for hackathon %s", user_id, hackathon_id)
		return registration

	async def register_team(self, hackathon_id: UUID, team_id: UUID) -> RegistrationRead:
		hackathon = await self._database.get_hackathon(hackathon_id)
		if hackathon is None:
			raise NotFound("Hackathon", hackathon_id)
		if not hackathon.is_team_based:
			raise InvalidParticipationType(hackathon_id)

		member_count = await self._database.count_team_members(team_id)
		if member_count < MIN_TEAM_MEMBERS:
			raise TeamTooSmall(team_id, member_count, MIN_TEAM_MEMBERS)
		# both bounds inclusive: a team of exactly max_team_size is fine
		if member_count > hackathon.effective_team_size:
			raise TeamTooLarge(team_id, member_count, hackathon.effective_team_size)

		registration = await self._insert(RegistrationCreate(hackathon_id=hackathon_id, user_id=None, team_id=team_id))
		logger.info("Team %s (%d members) registered for hackathon %s", team_id, member_count, hackathon_id)
		return registration

	async def is_registered(self, hackathon_id: UUID, user_id: UUID) -> bool:
		return await self._database.find_registration(hackathon_id, user_id=user_id) is not None

	async def is_team_registered(self, hackathon_id: UUID, team_id: UUID) -> bool:
		return await self._database.find_registration(hackathon_id, team_id=team_id) is not None

	async def list_registrations(self, hackathon_id: UUID) -> List[RegistrationRead]:
		return await self._database.list_registrations(hackathon_id)

	async def unregister(
		self,
		hackathon_id: UUID,
		*,
		user_id: Optional[UUID] = None,
		team_id: Optional[UUID] = None,
	) -> bool:
		"""
		Remove the registration of one user or one team.

		Idempotent: removing a registration that does not exist succeeds.
		"""
		if (user_id is None) == (team_id is None):
			raise ValueError("unregister needs exactly one of user_id or team_id")

		removed = await self._database.delete_registrations(hackathon_id, user_id=user_id, team_id=team_id)
		logger.info(
			"Unregistered %s %s from hackathon %s (%d rows)",
			"user" if user_id else "team", user_id or team_id, hackathon_id, removed,
		)
		return True

	async def compute_insights(self, hackathon_id: UUID) -> HackathonInsights:
		"""
		Aggregate who is registered for a hackathon.

		Team participants are summed per registered team without de-duplication:
		a user in two registered teams counts twice.
		"""
		registrations = await self._database.list_registrations(hackathon_id)

		individual_ids: List[UUID] = []
		team_ids: List[UUID] = []
		for r in registrations:
			if r.team_id is not None:
				team_ids.append(r.team_id)
			elif r.user_id is not None:
				individual_ids.append(r.user_id)

		teams = {t.id: t for t in await self._database.get_teams(team_ids)}
		memberships = await self._database.get_memberships_by_teams(team_ids)

		people = set(individual_ids)
		for members in memberships.values():
			people.update(m.user_id for m in members)
		profiles: Dict[UUID, ProfileRead] = await self._database.get_profiles(people)
		users: Dict[UUID, UserRead] = await self._database.get_users(people)

		def participant(user_id: UUID) -> ParticipantInfo:
			return ParticipantInfo(id=user_id, name=display_name(user_id, profiles.get(user_id), users.get(user_id)))

		individuals = [participant(uid) for uid in individual_ids]

		team_insights: List[TeamInsight] = []
		for tid in team_ids:
			team = teams.get(tid)
			members = [participant(m.user_id) for m in memberships.get(tid, [])]
			team_insights.append(
				TeamInsight(
					id=tid,
					name=team.name if team is not None else str(tid),
					member_count=len(members),
					members=members,
				)
			)

		return HackathonInsights(
			total_individual_participants=len(individuals),
			total_teams=len(team_insights),
			total_team_participants=sum(t.member_count for t in team_insights),
			teams=team_insights,
			individuals=individuals,
		)

	async def get_insights_for_owner(self, session: AuthSession, hackathon_id: UUID) -> HackathonInsights:
		"""Insights are only shown to the hackathon's creator."""
		identity = require_identity(session, "view insights")
		hackathon = await self._database.get_hackathon(hackathon_id)
		if hackathon is None:
			raise NotFound("Hackathon", hackathon_id)
		if hackathon.created_by != identity.id:
			raise Forbidden("You don't have permission to view this hackathon's insights")
		return await self.compute_insights(hackathon_id)


instrument_service_class(
	RegistrationService,
	prefix="services.registration",
	exclude={
		"is_registered",
		"is_team_registered",
		"list_registrations",
		"compute_insights",
		"get_insights_for_owner",
	},
)
