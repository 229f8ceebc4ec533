# services/team.py
import logging
from uuid import UUID
from typing import ClassVar, List, Optional, Self

from sqlalchemy.exc import IntegrityError

from hackhub.db.database import DataBase, is_unique_violation
from hackhub.db.schemas.session import AuthSession
from hackhub.db.schemas.team import TeamCreate, TeamRead, TeamUpdate, TeamWithMembers
from hackhub.db.schemas.team_member import TeamMemberCreate, TeamMemberRead
from hackhub.errors import AlreadyTeamMember, NotFound, TeamTooSmall
from hackhub.services.audit_log import instrument_service_class
from hackhub.services.auth import require_identity
from hackhub.utils.time import utcnow

logger = logging.getLogger(__name__)

# a member may not leave if the team would drop to this size or below
MIN_REMAINING_MEMBERS = 1


class TeamService:
	_instance: ClassVar[Optional["TeamService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = DataBase()
		self._initialized = True

	async def _with_members(self, teams: List[TeamRead]) -> List[TeamWithMembers]:
		memberships = await self._database.get_memberships_by_teams([t.id for t in teams])
		return [
			TeamWithMembers(**team.model_dump(), members=memberships.get(team.id, []))
			for team in teams
		]

	async def get_team(self, team_id: UUID) -> Optional[TeamWithMembers]:
		team = await self._database.get_team(team_id)
		if team is None:
			return None
		return (await self._with_members([team]))[0]

	async def list_user_teams(self, user_id: UUID) -> List[TeamWithMembers]:
		"""Teams the user created or is a member of, each once."""
		return await self._with_members(await self._database.list_teams_for_user(user_id))

	async def list_created_teams(self, user_id: UUID) -> List[TeamWithMembers]:
		return await self._with_members(await self._database.list_teams_by_creator(user_id))

	async def create_team(self, session: AuthSession, name: str, description: Optional[str] = None) -> TeamRead:
		"""The creator owns the team but is not added as a member."""
		identity = require_identity(session, "create a team")
		team = await self._database.create_team(
			TeamCreate(name=name, description=description, created_by=identity.id)
		)
		logger.info("Team %s created by %s", team.id, identity.id)
		return team

	async def update_team(self, payload: TeamUpdate) -> Optional[TeamRead]:
		return await self._database.update_team(payload)

	async def delete_team(self, team_id: UUID) -> bool:
		"""
		Delete a team and everything that points at it.

		Order: registrations, memberships, invitations, team row, so no
		registration ever references a missing team. The steps are separate
		writes; the ``deleting_at`` mark set first lets
		``resume_pending_deletions`` finish a cascade that stopped half way.
		"""
		if not await self._database.mark_team_deleting(team_id, utcnow()):
			return False

		registrations = await self._database.delete_registrations_by_team(team_id)
		members = await self._database.delete_team_members(team_id)
		invitations = await self._database.delete_invitations_by_team(team_id)
		await self._database.delete_team(team_id)
		logger.info(
			"Team %s deleted (registrations=%d members=%d invitations=%d)",
			team_id, registrations, members, invitations,
		)
		return True

	async def resume_pending_deletions(self) -> List[UUID]:
		"""Re-run the cascade for every team whose deletion was interrupted."""
		resumed: List[UUID] = []
		for team in await self._database.list_teams_pending_deletion():
			logger.warning("Resuming interrupted deletion of team %s (started %s)", team.id, team.deleting_at)
			await self.delete_team(team.id)
			resumed.append(team.id)
		return resumed

	# -----------------
	# Membership
	# -----------------
	async def list_members(self, team_id: UUID) -> List[TeamMemberRead]:
		return await self._database.get_memberships_by_team(team_id)

	async def count_members(self, team_id: UUID) -> int:
		return await self._database.count_team_members(team_id)

	async def is_member(self, team_id: UUID, user_id: UUID) -> bool:
		return await self._database.get_membership(team_id, user_id) is not None

	async def add_member(self, team_id: UUID, user_id: UUID) -> TeamMemberRead:
		"""
		Add a user to a team. Team size is not capped here; the hackathon's
		max_team_size is only enforced when the team registers.
		"""
		if await self._database.get_team(team_id) is None:
			raise NotFound("Team", team_id)
		try:
			membership = await self._database.add_team_member(TeamMemberCreate(team_id=team_id, user_id=user_id))
		except IntegrityError as exc:
			if is_unique_violation(exc):
				raise AlreadyTeamMember(team_id, user_id) from exc
			raise
		logger.info("User %s joined team %s", user_id, team_id)
		return membership

	async def remove_member(self, team_id: UUID, user_id: UUID) -> bool:
		if await self._database.get_membership(team_id, user_id) is None:
			raise NotFound("Team member", user_id)

		count = await self._database.count_team_members(team_id)
		if count - 1 <= MIN_REMAINING_MEMBERS:
			raise TeamTooSmall(team_id, count - 1, MIN_REMAINING_MEMBERS + 1)

		await self._database.delete_team_member(team_id, user_id)
		logger.info("User %s removed from team %s", user_id, team_id)
		return True


instrument_service_class(
	TeamService,
	prefix="services.team",
	exclude={
		"get_team",
		"list_user_teams",
		"list_created_teams",
		"list_members",
		"count_members",
		"is_member",
	},
)
