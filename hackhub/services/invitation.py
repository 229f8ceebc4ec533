# services/invitation.py
import logging
from uuid import UUID
from typing import ClassVar, List, Optional, Self

from hackhub.db.database import DataBase
from hackhub.db.enums import InvitationStatus
from hackhub.db.schemas.session import AuthSession
from hackhub.db.schemas.team_invitation import TeamInvitationCreate, TeamInvitationRead
from hackhub.errors import Forbidden, InvitationStateError, NotFound
from hackhub.services.audit_log import instrument_service_class
from hackhub.services.auth import require_identity
from hackhub.services.team import TeamService

logger = logging.getLogger(__name__)


class InvitationService:
	"""
	Team invitations by email.

	pending -> accepted | declined (row kept), or pending -> deleted (cancelled).
	"""
	_instance: ClassVar[Optional["InvitationService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = DataBase()
		self._team_svc = TeamService()
		self._initialized = True

	async def _pending(self, invitation_id: UUID) -> TeamInvitationRead:
		invitation = await self._database.get_invitation(invitation_id)
		if invitation is None:
			raise NotFound("Invitation", invitation_id)
		if not invitation.is_pending:
			raise InvitationStateError(f"Invitation is already {invitation.status.value}")
		return invitation

	async def invite_member(self, session: AuthSession, team_id: UUID, email: str) -> TeamInvitationRead:
		identity = require_identity(session, "invite team members")
		team = await self._database.get_team(team_id)
		if team is None:
			raise NotFound("Team", team_id)
		if team.created_by != identity.id:
			raise Forbidden("Only the team owner can invite members")

		payload = TeamInvitationCreate(team_id=team_id, email=email, invited_by=identity.id)
		if await self._database.find_pending_invitation(team_id, str(payload.email)) is not None:
			raise InvitationStateError(f"{payload.email} already has a pending invitation to this team")

		invitation = await self._database.create_invitation(payload)
		logger.info("Invitation %s sent to %s for team %s", invitation.id, invitation.email, team_id)
		return invitation

	async def list_team_invitations(self, team_id: UUID) -> List[TeamInvitationRead]:
		return await self._database.list_invitations_by_team(team_id)

	async def list_pending_invitations(self, email: str) -> List[TeamInvitationRead]:
		return await self._database.list_pending_invitations_by_email(email)

	async def accept_invitation(self, session: AuthSession, invitation_id: UUID) -> TeamInvitationRead:
		"""
		Join the team. The membership is written first, then the status; a user who
		is already a member just gets the invitation marked accepted.
		"""
		identity = require_identity(session, "accept an invitation")
		invitation = await self._pending(invitation_id)
		if invitation.email != identity.email.lower():
			raise Forbidden("This invitation was sent to another email address")

		if await self._database.get_membership(invitation.team_id, identity.id) is None:
			await self._team_svc.add_member(invitation.team_id, identity.id)

		accepted = await self._database.set_invitation_status(invitation_id, InvitationStatus.ACCEPTED)
		if accepted is None:
			raise NotFound("Invitation", invitation_id)
		return accepted

	async def decline_invitation(self, session: AuthSession, invitation_id: UUID) -> TeamInvitationRead:
		identity = require_identity(session, "decline an invitation")
		invitation = await self._pending(invitation_id)
		if invitation.email != identity.email.lower():
			raise Forbidden("This invitation was sent to another email address")

		declined = await self._database.set_invitation_status(invitation_id, InvitationStatus.DECLINED)
		if declined is None:
			raise NotFound("Invitation", invitation_id)
		return declined

	async def cancel_invitation(self, session: AuthSession, invitation_id: UUID) -> bool:
		"""Inviter or team owner withdraws a pending invitation (the row is deleted)."""
		identity = require_identity(session, "cancel an invitation")
		invitation = await self._pending(invitation_id)
		if identity.id != invitation.invited_by:
			team = await self._database.get_team(invitation.team_id)
			if team is None or team.created_by != identity.id:
				raise Forbidden("Only the inviter or the team owner can cancel an invitation")

		await self._database.delete_invitation(invitation_id)
		logger.info("Invitation %s cancelled by %s", invitation_id, identity.id)
		return True


instrument_service_class(
	InvitationService,
	prefix="services.invitation",
	exclude={"list_team_invitations", "list_pending_invitations"},
)
