from uuid import UUID


class HackHubError(Exception):
    """Base class for every domain failure raised by the services."""


class NotFound(HackHubError):
    def __init__(self, entity: str, entity_id: UUID | str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        msg = f"{entity} not found"
        if entity_id is not None:
            msg += f" (id={entity_id})"
        super().__init__(msg)


class DuplicateRegistration(HackHubError):
    def __init__(self, hackathon_id: UUID, *, user_id: UUID | None = None, team_id: UUID | None = None):
        self.hackathon_id = hackathon_id
        self.user_id = user_id
        self.team_id = team_id
        if team_id is not None:
            msg = "This team is already registered for this hackathon"
        else:
            msg = "Already registered for this hackathon"
        super().__init__(msg)


class InvalidParticipationType(HackHubError):
    def __init__(self, hackathon_id: UUID):
        self.hackathon_id = hackathon_id
        super().__init__("This hackathon is not team-based")


class TeamTooSmall(HackHubError):
    def __init__(self, team_id: UUID, member_count: int, minimum: int = 2):
        self.team_id = team_id
        self.member_count = member_count
        self.minimum = minimum
        super().__init__(f"Team must have at least {minimum} members (has {member_count})")


class TeamTooLarge(HackHubError):
    def __init__(self, team_id: UUID, member_count: int, maximum: int):
        self.team_id = team_id
        self.member_count = member_count
        self.maximum = maximum
        super().__init__(f"Team size ({member_count}) exceeds hackathon max ({maximum})")


class StorageError(HackHubError):
    """Unclassified gateway or object-storage failure."""


class AuthRequired(HackHubError):
    def __init__(self, operation: str | None = None):
        msg = "Sign in required"
        if operation:
            msg += f" to {operation}"
        super().__init__(msg)


class AuthError(HackHubError):
    """Sign-up / sign-in rejected by the identity provider."""


class Forbidden(HackHubError):
    pass


class AlreadyTeamMember(HackHubError):
    def __init__(self, team_id: UUID, user_id: UUID):
        self.team_id = team_id
        self.user_id = user_id
        super().__init__("User is already a member of this team")


class InvitationStateError(HackHubError):
    pass


__all__ = [
    "HackHubError",
    "NotFound",
    "DuplicateRegistration",
    "InvalidParticipationType",
    "TeamTooSmall",
    "TeamTooLarge",
    "StorageError",
    "AuthRequired",
    "AuthError",
    "Forbidden",
    "AlreadyTeamMember",
    "InvitationStateError",
]
