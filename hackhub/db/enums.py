import enum

class ParticipationType(enum.StrEnum):
    INDIVIDUAL = "Individual"
    TEAM = "Team"

class InvitationStatus(enum.StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

class AuthProvider(enum.StrEnum):
    EMAIL = "email"
    GOOGLE = "google"
    GITHUB = "github"

class AuthEvent(enum.StrEnum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"
