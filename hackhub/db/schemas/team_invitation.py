import uuid
from datetime import datetime
from pydantic import EmailStr, field_validator
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import InvitationStatus

class TeamInvitationBase(OrmModel):
    team_id: uuid.UUID
    email: EmailStr
    invited_by: uuid.UUID

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

class TeamInvitationCreate(TeamInvitationBase): ...

class TeamInvitationRead(TeamInvitationBase):
    id: uuid.UUID
    status: InvitationStatus
    created_at: datetime

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING
