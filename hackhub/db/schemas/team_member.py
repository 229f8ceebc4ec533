# db/schemas/team_member.py
import uuid
from datetime import datetime
from hackhub.db.schemas._base import OrmModel


class TeamMemberBase(OrmModel):
    team_id: uuid.UUID
    user_id: uuid.UUID

class TeamMemberCreate(TeamMemberBase): ...

class TeamMemberRead(TeamMemberBase):
    id: uuid.UUID
    joined_at: datetime

    def __hash__(self) -> int:
        return hash(self.id)
