# db/schemas/team.py
import uuid
from datetime import datetime
from typing import Annotated, List, Optional
from pydantic import BeforeValidator, Field
from hackhub.db.schemas._base import OrmModel
from hackhub.db.schemas.team_member import TeamMemberRead
from hackhub.utils.sentinels import Missing


def _clean_name(v):
    if isinstance(v, str):
        v = v.strip()
        if not v:
            raise ValueError("team name must not be empty")
    return v


TeamName = Annotated[str, BeforeValidator(_clean_name), Field(min_length=1, max_length=256)]


class TeamBase(OrmModel):
    name: TeamName
    description: Optional[str] = None

class TeamCreate(TeamBase):
    created_by: uuid.UUID

class TeamUpdate(OrmModel):
    id: uuid.UUID
    name: TeamName | Missing = Missing()
    description: str | Missing | None = Missing()

class TeamRead(TeamBase):
    id: uuid.UUID
    created_by: uuid.UUID
    created_at: datetime
    deleting_at: Optional[datetime] = None

class TeamWithMembers(TeamRead):
    members: List[TeamMemberRead] = []

    @property
    def member_ids(self) -> List[uuid.UUID]:
        return [m.user_id for m in self.members]
