import uuid
from typing import List
from pydantic import BaseModel, Field

class ParticipantInfo(BaseModel):
    id: uuid.UUID
    name: str

class TeamInsight(BaseModel):
    id: uuid.UUID
    name: str
    member_count: int
    members: List[ParticipantInfo] = Field(default_factory=list)

class HackathonInsights(BaseModel):
    total_individual_participants: int = 0
    total_teams: int = 0
    total_team_participants: int = 0
    teams: List[TeamInsight] = Field(default_factory=list)
    individuals: List[ParticipantInfo] = Field(default_factory=list)

    @property
    def total_participants(self) -> int:
        return self.total_individual_participants + self.total_team_participants
