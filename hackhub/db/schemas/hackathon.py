import uuid
from datetime import datetime
from typing import Optional
from pydantic import Field, field_validator, model_validator
from hackhub.config import Settings
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import ParticipationType
from hackhub.utils.sentinels import Missing, provided

MIN_TEAM_SIZE = 2


def normalize_team_size(participation_type: ParticipationType, max_team_size: Optional[int]) -> int:
    """Individual hackathons always carry 1; team hackathons need 2..MAX_TEAM_SIZE_LIMIT (default 2)."""
    if participation_type == ParticipationType.INDIVIDUAL:
        return 1
    if max_team_size is None:
        return MIN_TEAM_SIZE
    upper = Settings().max_team_size_limit
    if not MIN_TEAM_SIZE <= max_team_size <= upper:
        raise ValueError(f"max_team_size must be between {MIN_TEAM_SIZE} and {upper} for team hackathons")
    return max_team_size


def check_dates(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is not None and end is not None and start > end:
        raise ValueError("Invalid dates: start_date must be <= end_date")


class HackathonBase(OrmModel):
    title: str = Field(min_length=1, max_length=256)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    prize: Optional[str] = None
    image_url: Optional[str] = None
    participation_type: ParticipationType = ParticipationType.INDIVIDUAL
    max_team_size: int = 1

class HackathonCreate(HackathonBase):
    max_team_size: Optional[int] = None

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check(self) -> "HackathonCreate":
        self.max_team_size = normalize_team_size(self.participation_type, self.max_team_size)
        check_dates(self.start_date, self.end_date)
        return self

class HackathonUpdate(OrmModel):
    id: uuid.UUID
    title: str | Missing = Missing()
    description: str | Missing | None = Missing()
    start_date: datetime | Missing | None = Missing()
    end_date: datetime | Missing | None = Missing()
    location: str | Missing | None = Missing()
    prize: str | Missing | None = Missing()
    image_url: str | Missing | None = Missing()
    participation_type: ParticipationType | Missing = Missing()
    max_team_size: int | Missing | None = Missing()

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("title must not be empty")
        return v

    @model_validator(mode="after")
    def _check(self) -> "HackathonUpdate":
        # checks only; the service merges with the stored row and writes the size
        if provided(self.participation_type) and provided(self.max_team_size):
            normalize_team_size(self.participation_type, self.max_team_size)
        start = self.start_date if provided(self.start_date) else None
        end = self.end_date if provided(self.end_date) else None
        check_dates(start, end)
        return self

class HackathonRead(HackathonBase):
    id: uuid.UUID
    created_by: Optional[uuid.UUID] = None
    created_at: datetime

    @property
    def is_team_based(self) -> bool:
        return self.participation_type == ParticipationType.TEAM

    @property
    def effective_team_size(self) -> int:
        return self.max_team_size if self.is_team_based else 1
