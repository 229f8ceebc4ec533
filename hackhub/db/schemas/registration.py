import uuid
from datetime import datetime
from typing import Optional
from pydantic import model_validator
from hackhub.db.schemas._base import OrmModel

class RegistrationBase(OrmModel):
    hackathon_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    team_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def _exactly_one_owner(self):
        if (self.user_id is None) == (self.team_id is None):
            raise ValueError("registration must reference exactly one of user_id or team_id")
        return self

class RegistrationCreate(RegistrationBase): ...

class RegistrationRead(RegistrationBase):
    id: uuid.UUID
    registered_at: datetime

    @property
    def is_individual(self) -> bool:
        return self.user_id is not None
