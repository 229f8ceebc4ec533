import uuid
from datetime import datetime
from typing import Optional
from pydantic import field_validator
from hackhub.db.schemas._base import OrmModel
from hackhub.utils.sentinels import Missing

# fields that count towards profile completion
PROFILE_COMPLETION_FIELDS = ("full_name", "username", "bio", "country", "avatar_url")

class ProfileBase(OrmModel):
    full_name: Optional[str] = None
    username: Optional[str] = None
    bio: Optional[str] = None
    country: Optional[str] = None
    avatar_url: Optional[str] = None

class ProfileUpdate(OrmModel):
    full_name: str | Missing | None = Missing()
    username: str | Missing | None = Missing()
    bio: str | Missing | None = Missing()
    country: str | Missing | None = Missing()
    avatar_url: str | Missing | None = Missing()

    @field_validator("full_name", "username", "bio", "country", "avatar_url")
    @classmethod
    def _strip(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

class ProfileRead(ProfileBase):
    id: uuid.UUID
    updated_at: datetime
