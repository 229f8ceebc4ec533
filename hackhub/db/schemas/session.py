import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from hackhub.db.enums import AuthProvider
from hackhub.db.schemas.user import UserRead
from hackhub.utils.time import utcnow


class Identity(BaseModel):
    """The signed-in user as the rest of the application sees it."""
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    email: str
    provider: AuthProvider = AuthProvider.EMAIL
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

    @classmethod
    def from_user(cls, user: UserRead) -> "Identity":
        return cls(
            id=user.id,
            email=str(user.email),
            provider=user.provider,
            full_name=user.full_name,
            avatar_url=user.avatar_url,
        )

    @property
    def display_name(self) -> str:
        return self.full_name or self.email


class AuthSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    identity: Identity
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def user_id(self) -> uuid.UUID:
        return self.identity.id
