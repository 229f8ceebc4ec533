# db/models/user.py
import uuid
from datetime import datetime
from typing import List, Optional
from sqlalchemy import DateTime, Enum as SAEnum, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from hackhub.db.models._base import Base
from hackhub.db.enums import AuthProvider
from hackhub.utils.time import utcnow

class User(Base):
    __tablename__ = "user"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    provider: Mapped[AuthProvider] = mapped_column(SAEnum(AuthProvider, name="auth_provider"), nullable=False, default=AuthProvider.EMAIL)
    full_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    memberships: Mapped[List["TeamMember"]] = relationship(back_populates="user", passive_deletes=True)
