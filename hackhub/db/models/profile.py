import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from hackhub.db.models._base import Base
from hackhub.utils.time import utcnow

class Profile(Base):
    __tablename__ = "profile"

    # one-to-one with the identity row: the profile id *is* the user id
    id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("user.id"), primary_key=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    username: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)
