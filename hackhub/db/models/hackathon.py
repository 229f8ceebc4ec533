# db/models/hackathon.py
import uuid
from datetime import datetime
from typing import List, Optional
from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from hackhub.db.models._base import Base
from hackhub.db.enums import ParticipationType
from hackhub.utils.time import utcnow

class Hackathon(Base):
    __tablename__ = "hackathon"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    prize: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    participation_type: Mapped[ParticipationType] = mapped_column(
        SAEnum(ParticipationType, name="participation_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ParticipationType.INDIVIDUAL,
    )
    max_team_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("user.id"), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, index=True)

    registrations: Mapped[List["Registration"]] = relationship(back_populates="hackathon", passive_deletes=True)
