import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from hackhub.db.models._base import Base
from hackhub.utils.time import utcnow

class Registration(Base):
    __tablename__ = "hackathon_registration"
    __table_args__ = (
        UniqueConstraint("hackathon_id", "user_id", name="uq_registration_hackathon_user"),
        UniqueConstraint("hackathon_id", "team_id", name="uq_registration_hackathon_team"),
        CheckConstraint(
            "(user_id IS NULL) <> (team_id IS NULL)",
            name="ck_registration_user_xor_team",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    hackathon_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("hackathon.id"), nullable=False, index=True)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("user.id"), nullable=True)
    team_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("team.id"), nullable=True, index=True)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    hackathon = relationship("Hackathon", back_populates="registrations")
