# services/hackathon.py
import asyncio
import logging
from uuid import UUID
from typing import ClassVar, List, Optional, Self, Tuple

from hackhub.config import Settings
from hackhub.db.database import DataBase
from hackhub.db.enums import ParticipationType
from hackhub.db.schemas.hackathon import (
    HackathonCreate,
    HackathonRead,
    HackathonUpdate,
    check_dates,
    normalize_team_size,
)
from hackhub.db.schemas.session import AuthSession
from hackhub.errors import Forbidden, NotFound
from hackhub.services.audit_log import instrument_service_class
from hackhub.services.auth import require_identity
from hackhub.services.storage import HACKATHON_IMAGES_BUCKET, ObjectStorage, object_key
from hackhub.utils.sentinels import provided

logger = logging.getLogger(__name__)


class HackathonService:
    """
    Singleton service layer for hackathons.

    Like the other services it never touches SQLAlchemy sessions or models; it only
    calls the DataBase facade and returns DTOs. Nothing is cached: every call reads fresh.
    """

    _instance: ClassVar[Optional["HackathonService"]] = None

    def __new__(cls) -> Self:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, "_initialized", False):
            return

        self._database: DataBase = DataBase()
        self._storage = ObjectStorage()
        self._recent_limit = Settings().recent_hackathons_limit
        self._initialized = True

    # --------------------
    # Reads
    # --------------------
    async def list_hackathons(self) -> List[HackathonRead]:
        return await self._database.list_hackathons()

    async def list_recent_hackathons(self, limit: Optional[int] = None) -> List[HackathonRead]:
        return await self._database.list_recent_hackathons(limit=self._recent_limit if limit is None else limit)

    async def list_hackathons_by_user(self, user_id: UUID) -> List[HackathonRead]:
        return await self._database.list_hackathons_by_creator(user_id)

    async def get_hackathon(self, hackathon_id: UUID) -> Optional[HackathonRead]:
        return await self._database.get_hackathon(hackathon_id)

    async def load_dashboard(self, session: AuthSession) -> Tuple[List[HackathonRead], List[HackathonRead]]:
        """Recent hackathons and the caller's own ones, fetched concurrently."""
        identity = require_identity(session, "load the dashboard")
        recent, mine = await asyncio.gather(
            self.list_recent_hackathons(),
            self.list_hackathons_by_user(identity.id),
        )
        return recent, mine

    # --------------------
    # Writes
    # --------------------
    async def create_hackathon(self, session: AuthSession, payload: HackathonCreate) -> HackathonRead:
        identity = require_identity(session, "create a hackathon")
        hackathon = await self._database.create_hackathon(payload, created_by=identity.id)
        logger.info("Hackathon %s created by %s (%s)", hackathon.id, identity.id, hackathon.participation_type)
        return hackathon

    async def update_hackathon(self, payload: HackathonUpdate) -> Optional[HackathonRead]:
        """
        Apply a partial update. Returns None when the hackathon does not exist.

        Team-size and date rules are re-checked against the merged row, so an update
        that only touches ``max_team_size`` of an individual hackathon still stores 1.
        """
        current = await self._database.get_hackathon(payload.id)
        if current is None:
            return None

        participation_type = payload.participation_type if provided(payload.participation_type) else current.participation_type
        size = payload.max_team_size if provided(payload.max_team_size) else current.max_team_size
        if participation_type == ParticipationType.TEAM and not provided(payload.max_team_size) and current.max_team_size < 2:
            # switching an individual hackathon to teams without an explicit size
            size = None
        max_team_size = normalize_team_size(participation_type, size)

        start = payload.start_date if provided(payload.start_date) else current.start_date
        end = payload.end_date if provided(payload.end_date) else current.end_date
        check_dates(start, end)

        merged = payload.model_copy(update={"max_team_size": max_team_size})
        return await self._database.update_hackathon(merged)

    async def delete_hackathon(self, hackathon_id: UUID) -> bool:
        """
        Delete a hackathon and its registrations (registrations first, never orphaned).
        Deleting a missing hackathon is not an error.
        """
        removed = await self._database.delete_registrations_by_hackathon(hackathon_id)
        await self._database.delete_hackathon(hackathon_id)
        logger.info("Hackathon %s deleted (%d registrations removed)", hackathon_id, removed)
        return True

    async def upload_hackathon_image(self, session: AuthSession, hackathon_id: UUID, filename: str, data: bytes) -> str:
        """Store the cover image, point ``image_url`` at it and return the public URL."""
        identity = require_identity(session, "upload a hackathon image")
        hackathon = await self._database.get_hackathon(hackathon_id)
        if hackathon is None:
            raise NotFound("Hackathon", hackathon_id)
        if hackathon.created_by != identity.id:
            raise Forbidden("Only the creator can change the hackathon image")

        path = object_key(str(hackathon_id), filename)
        await self._storage.upload(HACKATHON_IMAGES_BUCKET, path, data, upsert=True)
        url = self._storage.get_public_url(HACKATHON_IMAGES_BUCKET, path)
        await self._database.update_hackathon(HackathonUpdate(id=hackathon_id, image_url=url))
        return url


instrument_service_class(
    HackathonService,
    prefix="services.hackathon",
    exclude={
        "list_hackathons",
        "list_recent_hackathons",
        "list_hackathons_by_user",
        "get_hackathon",
        "load_dashboard",
    },
)
