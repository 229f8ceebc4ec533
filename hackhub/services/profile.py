# services/profile.py
import logging
from uuid import UUID
from typing import ClassVar, Optional, Self

from hackhub.db.database import DataBase
from hackhub.db.schemas.profile import PROFILE_COMPLETION_FIELDS, ProfileRead, ProfileUpdate
from hackhub.db.schemas.session import AuthSession
from hackhub.services.audit_log import instrument_service_class
from hackhub.services.auth import require_identity
from hackhub.services.storage import AVATARS_BUCKET, ObjectStorage, object_key

logger = logging.getLogger(__name__)


def profile_completion(profile: Optional[ProfileRead]) -> int:
    """Percentage (0-100) of the completion fields that hold non-blank text."""
    if profile is None:
        return 0
    filled = sum(1 for field in PROFILE_COMPLETION_FIELDS if (getattr(profile, field) or "").strip())
    return round(filled * 100 / len(PROFILE_COMPLETION_FIELDS))


class ProfileService:
    _instance: ClassVar[Optional["ProfileService"]] = None

    def __new__(cls) -> Self:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, "_initialized", False):
            return

        self._database = DataBase()
        self._storage = ObjectStorage()
        self._initialized = True

    async def get_profile(self, user_id: UUID) -> Optional[ProfileRead]:
        return await self._database.get_profile(user_id)

    async def save_profile(self, session: AuthSession, update: ProfileUpdate) -> ProfileRead:
        """
        Update the caller's profile, creating the row on first save.
        """
        identity = require_identity(session, "edit the profile")
        profile = await self._database.update_profile(identity.id, update)
        if profile is None:
            profile = await self._database.upsert_profile(identity.id, update)
            logger.info("Profile created for %s", identity.id)
        return profile

    async def completion(self, user_id: UUID) -> int:
        return profile_completion(await self._database.get_profile(user_id))

    async def upload_avatar(self, session: AuthSession, filename: str, data: bytes) -> str:
        """
        Store the avatar as ``avatars/<user_id>.<ext>`` (overwriting) and return its
        public URL. The profile itself is not touched; save it with the URL.
        """
        identity = require_identity(session, "upload an avatar")
        path = f"avatars/{object_key(str(identity.id), filename)}"
        await self._storage.upload(AVATARS_BUCKET, path, data, upsert=True)
        return self._storage.get_public_url(AVATARS_BUCKET, path)


instrument_service_class(
    ProfileService,
    prefix="services.profile",
    exclude={"get_profile", "completion"},
)
