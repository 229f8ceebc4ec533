import asyncio
import logging

from hackhub.config import Settings
from hackhub.db.database import DataBase
from hackhub.services.team import TeamService


def setup_logging() -> None:
    logging.basicConfig(
        level=Settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def main() -> None:
    setup_logging()
    logger = logging.getLogger("hackhub.bootstrap")

    await DataBase().create_all()
    logger.info("Schema ready")

    resumed = await TeamService().resume_pending_deletions()
    if resumed:
        logger.warning("Finished %d interrupted team deletion(s)", len(resumed))

    await DataBase().dispose()


if __name__ == "__main__":
    asyncio.run(main())
