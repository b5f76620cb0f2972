# backend/tutorhub/init_db.py
"""Create all tables for a fresh development database."""

import logging

from tutorhub.database import Base, engine
import tutorhub.models  # noqa: F401  (registers every table on Base.metadata)

logger = logging.getLogger(__name__)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created: %s", ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
