import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from core.config import settings
from core.logging import setup_logging
from models.base import Base
# Import all models to ensure they are registered
from models.investment import InvestmentRecord

logger = logging.getLogger(__name__)


async def init_database():
    logger.info("Connecting to database...")
    # Create engine
    engine = create_async_engine(settings.DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        logger.info(f"Creating table {InvestmentRecord.__tablename__}...")
        await conn.run_sync(Base.metadata.create_all)

        result = await conn.execute(text(f"SELECT COUNT(*) FROM {InvestmentRecord.__tablename__}"))
        logger.info(f"Table ready with {result.scalar()} existing records.")

    await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
