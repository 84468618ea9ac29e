import asyncio
import logging
import os
from services.db import engine, Base
from models import user, profile, photo, social, notification  # important: force-load all models

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

async def init_models():
    """Create every table that does not exist yet."""
    logger.info(f"Initializing database at {engine.url.render_as_string(hide_password=True)}")
    logger.info(f"Environment: {os.getenv('ENVIRONMENT', 'development')}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"Tables ready: {sorted(Base.metadata.tables.keys())}")

if __name__ == "__main__":
    asyncio.run(init_models())
