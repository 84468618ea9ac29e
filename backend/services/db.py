from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import os

# Database configuration with defaults
POSTGRES_USER = os.getenv('POSTGRES_USER', 'photo_user')
POSTGRES_PASSWORD = os.getenv('POSTGRES_PASSWORD', 'secretpassword')
DB_HOST = os.getenv('DB_HOST', 'localhost')
DB_PORT = os.getenv('DB_PORT', '5432')
POSTGRES_DB = os.getenv('POSTGRES_DB', 'photoapp')
DB_ECHO = os.getenv('DB_ECHO', 'false').lower() == 'true'

# A full DATABASE_URL (e.g. sqlite+aiosqlite:///./dev.db) wins over the parts
DATABASE_URL = os.getenv(
    'DATABASE_URL',
    f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{DB_HOST}:{DB_PORT}/{POSTGRES_DB}"
)

engine = create_async_engine(DATABASE_URL, echo=DB_ECHO, future=True)
SessionLocal = sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

Base = declarative_base()

async def get_db():
    async with SessionLocal() as session:
        yield session

def dialect_insert(session: AsyncSession, table):
    """INSERT construct with ``on_conflict_do_*`` support for the bound dialect."""
    if session.get_bind().dialect.name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        from sqlalchemy.dialects.postgresql import insert
    return insert(table)
