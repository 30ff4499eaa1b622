from typing import List, Optional, Tuple
from datetime import datetime
import logging
import os
import uuid

from sqlalchemy import Column, DateTime, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import func
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, Field, select

from forge.core.client_config import DEFAULT_DATABASE_URL
from forge.pipeline.context import GenerationContext


logger = logging.getLogger(__name__)


class GenerationRecord(SQLModel, table=True):
    """Database model for completed generation runs"""
    __tablename__ = "generation_records"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    run_id: Optional[str] = Field(default=None, index=True, description="Stream run id (gen-...)")

    # Request
    prompt: str = Field(description="Trimmed user prompt")
    tier: str = Field(description="fast or pro")
    resolution: str = Field(description="Resolution actually sent to the provider")
    aspect_ratio: str = Field(default="1:1")
    mode: str = Field(default="create")
    reference_count: int = Field(default=0)

    # Outcome
    requested_variations: int = Field(default=1)
    succeeded_variations: int = Field(default=0)
    image_count: int = Field(default=0)
    elapsed_seconds: float = Field(default=0.0)

    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime(timezone=True), server_default=func.now()))


engine: Optional[AsyncEngine] = None
async_session_factory: Optional[async_sessionmaker] = None
database_url: Optional[str] = None


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def sqlite_directory(url: str) -> Optional[str]:
    """Directory holding the SQLite file named by `url`, if any"""
    parsed = make_url(url)
    if not parsed.drivername.startswith("sqlite") or not parsed.database or parsed.database == ":memory:":
        return None
    return os.path.dirname(parsed.database) or None


def init_engine(url: str) -> AsyncEngine:
    """(Re)build the engine and session factory for `url`"""
    global engine, async_session_factory, database_url
    is_sqlite = url.startswith("sqlite")
    engine = create_async_engine(
        url,
        echo=False,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )
    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
    async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    database_url = url
    logger.info(f"Database engine configured for {make_url(url).render_as_string(hide_password=True)}")
    return engine


# Placeholder engine until the lifespan applies the configured URL
init_engine(os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL))


async def create_db_and_tables():
    """Create database and tables"""
    directory = sqlite_directory(database_url)
    if directory:
        os.makedirs(directory, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created")


async def get_session():
    """Get async database session"""
    async with async_session_factory() as session:
        yield session


def record_from_context(ctx: GenerationContext) -> GenerationRecord:
    request = ctx.request
    result = ctx.result
    payload = ctx.payload
    return GenerationRecord(
        run_id=ctx.run_id,
        prompt=request.prompt,
        tier=request.tier,
        resolution=payload.resolution if payload else request.resolution,
        aspect_ratio=request.aspect_ratio,
        mode=request.mode,
        reference_count=payload.reference_count if payload else 0,
        requested_variations=result.requested_count if result else request.variation_count,
        succeeded_variations=result.succeeded_count if result else 0,
        image_count=len(result.images) if result else 0,
        elapsed_seconds=round(result.elapsed_seconds, 2) if result else 0.0,
    )


async def save_generation(session: AsyncSession, ctx: GenerationContext) -> GenerationRecord:
    record = record_from_context(ctx)
    session.add(record)
    await session.commit()
    await session.refresh(record)
    return record


async def list_generations(session: AsyncSession, limit: int, offset: int) -> Tuple[List[GenerationRecord], int]:
    result = await session.execute(
        select(GenerationRecord).order_by(GenerationRecord.created_at.desc()).offset(offset).limit(limit)
    )
    records = list(result.scalars().all())
    total = (await session.execute(select(func.count()).select_from(GenerationRecord))).scalar_one()
    return records, total


async def delete_generation(session: AsyncSession, record_id: str) -> bool:
    record = await session.get(GenerationRecord, record_id)
    if record is None:
        return False
    await session.delete(record)
    await session.commit()
    return True


async def persist_generation(ctx: GenerationContext) -> Optional[GenerationRecord]:
    """Write the record for a finished run; storage errors are logged, not raised"""
    try:
        async with async_session_factory() as session:
            record = await save_generation(session, ctx)
        logger.info(f"[{ctx.run_id}] Saved generation record {record.id}")
        return record
    except SQLAlchemyError as e:
        logger.warning(f"[{ctx.run_id}] Failed to save generation record: {e}")
        return None
