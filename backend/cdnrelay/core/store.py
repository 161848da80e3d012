from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cdnrelay.core.database import Base, create_engine_and_sessions
from cdnrelay.core.errors import DuplicateShortName, StoreError
from cdnrelay.models.file_record import FileRecord

logger = logging.getLogger("cdn-relay")


def _is_unique_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate" in message


class FileStore:
    """Pointer store: short name -> CDN location and upload metadata.

    The store holds no file bytes. Short-name uniqueness is enforced by the
    UNIQUE constraint on ``files.filename``; a duplicate insert raises
    :class:`DuplicateShortName` and never replaces the existing row. Every
    other database failure surfaces as :class:`StoreError`.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine, self.SessionLocal = create_engine_and_sessions(database_url, echo=echo)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.SessionLocal() as session:
                yield session
        except StoreError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error: %s", e)
            raise StoreError(f"Database error: {e}") from e

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            if self.engine.dialect.name == "sqlite":
                await conn.execute(text("PRAGMA journal_mode=WAL;"))
            logger.info("Creating database tables:")
            for table in Base.metadata.tables.values():
                logger.info(f" - Table: {table.name}")
                for column in table.columns:
                    logger.info(f"    - Column: {column.name} ({column.type})")

            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def ping(self) -> None:
        async with self.session() as session:
            await session.execute(text("SELECT 1"))

    async def insert(self, record: FileRecord) -> FileRecord:
        async with self.session() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if _is_unique_violation(e):
                    raise DuplicateShortName(record.filename) from e
                raise StoreError(f"Insert failed: {e.orig}") from e
        return record

    async def get(self, short_name: str) -> FileRecord | None:
        async with self.session() as session:
            res = await session.execute(select(FileRecord).where(FileRecord.filename == short_name))
            return res.scalars().first()

    async def list_files(self, limit: int = 50, offset: int = 0) -> list[FileRecord]:
        query = (
            select(FileRecord)
            .order_by(FileRecord.upload_date.desc(), FileRecord.id)
            .offset(offset)
            .limit(limit)
        )
        async with self.session() as session:
            return list((await session.execute(query)).scalars().all())

    async def delete(self, short_name: str) -> bool:
        async with self.session() as session:
            res = await session.execute(delete(FileRecord).where(FileRecord.filename == short_name))
            await session.commit()
            return res.rowcount > 0

    async def stats(self) -> tuple[int, int]:
        async with self.session() as session:
            res = await session.execute(
                select(func.count(FileRecord.id), func.coalesce(func.sum(FileRecord.size), 0))
            )
            count, total = res.one()
            return int(count), int(total)
