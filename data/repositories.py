from __future__ import annotations

import json
import logging

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_upsert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.models import Report
from data.database import get_session
from data.schema import DBReport

log = logging.getLogger(__name__)


class ReportRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._s = session

    async def get(self, slug: str) -> Report | None:
        row = (
            await self._s.execute(select(DBReport).where(DBReport.slug == slug))
        ).scalar_one_or_none()
        if row is None:
            return None
        return Report.from_dict(json.loads(row.payload))

    async def put(self, report: Report) -> None:
        """Insert the report, or replace the stored one with the same slug."""
        payload = json.dumps(report.to_dict())
        stmt = (
            sqlite_upsert(DBReport)
            .values(
                slug=report.slug,
                query=report.query,
                payload=payload,
                created_at=report.created_at,
                updated_at=report.updated_at,
            )
            .on_conflict_do_update(
                index_elements=["slug"],
                set_={
                    "query": report.query,
                    "payload": payload,
                    "created_at": report.created_at,
                    "updated_at": report.updated_at,
                },
            )
        )
        await self._s.execute(stmt)


class SqlReportStore:
    """Report store backed by the ``reports`` table, one session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._factory = session_factory

    async def get(self, slug: str) -> Report | None:
        async with get_session(self._factory) as session:
            return await ReportRepository(session).get(slug)

    async def put(self, report: Report) -> None:
        async with get_session(self._factory) as session:
            await ReportRepository(session).put(report)
        log.info("Stored report '%s'", report.slug)
