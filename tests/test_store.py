from __future__ import annotations

import tempfile
import unittest
from datetime import timedelta
from pathlib import Path

from sqlalchemy.ext.asyncio import async_sessionmaker

from data.database import init_db, make_engine
from data.repositories import SqlReportStore
from fakes import NOW, make_report


class SqlReportStoreTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.engine = make_engine(f"sqlite+aiosqlite:///{Path(self._tmp.name) / 'reports.db'}")
        await init_db(self.engine)
        self.store = SqlReportStore(async_sessionmaker(self.engine, expire_on_commit=False))

    async def asyncTearDown(self):
        await self.engine.dispose()
        self._tmp.cleanup()

    async def test_put_then_get(self):
        report = make_report("best crm")
        await self.store.put(report)

        loaded = await self.store.get("best-crm")
        self.assertEqual(loaded.to_dict(), report.to_dict())
        self.assertEqual(loaded.themes[0].sources[0].source, "reddit")

    async def test_missing_slug(self):
        self.assertIsNone(await self.store.get("nothing-here"))

    async def test_put_replaces_existing(self):
        await self.store.put(make_report("crm"))
        newer = make_report("crm", updated_at=NOW + timedelta(days=2), created_at=NOW)
        newer.stats.volume = 99
        await self.store.put(newer)

        loaded = await self.store.get("crm")
        self.assertEqual(loaded.stats.volume, 99)
        self.assertEqual(loaded.updated_at, NOW + timedelta(days=2))
        self.assertEqual(loaded.created_at, NOW)

    async def test_init_db_is_idempotent(self):
        await init_db(self.engine)
        await self.store.put(make_report("crm"))
        self.assertIsNotNone(await self.store.get("crm"))
