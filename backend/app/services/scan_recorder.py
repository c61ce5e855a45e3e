"""Detached scan recording.

Scans are written from background tasks so the redirect response never
waits on geolocation or the database. Recording is best effort: a failed
enriched insert is retried once without location fields, and if that also
fails the scan is dropped.
"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.qr_code import Scan
from app.services.errors import PersistenceError
from app.services.geolocation import GeolocationResolver

logger = logging.getLogger(__name__)


class ScanRecorder:
    """Records scans in background tasks it owns."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        geolocator: GeolocationResolver | None = None,
    ):
        self.session_factory = session_factory
        self.geolocator = geolocator
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, qr_id: str, ip: str | None, ua: str | None) -> asyncio.Task:
        """Schedule recording of a scan and return immediately."""
        task = asyncio.create_task(self.record(qr_id, ip, ua))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def record(self, qr_id: str, ip: str | None, ua: str | None) -> bool:
        """Persist a scan. Returns False if the scan had to be dropped."""
        try:
            scan = Scan(qr_id=qr_id, ip=ip, ua=ua)
            if self.geolocator is not None:
                location = await self.geolocator.resolve(ip)
                scan.country = location.country
                scan.city = location.city
                scan.region = location.region
                scan.latitude = location.latitude
                scan.longitude = location.longitude
            await self._insert(scan)
            return True
        except Exception as e:
            logger.warning("Failed to record scan for QR %s, retrying without location: %s", qr_id, e)

        try:
            await self._insert(Scan(qr_id=qr_id, ip=ip, ua=ua))
            return True
        except Exception:
            logger.exception("Dropping scan for QR %s", qr_id)
            return False

    async def _insert(self, scan: Scan) -> None:
        async with self.session_factory() as db:
            try:
                db.add(scan)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(f"Could not insert scan: {e}") from e

    async def drain(self) -> None:
        """Wait for all in-flight recordings to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel in-flight recordings. Their scans are lost."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("Scan recorder stopped, %d pending scan(s) discarded", len(tasks))
