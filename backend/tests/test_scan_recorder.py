from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.db.postgres import AsyncSessionLocal
from app.models.qr_code import QRCode, Scan
from app.services.geolocation import LocationData
from app.services.scan_recorder import ScanRecorder

from conftest import FakeGeolocator, make_user


class FlakySessionFactory:
    """Session factory whose first ``failures`` commits raise."""

    def __init__(self, failures: int):
        self.failures = failures
        self.added: list[Scan] = []

    def __call__(self):
        return _FlakySession(self)


class _FlakySession:
    def __init__(self, factory: FlakySessionFactory):
        self.factory = factory
        self.session = AsyncSessionLocal()

    async def __aenter__(self):
        await self.session.__aenter__()
        return self

    async def __aexit__(self, *exc):
        return await self.session.__aexit__(*exc)

    def add(self, obj):
        self.factory.added.append(obj)
        self.session.add(obj)

    async def commit(self):
        if self.factory.failures > 0:
            self.factory.failures -= 1
            raise SQLAlchemyError("database unavailable")
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()


class BrokenGeolocator:
    async def resolve(self, ip):
        raise RuntimeError("resolver bug")


async def make_qr(db):
    owner = await make_user(db, "owner@example.com")
    qr = QRCode(slug="scan1234", original_url="https://example.com", owner_id=owner.id)
    db.add(qr)
    await db.commit()
    return qr


async def stored_scans(qr_id: str) -> list[Scan]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Scan).where(Scan.qr_id == qr_id))
        return list(result.scalars().all())


async def test_records_scan_with_location(db):
    qr = await make_qr(db)
    location = LocationData(country="Japan", city="Tokyo", region="Tokyo", latitude=35.6, longitude=139.7)
    recorder = ScanRecorder(AsyncSessionLocal, FakeGeolocator(location))

    assert await recorder.record(qr.id, "8.8.8.8", "Mozilla/5.0")

    [scan] = await stored_scans(qr.id)
    assert (scan.ip, scan.ua) == ("8.8.8.8", "Mozilla/5.0")
    assert (scan.country, scan.city, scan.region) == ("Japan", "Tokyo", "Tokyo")
    assert scan.latitude == 35.6


async def test_without_geolocator_records_bare_scan(db):
    qr = await make_qr(db)
    recorder = ScanRecorder(AsyncSessionLocal, None)

    assert await recorder.record(qr.id, "8.8.8.8", "ua")

    [scan] = await stored_scans(qr.id)
    assert scan.country is None


async def test_geolocator_fault_falls_back_to_minimal_record(db):
    qr = await make_qr(db)
    recorder = ScanRecorder(AsyncSessionLocal, BrokenGeolocator())

    assert await recorder.record(qr.id, "8.8.8.8", "ua")

    [scan] = await stored_scans(qr.id)
    assert (scan.ip, scan.ua, scan.country, scan.city) == ("8.8.8.8", "ua", None, None)


async def test_failed_enriched_insert_retries_without_location(db):
    qr = await make_qr(db)
    factory = FlakySessionFactory(failures=1)
    recorder = ScanRecorder(factory, FakeGeolocator())

    assert await recorder.record(qr.id, "8.8.8.8", "ua")

    assert len(factory.added) == 2
    assert factory.added[0].country == "Germany"
    assert factory.added[1].country is None
    [scan] = await stored_scans(qr.id)
    assert scan.country is None


async def test_second_failure_drops_scan_silently(db):
    qr = await make_qr(db)
    recorder = ScanRecorder(FlakySessionFactory(failures=2), FakeGeolocator())

    assert await recorder.record(qr.id, "8.8.8.8", "ua") is False
    assert await stored_scans(qr.id) == []


async def test_submitted_task_errors_never_escape(db):
    qr = await make_qr(db)
    recorder = ScanRecorder(FlakySessionFactory(failures=2), BrokenGeolocator())

    task = recorder.submit(qr.id, None, None)
    await recorder.drain()

    assert task.done()
    assert task.exception() is None
    assert task.result() is False


async def test_stop_cancels_pending_scans(db):
    qr = await make_qr(db)
    recorder = ScanRecorder(AsyncSessionLocal, FakeGeolocator(block=True))

    task = recorder.submit(qr.id, "8.8.8.8", "ua")
    await recorder.stop()

    assert task.cancelled()
    assert recorder.pending == 0
    assert await stored_scans(qr.id) == []
