from datetime import datetime, timedelta

import pytest

from app.models.qr_code import QRCode, Scan
from app.models.role import EDITOR
from app.config import get_settings
from app.services.analytics import (
    AnalyticsAggregator,
    classify_device,
    count_change_label,
    country_flag,
    device_breakdown,
    format_location,
    format_percent_change,
    format_time_ago,
    month_windows,
    percent_change_label,
)

from conftest import make_user

NOW = datetime(2024, 3, 15, 12, 0, 0)
THIS_MONTH = datetime(2024, 3, 10, 9, 0, 0)
LAST_MONTH = datetime(2024, 2, 20, 9, 0, 0)

IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148"
IPAD = "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) Safari/604.1"
DESKTOP = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0"


@pytest.mark.parametrize("ua,device", [
    (IPHONE, "mobile"),
    ("Mozilla/5.0 (Linux; Android 14)", "mobile"),
    (IPAD, "tablet"),
    ("Some Tablet Browser", "tablet"),
    (DESKTOP, "desktop"),
    ("", "desktop"),
    (None, "desktop"),
])
def test_classify_device(ua, device):
    assert classify_device(ua) == device


def test_device_breakdown_percentages():
    shares = {s.device: s for s in device_breakdown([IPHONE, IPHONE, DESKTOP])}
    assert shares["Mobile"].percentage == 67
    assert shares["Desktop"].percentage == 33
    assert shares["Tablet"].percentage == 0
    assert shares["Mobile"].scans == 2


def test_device_breakdown_empty_is_all_zero():
    shares = device_breakdown([])
    assert [s.device for s in shares] == ["Mobile", "Desktop", "Tablet"]
    assert all(s.percentage == 0 and s.scans == 0 for s in shares)


def test_month_windows():
    assert month_windows(NOW) == (datetime(2024, 3, 1), datetime(2024, 2, 1))
    assert month_windows(datetime(2024, 1, 5, 8, 30)) == (datetime(2024, 1, 1), datetime(2023, 12, 1))


def test_percent_change():
    assert format_percent_change(10, 5) == "+100.0%"
    assert format_percent_change(5, 10) == "-50.0%"
    assert format_percent_change(3, 0) is None

    assert percent_change_label(10, 5, "No scans yet") == "+100.0% from last month"
    assert percent_change_label(3, 0, "No scans yet") == "+100% this month"
    assert percent_change_label(0, 0, "No scans yet") == "No scans yet"


def test_count_change_label():
    assert count_change_label(4, 1, "No QR codes yet") == "+3 from last month"
    assert count_change_label(1, 4, "No QR codes yet") == "-3 from last month"
    assert count_change_label(2, 0, "No QR codes yet") == "+2 this month"
    assert count_change_label(0, 0, "No QR codes yet") == "No QR codes yet"


def test_format_time_ago():
    assert format_time_ago(NOW - timedelta(seconds=30), NOW) == "just now"
    assert format_time_ago(NOW - timedelta(minutes=1), NOW) == "1 minute ago"
    assert format_time_ago(NOW - timedelta(minutes=45), NOW) == "45 minutes ago"
    assert format_time_ago(NOW - timedelta(hours=1, minutes=5), NOW) == "1 hour ago"
    assert format_time_ago(NOW - timedelta(hours=5), NOW) == "5 hours ago"
    assert format_time_ago(NOW - timedelta(days=1, hours=2), NOW) == "1 day ago"
    assert format_time_ago(NOW - timedelta(days=9), NOW) == "9 days ago"


def test_flags_and_locations():
    assert country_flag("Germany") == "🇩🇪"
    assert country_flag("Atlantis") == "🌍"
    assert country_flag(None) == "🌍"
    assert format_location("Berlin", "Germany") == "Berlin, Germany"
    assert format_location(None, "Germany") == "Germany"
    assert format_location(None, None) == "Unknown location"


async def add_qr(db, owner, slug, name=None, created_at=THIS_MONTH) -> QRCode:
    qr = QRCode(slug=slug, name=name, original_url="https://example.com", owner_id=owner.id, created_at=created_at)
    db.add(qr)
    await db.commit()
    return qr


def add_scan(db, qr, created_at=THIS_MONTH, ip="8.8.8.8", ua=DESKTOP, country=None, city=None):
    db.add(Scan(qr_id=qr.id, created_at=created_at, ip=ip, ua=ua, country=country, city=city))


async def test_empty_team_stats(db):
    user = await make_user(db, "solo@example.com")

    report = await AnalyticsAggregator(db).compute_stats(user.id, NOW)

    assert report.overview.total_qr_codes.value == 0
    assert report.overview.total_qr_codes.change == "No QR codes yet"
    assert report.overview.total_scans.change == "No scans yet"
    assert report.overview.unique_visitors.change == "No visitors yet"
    assert report.top_performing_qr_codes == []
    assert report.top_locations == []
    assert report.recent_activity == []
    assert all(d.percentage == 0 for d in report.device_analytics)


async def test_team_scoped_aggregate(db):
    root = await make_user(db, "root@example.com")
    editor = await make_user(db, "editor@example.com", EDITOR, invited_by=root)
    stranger = await make_user(db, "stranger@example.com")

    menu = await add_qr(db, root, "menu0001", name="Menu")
    flyer = await add_qr(db, editor, "flyer001", name="Flyer", created_at=LAST_MONTH)
    await add_qr(db, root, "quiet001")
    foreign = await add_qr(db, stranger, "foreign1", name="Foreign")

    for ip in ("1.1.1.1", "1.1.1.1", "2.2.2.2"):
        add_scan(db, menu, ip=ip, ua=IPHONE, country="Germany", city="Berlin")
    add_scan(db, menu, created_at=NOW - timedelta(minutes=5), ip="3.3.3.3", country="France", city="Paris")
    add_scan(db, flyer, created_at=LAST_MONTH, ip="4.4.4.4", country="Germany")
    add_scan(db, flyer, created_at=LAST_MONTH, ip="5.5.5.5", country="Unknown")
    for _ in range(3):
        add_scan(db, foreign, ip="9.9.9.9", country="Japan")
    await db.commit()

    # Any member of the team sees the same report
    report = await AnalyticsAggregator(db).compute_stats(editor.id, NOW)
    overview = report.overview

    assert overview.total_qr_codes.value == 3
    assert overview.total_qr_codes.change == "+1 from last month"
    assert overview.downloads.value == 3
    assert overview.total_scans.value == 6
    assert overview.total_scans.change == "+100.0% from last month"
    assert overview.unique_visitors.value == 3
    assert overview.unique_visitors.change == "+50.0% from last month"

    assert [(q.name, q.scans, q.change) for q in report.top_performing_qr_codes] == [
        ("Menu", 4, "Active"),
        ("Flyer", 2, "Active"),
        ("Unnamed QR Code", 0, "No scans"),
    ]

    assert [(loc.country, loc.scans, loc.flag) for loc in report.top_locations] == [
        ("Germany", 4, "🇩🇪"),
        ("France", 1, "🇫🇷"),
        ("Unknown", 1, "🌍"),
    ]

    devices = {d.device: d for d in report.device_analytics}
    assert devices["Mobile"].scans == 3
    assert devices["Desktop"].scans == 1
    assert devices["Mobile"].percentage == 75

    latest = report.recent_activity[0]
    assert latest.qr == "Menu"
    assert latest.time == "5 minutes ago"
    assert latest.location == "Paris, France"
    assert len(report.recent_activity) == 5
    assert all(item.qr != "Foreign" for item in report.recent_activity)


async def test_top_lists_are_capped(db):
    user = await make_user(db, "busy@example.com")
    for i in range(7):
        qr = await add_qr(db, user, f"busyqr{i:02d}", name=f"QR {i}")
        for _ in range(i):
            add_scan(db, qr, country=f"Country {i}")
    await db.commit()

    report = await AnalyticsAggregator(db).compute_stats(user.id, NOW)

    assert [q.name for q in report.top_performing_qr_codes] == ["QR 6", "QR 5", "QR 4", "QR 3", "QR 2"]
    assert len(report.top_locations) == 5
    assert report.top_locations[0].country == "Country 6"


async def test_default_team_resolver_uses_configured_depth(db, monkeypatch):
    monkeypatch.setattr(get_settings(), "team_max_depth", 3)

    assert AnalyticsAggregator(db).team_resolver.max_depth == 3
