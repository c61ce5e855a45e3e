"""Team-scoped scan analytics for the stats dashboard."""

from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.qr_code import QRCode, Scan
from app.schemas.stats import (
    Metric,
    StatsOverview,
    TopQRCode,
    DeviceShare,
    LocationShare,
    ActivityItem,
    StatsReport,
)
from app.services.team import TeamResolver
from app.utils.tenant import team_filter

TOP_N = 5

MOBILE_TOKENS = ("mobile", "android", "iphone")
TABLET_TOKENS = ("tablet", "ipad")

COUNTRY_FLAGS = {
    "United States": "🇺🇸",
    "United Kingdom": "🇬🇧",
    "Germany": "🇩🇪",
    "France": "🇫🇷",
    "Canada": "🇨🇦",
    "Australia": "🇦🇺",
    "Japan": "🇯🇵",
    "South Korea": "🇰🇷",
    "Brazil": "🇧🇷",
    "India": "🇮🇳",
    "China": "🇨🇳",
    "Italy": "🇮🇹",
    "Spain": "🇪🇸",
    "Netherlands": "🇳🇱",
    "Switzerland": "🇨🇭",
    "Sweden": "🇸🇪",
    "Norway": "🇳🇴",
    "Denmark": "🇩🇰",
    "Belgium": "🇧🇪",
    "Austria": "🇦🇹",
}
GLOBE = "🌍"


def month_windows(now: datetime) -> tuple[datetime, datetime]:
    """Return (start of this month, start of last month)."""
    start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start_of_month.month == 1:
        start_of_last_month = start_of_month.replace(year=start_of_month.year - 1, month=12)
    else:
        start_of_last_month = start_of_month.replace(month=start_of_month.month - 1)
    return start_of_month, start_of_last_month


def classify_device(user_agent: str | None) -> str:
    ua = (user_agent or "").lower()
    if any(token in ua for token in MOBILE_TOKENS):
        return "mobile"
    if any(token in ua for token in TABLET_TOKENS):
        return "tablet"
    return "desktop"


def device_breakdown(user_agents: list[str | None]) -> list[DeviceShare]:
    counts = {"mobile": 0, "desktop": 0, "tablet": 0}
    for ua in user_agents:
        counts[classify_device(ua)] += 1

    total = sum(counts.values()) or 1
    return [
        DeviceShare(
            device=device.capitalize(),
            percentage=int(scans * 100 / total + 0.5),
            scans=scans,
        )
        for device, scans in counts.items()
    ]


def country_flag(country: str | None) -> str:
    return COUNTRY_FLAGS.get(country or "", GLOBE)


def format_time_ago(then: datetime, now: datetime) -> str:
    minutes = int((now - then).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} {'minute' if minutes == 1 else 'minutes'} ago"
    if hours < 24:
        return f"{hours} {'hour' if hours == 1 else 'hours'} ago"
    return f"{days} {'day' if days == 1 else 'days'} ago"


def format_percent_change(current: int, previous: int) -> str | None:
    """Signed percentage change, e.g. ``+100.0%``. None when ``previous`` is zero."""
    if previous <= 0:
        return None
    return f"{(current - previous) / previous * 100:+.1f}%"


def percent_change_label(current: int, previous: int, empty_label: str) -> str:
    percent = format_percent_change(current, previous)
    if percent is not None:
        return f"{percent} from last month"
    if current > 0:
        return "+100% this month"
    return empty_label


def count_change_label(current: int, previous: int, empty_label: str) -> str:
    if previous > 0:
        return f"{current - previous:+d} from last month"
    if current > 0:
        return f"+{current} this month"
    return empty_label


def format_location(city: str | None, country: str | None) -> str:
    if city and country:
        return f"{city}, {country}"
    return country or "Unknown location"


class AnalyticsAggregator:
    def __init__(self, db: AsyncSession, team_resolver: TeamResolver | None = None):
        self.db = db
        self.team_resolver = team_resolver or TeamResolver(db, max_depth=get_settings().team_max_depth)

    async def compute_stats(self, user_id: str, now: datetime | None = None) -> StatsReport:
        """Stats over every QR code owned by ``user_id``'s team."""
        team_ids = await self.team_resolver.team_ids_for(user_id)
        return await self.aggregate(team_ids, now or datetime.utcnow())

    async def _scalar(self, query) -> int:
        result = await self.db.execute(query)
        return result.scalar() or 0

    def _scans(self, team_ids: list[str], *columns):
        return (
            select(*columns)
            .select_from(Scan)
            .join(QRCode, Scan.qr_id == QRCode.id)
            .where(team_filter(QRCode, team_ids))
        )

    async def aggregate(self, team_ids: list[str], now: datetime) -> StatsReport:
        start_of_month, start_of_last_month = month_windows(now)
        this_month = (start_of_month, None)
        last_month = (start_of_last_month, start_of_month)

        def qr_count(window=None):
            query = select(func.count(QRCode.id)).where(team_filter(QRCode, team_ids))
            if window:
                query = query.where(QRCode.created_at >= window[0])
                if window[1] is not None:
                    query = query.where(QRCode.created_at < window[1])
            return self._scalar(query)

        def scan_query(column, window=None):
            query = self._scans(team_ids, column)
            if window:
                query = query.where(Scan.created_at >= window[0])
                if window[1] is not None:
                    query = query.where(Scan.created_at < window[1])
            return query

        total_qr_codes = await qr_count()
        qr_codes_this_month = await qr_count(this_month)
        qr_codes_last_month = await qr_count(last_month)

        total_scans = await self._scalar(scan_query(func.count(Scan.id)))
        scans_this_month = await self._scalar(scan_query(func.count(Scan.id), this_month))
        scans_last_month = await self._scalar(scan_query(func.count(Scan.id), last_month))

        distinct_ips = func.count(func.distinct(Scan.ip))
        visitors_this_month = await self._scalar(scan_query(distinct_ips, this_month))
        visitors_last_month = await self._scalar(scan_query(distinct_ips, last_month))

        qr_change = count_change_label(qr_codes_this_month, qr_codes_last_month, "No QR codes yet")
        overview = StatsOverview(
            total_qr_codes=Metric(value=total_qr_codes, change=qr_change),
            total_scans=Metric(
                value=total_scans,
                change=percent_change_label(scans_this_month, scans_last_month, "No scans yet"),
            ),
            unique_visitors=Metric(
                value=visitors_this_month,
                change=percent_change_label(visitors_this_month, visitors_last_month, "No visitors yet"),
            ),
            # Every created code counts as a download
            downloads=Metric(value=total_qr_codes, change=qr_change),
        )

        ua_result = await self.db.execute(scan_query(Scan.ua, this_month))
        device_analytics = device_breakdown([row[0] for row in ua_result.all()])

        scan_count = func.count(Scan.id).label("scans")
        location_result = await self.db.execute(
            self._scans(team_ids, Scan.country, scan_count)
            .where(Scan.country.is_not(None))
            .group_by(Scan.country)
            .order_by(scan_count.desc(), Scan.country)
            .limit(TOP_N)
        )
        top_locations = [
            LocationShare(country=country, scans=scans, flag=country_flag(country))
            for country, scans in location_result.all()
        ]

        top_result = await self.db.execute(
            select(QRCode.id, QRCode.name, scan_count)
            .outerjoin(Scan, Scan.qr_id == QRCode.id)
            .where(team_filter(QRCode, team_ids))
            .group_by(QRCode.id, QRCode.name)
            .order_by(scan_count.desc(), QRCode.id)
            .limit(TOP_N)
        )
        top_qr_codes = [
            TopQRCode(
                id=qr_id,
                name=name or "Unnamed QR Code",
                scans=scans,
                change="Active" if scans > 0 else "No scans",
            )
            for qr_id, name, scans in top_result.all()
        ]

        recent_result = await self.db.execute(
            self._scans(team_ids, Scan.created_at, Scan.city, Scan.country, QRCode.name)
            .order_by(Scan.created_at.desc())
            .limit(TOP_N)
        )
        recent_activity = [
            ActivityItem(
                action="QR Code scanned",
                qr=name or "Unnamed QR Code",
                time=format_time_ago(created_at, now),
                location=format_location(city, country),
            )
            for created_at, city, country, name in recent_result.all()
        ]

        return StatsReport(
            overview=overview,
            top_performing_qr_codes=top_qr_codes,
            device_analytics=device_analytics,
            top_locations=top_locations,
            recent_activity=recent_activity,
        )
