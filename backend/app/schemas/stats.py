from pydantic import BaseModel


class Metric(BaseModel):
    value: int
    change: str


class StatsOverview(BaseModel):
    total_qr_codes: Metric
    total_scans: Metric
    unique_visitors: Metric
    downloads: Metric


class TopQRCode(BaseModel):
    id: str
    name: str
    scans: int
    change: str


class DeviceShare(BaseModel):
    device: str
    percentage: int
    scans: int


class LocationShare(BaseModel):
    country: str
    scans: int
    flag: str


class ActivityItem(BaseModel):
    action: str
    qr: str
    time: str
    location: str


class StatsReport(BaseModel):
    overview: StatsOverview
    top_performing_qr_codes: list[TopQRCode]
    device_analytics: list[DeviceShare]
    top_locations: list[LocationShare]
    recent_activity: list[ActivityItem]
