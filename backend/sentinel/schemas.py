from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class SeismicEvent(BaseModel):
    magnitude: float
    place: str
    occurred_at_ms: int
    depth_km: float
    latitude: float
    longitude: float
    source_url: str
    stable_id: str

    @property
    def title(self) -> str:
        return f"M {self.magnitude} - {self.place}"


class FeedMetadata(BaseModel):
    generated_ms: int
    url: str
    title: str
    status: int
    api: str
    count: int


class EarthquakeFeed(BaseModel):
    metadata: FeedMetadata
    events: list[SeismicEvent] = Field(default_factory=list)

    @property
    def connection_failed(self) -> bool:
        return self.metadata.api == "scrape_failed"


class WindSignal(BaseModel):
    level: int = Field(ge=1, le=5)
    areas: list[str] = Field(default_factory=list)


class CycloneBulletin(BaseModel):
    has_active_cyclone: bool
    name: str = ""
    signals: list[WindSignal] = Field(default_factory=list)
    summary: str
    source_url: str
    issued_at: datetime

    @model_validator(mode="after")
    def _no_signals_without_cyclone(self):
        if not self.has_active_cyclone and self.signals:
            raise ValueError("signals must be empty when there is no active cyclone")
        return self


class VolcanoRecord(BaseModel):
    name: str
    alert_level: str = Field(pattern=r"^[0-5?]$")
    last_updated_label: str
    source_url: str


class HourlyPoint(BaseModel):
    time: str
    temperature: float | None = None
    weather_code: int | None = None


class DailyPoint(BaseModel):
    date: str
    weather_code: int | None = None
    temperature_max: float | None = None
    temperature_min: float | None = None


class WeatherSnapshot(BaseModel):
    temperature: float | None = None
    humidity: float | None = None
    weather_code: int | None = None
    condition: str = "Unknown"
    wind_speed: float | None = None
    precipitation: float = 0.0
    feels_like: float | None = None
    aqi: int | None = None
    aqi_label: str = "--"
    hourly: list[HourlyPoint] = Field(default_factory=list)
    daily: list[DailyPoint] = Field(default_factory=list)

    @property
    def is_raining(self) -> bool:
        return self.precipitation > 0


class TrafficStatus(str, Enum):
    LIGHT = "Light"
    MODERATE = "Moderate"
    HEAVY = "Heavy"
    CONGESTED = "Congested"


class TrafficTrend(str, Enum):
    IMPROVING = "Improving"
    WORSENING = "Worsening"
    STABLE = "Stable"


class TrafficHotspot(BaseModel):
    name: str
    status: TrafficStatus
    trend: TrafficTrend
    details: str = ""
