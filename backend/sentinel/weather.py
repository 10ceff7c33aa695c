import logging
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import httpx

from .schemas import DailyPoint, HourlyPoint, WeatherSnapshot
from .settings import settings
from .sources import BAGUIO_LAT, BAGUIO_LON, OPEN_METEO_AIR_QUALITY_URL, OPEN_METEO_FORECAST_URL

logger = logging.getLogger(__name__)

HOURS_AHEAD = 24


def weather_label(code: Optional[int]) -> str:
    """WMO weather code to a short label."""
    if code is None:
        return "Unknown"
    if code == 0:
        return "Clear"
    if code <= 3:
        return "Cloudy"
    if code <= 48:
        return "Fog"
    if code <= 57:
        return "Drizzle"
    if code <= 67:
        return "Rain"
    if code <= 77:
        return "Snow"
    if code <= 82:
        return "Showers"
    if code <= 99:
        return "Storm"
    return "Unknown"


def aqi_label(aqi: Optional[int]) -> str:
    if aqi is None:
        return "--"
    if aqi <= 50:
        return "Good"
    if aqi <= 100:
        return "Moderate"
    if aqi <= 150:
        return "Unhealthy (Sens.)"
    return "Unhealthy"


def next_hours(hourly: dict, now: datetime, hours: int = HOURS_AHEAD) -> list[HourlyPoint]:
    """Points starting at the first hour no older than one hour before ``now``."""
    times = hourly.get("time") or []
    temps = hourly.get("temperature_2m") or []
    codes = hourly.get("weather_code") or []
    threshold = now - timedelta(hours=1)

    start = None
    for i, t in enumerate(times):
        try:
            at = datetime.fromisoformat(t)
        except ValueError:
            continue
        if at.tzinfo is None:
            at = at.replace(tzinfo=now.tzinfo)
        if at >= threshold:
            start = i
            break
    if start is None:
        return []

    points = []
    for idx in range(start, min(start + hours, len(times))):
        points.append(HourlyPoint(
            time=times[idx],
            temperature=temps[idx] if idx < len(temps) else None,
            weather_code=codes[idx] if idx < len(codes) else None,
        ))
    return points


def daily_points(daily: dict) -> list[DailyPoint]:
    dates = daily.get("time") or []
    codes = daily.get("weather_code") or []
    highs = daily.get("temperature_2m_max") or []
    lows = daily.get("temperature_2m_min") or []
    return [
        DailyPoint(
            date=d,
            weather_code=codes[i] if i < len(codes) else None,
            temperature_max=highs[i] if i < len(highs) else None,
            temperature_min=lows[i] if i < len(lows) else None,
        )
        for i, d in enumerate(dates)
    ]


def build_snapshot(forecast: dict, air: dict, now: datetime) -> WeatherSnapshot:
    current = forecast.get("current") or {}
    code = current.get("weather_code")
    aqi = (air.get("current") or {}).get("us_aqi")
    return WeatherSnapshot(
        temperature=current.get("temperature_2m"),
        humidity=current.get("relative_humidity_2m"),
        weather_code=code,
        condition=weather_label(code),
        wind_speed=current.get("wind_speed_10m"),
        precipitation=current.get("precipitation") or 0.0,
        feels_like=current.get("apparent_temperature"),
        aqi=aqi,
        aqi_label=aqi_label(aqi),
        hourly=next_hours(forecast.get("hourly") or {}, now),
        daily=daily_points(forecast.get("daily") or {}),
    )


async def fetch_weather(client: Optional[httpx.AsyncClient] = None, now: Optional[datetime] = None) -> WeatherSnapshot:
    """Baguio current conditions, forecast and AQI. HTTP errors propagate to the widget."""
    now = now or datetime.now(ZoneInfo(settings.app_timezone))
    forecast_params = {
        "latitude": BAGUIO_LAT,
        "longitude": BAGUIO_LON,
        "current": "temperature_2m,relative_humidity_2m,weather_code,precipitation,wind_speed_10m,apparent_temperature",
        "hourly": "temperature_2m,weather_code",
        "daily": "weather_code,temperature_2m_max,temperature_2m_min",
        "timezone": settings.app_timezone,
    }
    air_params = {"latitude": BAGUIO_LAT, "longitude": BAGUIO_LON, "current": "us_aqi"}

    async def _run(c: httpx.AsyncClient) -> WeatherSnapshot:
        r = await c.get(OPEN_METEO_FORECAST_URL, params=forecast_params)
        r.raise_for_status()
        a = await c.get(OPEN_METEO_AIR_QUALITY_URL, params=air_params)
        a.raise_for_status()
        return build_snapshot(r.json(), a.json(), now)

    if client is not None:
        return await _run(client)
    async with httpx.AsyncClient(timeout=settings.weather_timeout_seconds, headers={"User-Agent": settings.user_agent}) as c:
        return await _run(c)
