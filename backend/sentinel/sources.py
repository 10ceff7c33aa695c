from dataclasses import dataclass

PHIVOLCS_URL = "https://earthquake.phivolcs.dost.gov.ph/"
PAGASA_URL = "https://www.pagasa.dost.gov.ph/tropical-cyclone/severe-weather-bulletin"

OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_AIR_QUALITY_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"

# Baguio City
BAGUIO_LAT = 16.4023
BAGUIO_LON = 120.5960


@dataclass(frozen=True)
class VolcanoSource:
    name: str
    url: str


# Fixed set, never grows or shrinks at runtime. Each entry is a dedicated activity page.
MONITORED_VOLCANOES: tuple[VolcanoSource, ...] = (
    VolcanoSource("Taal", "https://wovodat.phivolcs.dost.gov.ph/bulletin/activity-tvo"),
    VolcanoSource("Mayon", "https://wovodat.phivolcs.dost.gov.ph/bulletin/activity-mvo"),
    VolcanoSource("Kanlaon", "https://wovodat.phivolcs.dost.gov.ph/bulletin/activity-kvo"),
    VolcanoSource("Bulusan", "https://wovodat.phivolcs.dost.gov.ph/bulletin/activity-bvo"),
)

BAGUIO_TRAFFIC_HOTSPOTS = [
    "Session Road",
    "Magsaysay Avenue (Public Market area)",
    "City Hall Loop / Abanao",
    "Naguilian Road",
    "BGH Rotunda (Baguio General Hospital)",
    "Marcos Highway",
    "Pacdal Circle",
    "Camp John Hay",
    "Kisad Road",
]
