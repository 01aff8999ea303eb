"""Human-readable formatting of measurement values.

Missing values render as "--" everywhere.
"""

from __future__ import annotations

from hamgis.config import DEFAULT_CONFIG, HamgisConfig
from hamgis.elevation import round_half_up
from hamgis.models import AreaMeasure
from hamgis.timeutils import format_local

MISSING = "--"

_DATE_FORMATS = {
    "date": "%Y-%m-%d",
    "time": "%H:%M:%S",
    "datetime": "%Y-%m-%d %H:%M:%S",
    "short": "%m/%d %H:%M",
}


def format_area(area: AreaMeasure | None, unit: str = "mu") -> str:
    """Format an area in mu / sqm / hectares, or "all" (mu plus m²)."""

    if area is None:
        return MISSING
    if unit == "sqm":
        return f"{round_half_up(area.square_meters)}㎡"
    if unit == "hectares":
        return f"{area.hectares:.2f}公顷"
    if unit == "all":
        return f"{area.mu:.2f}亩 ({round_half_up(area.square_meters)}㎡)"
    return f"{area.mu:.2f}亩"


def format_date(timestamp: int | None, fmt: str = "datetime", config: HamgisConfig = DEFAULT_CONFIG) -> str:
    if not timestamp:
        return MISSING
    return format_local(timestamp, config.tz_name, _DATE_FORMATS.get(fmt, _DATE_FORMATS["datetime"]))


def format_coordinate(lat: float | None, lon: float | None, precision: int = 6) -> str:
    if lat is None or lon is None:
        return MISSING
    return f"{lat:.{precision}f}, {lon:.{precision}f}"


def format_altitude(altitude: float | None, show_unit: bool = True) -> str:
    if altitude is None:
        return MISSING
    rounded = round_half_up(altitude)
    return f"{rounded}m" if show_unit else str(rounded)


def format_perimeter(perimeter: float | None, unit: str = "m") -> str:
    if not perimeter:
        return MISSING
    if unit == "km":
        return f"{perimeter / 1000:.2f}km"
    return f"{perimeter:.1f}m"


def format_accuracy(accuracy: float | None) -> str:
    if not accuracy:
        return MISSING
    return f"±{round_half_up(accuracy)}m"


def format_distance(distance: float | None, unit: str = "auto") -> str:
    """Format a distance; "auto" switches to km from 1000 m on."""

    if distance is None:
        return MISSING
    if unit == "km" or (unit == "auto" and distance >= 1000):
        return f"{distance / 1000:.2f}km"
    return f"{distance:.1f}m"


def format_point_count(count: int | None) -> str:
    return f"{count or 0}个点"
