"""Build and normalise MeasurementRecord objects.

Stored dicts come from several app versions: some lack ``elevation``, some lack
``mu``/``hectares`` and carry only ``squareMeters``, some carry a stale
``pointCount``. Everything is normalised here, once, so the exporters never
need fallback arithmetic.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Sequence

from hamgis.config import DEFAULT_CONFIG, HamgisConfig
from hamgis.elevation import compute_elevation_stats, has_elevation_data, round_half_up
from hamgis.errors import RecordFormatError
from hamgis.models import (
    RECORD_STATUSES,
    STATUS_COMPLETED,
    AreaMeasure,
    ElevationStats,
    MeasurementRecord,
    Point,
)
from hamgis.timeutils import utc_date

_KNOWN_KEYS = frozenset(
    {
        "id",
        "name",
        "timestamp",
        "date",
        "points",
        "pointCount",
        "area",
        "perimeter",
        "accuracy",
        "elevation",
        "status",
    }
)


def area_measure(square_meters: float, config: HamgisConfig = DEFAULT_CONFIG) -> AreaMeasure:
    """Express an area in m², mu and hectares."""

    return AreaMeasure(
        square_meters=square_meters,
        mu=square_meters * config.mu_factor,
        hectares=square_meters * config.hectare_factor,
    )


def _number(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise RecordFormatError(f"{what} 不是数字：{value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise RecordFormatError(f"{what} 不是有限数值：{value!r}")
    return float(value)


def _optional_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return float(value)


def point_from_dict(data: Mapping[str, Any]) -> Point:
    """Normalise one stored point dict.

    Raises:
        RecordFormatError: If lat/lon are missing or not numbers.
    """

    if not isinstance(data, Mapping):
        raise RecordFormatError(f"点位数据格式无效：{data!r}")
    try:
        lat = _number(data["lat"], "lat")
        lon = _number(data["lon"], "lon")
    except KeyError as exc:
        raise RecordFormatError(f"点位缺少字段：{exc}") from exc

    ts = _optional_number(data.get("timestamp"))
    timestamp = int(ts) if ts else None
    return Point(lat=lat, lon=lon, altitude=_optional_number(data.get("altitude")), timestamp=timestamp)


def _elevation_from_dict(value: Any, points: Sequence[Point]) -> ElevationStats | None:
    # a stored summary without any point altitude is stale
    if not has_elevation_data(points):
        return None
    if not isinstance(value, Mapping) or value.get("average") is None:
        return compute_elevation_stats(points)
    try:
        average = round_half_up(_number(value["average"], "elevation.average"))
        hi = round_half_up(_number(value.get("max", average), "elevation.max"))
        lo = round_half_up(_number(value.get("min", average), "elevation.min"))
    except (KeyError, TypeError) as exc:
        raise RecordFormatError(f"海拔数据格式无效：{value!r}") from exc
    rng = value.get("range")
    return ElevationStats(
        average=average,
        max=hi,
        min=lo,
        range=round_half_up(_number(rng, "elevation.range")) if rng is not None else hi - lo,
    )


def record_from_dict(data: Mapping[str, Any], config: HamgisConfig = DEFAULT_CONFIG) -> MeasurementRecord:
    """Normalise a stored measurement dict into a MeasurementRecord.

    Missing unit fields are derived from ``squareMeters`` with the configured
    factors, a missing accuracy becomes ``config.default_accuracy_m`` and a
    missing elevation summary is recomputed from the points.

    Raises:
        RecordFormatError: If the dict has no id/timestamp or malformed points.
    """

    if not isinstance(data, Mapping):
        raise RecordFormatError(f"测量记录不是对象：{type(data).__name__}")

    record_id = data.get("id")
    if record_id in (None, ""):
        raise RecordFormatError("测量记录缺少 id")

    timestamp = data.get("timestamp")
    if (
        isinstance(timestamp, bool)
        or not isinstance(timestamp, (int, float))
        or not math.isfinite(timestamp)
    ):
        raise RecordFormatError(f"测量记录 {record_id} 的 timestamp 无效：{timestamp!r}")
    timestamp = int(timestamp)

    raw_points = data.get("points") or []
    if not isinstance(raw_points, list):
        raise RecordFormatError(f"测量记录 {record_id} 的 points 不是数组")
    points = tuple(point_from_dict(p) for p in raw_points)

    raw_area = data.get("area") or {}
    if not isinstance(raw_area, Mapping):
        raise RecordFormatError(f"测量记录 {record_id} 的 area 不是对象")
    sqm = _optional_number(raw_area.get("squareMeters")) or 0.0
    mu = _optional_number(raw_area.get("mu"))
    hectares = _optional_number(raw_area.get("hectares"))
    area = AreaMeasure(
        square_meters=sqm,
        mu=mu if mu is not None else sqm * config.mu_factor,
        hectares=hectares if hectares is not None else sqm * config.hectare_factor,
    )

    accuracy = _optional_number(data.get("accuracy"))
    status = data.get("status") or STATUS_COMPLETED
    if status not in RECORD_STATUSES:
        raise RecordFormatError(f"测量记录 {record_id} 的状态无效：{status!r}")

    return MeasurementRecord(
        id=str(record_id),
        name=str(data.get("name") or config.unnamed_label),
        timestamp=timestamp,
        date=str(data.get("date") or utc_date(timestamp)),
        points=points,
        area=area,
        perimeter=_optional_number(data.get("perimeter")) or 0.0,
        accuracy=accuracy if accuracy is not None else config.default_accuracy_m,
        elevation=_elevation_from_dict(data.get("elevation"), points),
        status=status,
        extras={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
    )
