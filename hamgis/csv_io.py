"""CSV input of GPS traces (one row per collected point)."""

from __future__ import annotations

import csv
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from hamgis.models import Point

logger = logging.getLogger(__name__)

# Accepted column names, first match wins. The second names are those of the
# footprint-app Path.csv export, so such files can be measured directly.
LAT_COLUMNS = ("lat", "latitude")
LON_COLUMNS = ("lon", "longitude")
TIME_COLUMNS = ("timestamp", "geoTime")


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _pick(row: Mapping[str, str | None], names: Sequence[str]) -> str | None:
    for name in names:
        value = row.get(name)
        if value is not None and value.strip() != "":
            return value
    return None


def _parse_float(value: str) -> float:
    return float(value.strip())


def _parse_optional_float(value: str | None) -> float | None:
    if value is None or value.strip() == "":
        return None
    return float(value.strip())


def _parse_point(row: Mapping[str, str | None]) -> Point:
    lat_s = _pick(row, LAT_COLUMNS)
    lon_s = _pick(row, LON_COLUMNS)
    if lat_s is None or lon_s is None:
        raise ValueError("missing lat/lon")
    lat = _parse_float(lat_s)
    lon = _parse_float(lon_s)
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        raise ValueError(f"out of range: {lat}, {lon}")
    ts = _parse_optional_float(_pick(row, TIME_COLUMNS))
    if ts is not None and not math.isfinite(ts):
        raise ValueError(f"invalid timestamp: {ts}")
    altitude = _parse_optional_float(row.get("altitude"))
    return Point(
        lat=lat,
        lon=lon,
        altitude=altitude if altitude is not None and math.isfinite(altitude) else None,
        timestamp=int(ts) if ts is not None else None,
    )


def load_trace_points(csv_path: str | Path) -> tuple[list[Point], CsvSummary]:
    """Load all points of a trace CSV into memory, in file order.

    Args:
        csv_path: Path to the CSV.

    Returns:
        (points, summary)

    Raises:
        KeyError: If the header has no latitude or longitude column.
    """

    p = Path(csv_path)
    rows_total = 0
    parsed: list[Point] = []

    with p.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames: Sequence[str] = tuple(reader.fieldnames or ())
        if fieldnames and (
            not any(c in fieldnames for c in LAT_COLUMNS) or not any(c in fieldnames for c in LON_COLUMNS)
        ):
            raise KeyError(f"CSV缺少经纬度字段（lat/lon 或 latitude/longitude）。实际字段：{list(fieldnames)}")
        for row in reader:
            rows_total += 1
            try:
                parsed.append(_parse_point(row))
            except (ValueError, TypeError, OverflowError):
                # 某些行可能损坏/空行，直接跳过
                continue

    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("CSV中有 %s 行解析失败已跳过", summary.rows_skipped)
    return parsed, summary
