"""Multi-format export of measurement records.

Supported formats:
    - csv_summary: one row per record
    - csv_detailed: one row per collected point
    - json: full records plus metadata and aggregate statistics
    - geojson: RFC 7946 FeatureCollection with one Polygon per record

Serializers never raise. Each returns an ExportOk carrying the text, or an
ExportError after logging the cause; no partial output is ever returned.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Final, Iterable, Sequence

from hamgis.config import DEFAULT_CONFIG, HamgisConfig
from hamgis.models import AreaMeasure, MeasurementRecord
from hamgis.timeutils import format_local, iso_utc

logger = logging.getLogger(__name__)

EXPORT_FORMATS: Final[tuple[str, ...]] = ("csv_summary", "csv_detailed", "json", "geojson")

FILE_EXTENSIONS: Final[dict[str, str]] = {
    "csv_summary": "csv",
    "csv_detailed": "csv",
    "json": "json",
    "geojson": "geojson",
}

MIME_TYPES: Final[dict[str, str]] = {
    "csv_summary": "text/csv;charset=utf-8",
    "csv_detailed": "text/csv;charset=utf-8",
    "json": "application/json;charset=utf-8",
    "geojson": "application/geo+json;charset=utf-8",
}

WGS84_CRS_NAME: Final[str] = "urn:ogc:def:crs:OGC:1.3:CRS84"


@dataclass(frozen=True, slots=True)
class ExportOk:
    content: str


@dataclass(frozen=True, slots=True)
class ExportError:
    format: str
    message: str


ExportResult = ExportOk | ExportError


@dataclass(frozen=True, slots=True)
class ExportFile:
    """A rendered export, ready to be written or downloaded."""

    format: str
    filename: str
    mime_type: str
    content: str


@dataclass(frozen=True, slots=True)
class ElevationAggregate:
    """Elevation over the records that have elevation data."""

    has_data: bool
    average_of_averages: float
    global_max: int | None
    global_min: int | None


@dataclass(frozen=True, slots=True)
class DateRange:
    earliest: str | None
    latest: str | None


@dataclass(frozen=True, slots=True)
class ExportStatistics:
    """Aggregate totals over a record list."""

    total_records: int
    total_area: AreaMeasure
    total_perimeter: float
    total_points: int
    average_accuracy: float
    elevation: ElevationAggregate
    date_range: DateRange

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "totalArea": self.total_area.to_dict(),
            "totalPerimeter": self.total_perimeter,
            "totalPoints": self.total_points,
            "averageAccuracy": self.average_accuracy,
            "elevation": {
                "hasData": self.elevation.has_data,
                "averageOfAverages": self.elevation.average_of_averages,
                "globalMax": self.elevation.global_max,
                "globalMin": self.elevation.global_min,
            },
            "dateRange": {
                "earliest": self.date_range.earliest,
                "latest": self.date_range.latest,
            },
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _fixed(value: float, digits: int) -> str:
    # "+ 0.0" turns -0.0 into 0.0
    return f"{value + 0.0:.{digits}f}"


def _plain_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _csv_line(cells: Iterable[str]) -> str:
    return ",".join(cells) + "\n"


class ExportEngine:
    """Render a loaded record list into the supported export formats.

    Args:
        config: Labels, unit factors, version strings and the local timezone.
        clock: Returns the current time in epoch ms; injectable for tests.
    """

    def __init__(
        self,
        config: HamgisConfig = DEFAULT_CONFIG,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._config = config
        self._clock = clock or _now_ms
        self._records: list[MeasurementRecord] = []

    @property
    def records(self) -> tuple[MeasurementRecord, ...]:
        return tuple(self._records)

    def load(self, records: Iterable[MeasurementRecord]) -> int:
        """Replace the held record list (no merge). Returns the new count."""

        self._records = list(records)
        return len(self._records)

    def generate_file_name(self, fmt: str) -> str:
        """File name like ``HAMGIS_JSON完整数据_20250101_083000.json``.

        Unknown formats keep their own name and get a ``txt`` extension.
        """

        stamp = format_local(self._clock(), self._config.tz_name, "%Y%m%d_%H%M%S")
        label = self._config.labels.format_labels.get(fmt, fmt)
        ext = FILE_EXTENSIONS.get(fmt, "txt")
        return f"HAMGIS_{label}_{stamp}.{ext}"

    def _guard(self, fmt: str, render: Callable[[], str]) -> ExportResult:
        try:
            content = render()
        except Exception as exc:
            logger.exception("导出%s失败", fmt)
            return ExportError(format=fmt, message=f"{type(exc).__name__}: {exc}")
        logger.debug("导出%s成功（%s 条记录）", fmt, len(self._records))
        return ExportOk(content=content)

    # ------------------------------------------------------------------
    # CSV
    # ------------------------------------------------------------------
    def to_csv_summary(self) -> ExportResult:
        """One row per record; the header row is always present."""

        return self._guard("csv_summary", self._render_csv_summary)

    def _render_csv_summary(self) -> str:
        tz = self._config.tz_name
        out = [_csv_line(self._config.labels.summary_headers)]
        for r in self._records:
            elev = r.elevation
            elev_cells = (
                [_fixed(elev.average, 1), _fixed(elev.max, 1), _fixed(elev.min, 1), _fixed(elev.range, 1)]
                if elev is not None
                else ["", "", "", ""]
            )
            out.append(
                _csv_line(
                    [
                        _quote(r.id),
                        _quote(r.name),
                        _quote(format_local(r.timestamp, tz, "%Y-%m-%d %H:%M")),
                        _fixed(r.area.square_meters, 2),
                        _fixed(r.area.mu, 3),
                        _fixed(r.area.hectares, 4),
                        _fixed(r.perimeter, 2),
                        str(r.point_count),
                        _plain_number(r.accuracy),
                        *elev_cells,
                        _quote(r.status),
                    ]
                )
            )
        return "".join(out)

    def to_csv_detailed(self) -> ExportResult:
        """One row per point of every record, indexes 1-based per record."""

        return self._guard("csv_detailed", self._render_csv_detailed)

    def _render_csv_detailed(self) -> str:
        tz = self._config.tz_name
        out = [_csv_line(self._config.labels.detailed_headers)]
        for r in self._records:
            mu = _fixed(r.area.mu, 3)
            for index, p in enumerate(r.points, start=1):
                time_s = format_local(p.timestamp, tz) if p.timestamp else ""
                out.append(
                    _csv_line(
                        [
                            _quote(r.id),
                            _quote(r.name),
                            str(index),
                            _fixed(p.lat, 7),
                            _fixed(p.lon, 7),
                            _fixed(p.altitude, 1) if p.altitude is not None else "",
                            _quote(time_s),
                            mu,
                            _quote(r.status),
                        ]
                    )
                )
        return "".join(out)

    # ------------------------------------------------------------------
    # JSON / GeoJSON
    # ------------------------------------------------------------------
    def to_json(self) -> ExportResult:
        """Full records with metadata, statistics and export markers."""

        return self._guard("json", self._render_json)

    def _render_json(self) -> str:
        now = self._clock()
        export_time = iso_utc(now)
        payload = {
            "metadata": {
                "exportTime": export_time,
                "exportTimestamp": now,
                "version": self._config.export_version,
                "format": "HAMGIS JSON Export",
                "totalRecords": len(self._records),
                "generator": self._config.generator,
            },
            "statistics": self.calculate_statistics().to_dict(),
            "measurements": [
                r.to_dict() | {"_exported": True, "_exportTime": export_time} for r in self._records
            ],
        }
        return json.dumps(payload, ensure_ascii=False, indent=2, allow_nan=False)

    def to_geojson(self) -> ExportResult:
        """RFC 7946 FeatureCollection; records with fewer than 3 points are skipped."""

        return self._guard("geojson", self._render_geojson)

    def _feature(self, r: MeasurementRecord) -> dict[str, Any]:
        # GeoJSON positions are [lon, lat(, alt)]
        ring: list[list[float]] = []
        for p in r.points:
            coord = [p.lon, p.lat]
            if p.altitude is not None:
                coord.append(p.altitude)
            ring.append(coord)

        first, last = ring[0], ring[-1]
        if first[0] != last[0] or first[1] != last[1]:
            ring.append(list(first))

        elev = r.elevation
        return {
            "type": "Feature",
            "geometry": {"type": "Polygon", "coordinates": [ring]},
            "properties": {
                "id": r.id,
                "name": r.name,
                "timestamp": r.timestamp,
                "date": iso_utc(r.timestamp),
                "status": r.status,
                "area_sqm": r.area.square_meters,
                "area_mu": r.area.mu,
                "area_hectares": r.area.hectares,
                "perimeter_m": r.perimeter,
                "point_count": r.point_count,
                "gps_accuracy_m": r.accuracy,
                "elevation_avg_m": elev.average if elev is not None else None,
                "elevation_max_m": elev.max if elev is not None else None,
                "elevation_min_m": elev.min if elev is not None else None,
                "elevation_range_m": elev.range if elev is not None else None,
                "_generator": "HAMGIS",
                "_version": self._config.export_version,
            },
        }

    def _render_geojson(self) -> str:
        features = []
        for r in self._records:
            if r.point_count < 3:
                logger.warning("项目 %s 点数不足，跳过", r.name)
                continue
            features.append(self._feature(r))

        collection = {
            "type": "FeatureCollection",
            # Non-standard member; RFC 7946 readers ignore unknown members.
            "metadata": {
                "generated": iso_utc(self._clock()),
                "generator": self._config.geojson_generator,
                "count": len(features),
            },
            "crs": {"type": "name", "properties": {"name": WGS84_CRS_NAME}},
            "features": features,
        }
        return json.dumps(collection, ensure_ascii=False, indent=2, allow_nan=False)

    # ------------------------------------------------------------------
    # Statistics / dispatch
    # ------------------------------------------------------------------
    def calculate_statistics(self) -> ExportStatistics:
        """Totals, mean accuracy, elevation aggregate and date range."""

        return calculate_statistics(self._records)

    def export(self, fmt: str) -> ExportFile | ExportError:
        """Render ``fmt`` and attach its file name and MIME type."""

        renderers: dict[str, Callable[[], ExportResult]] = {
            "csv_summary": self.to_csv_summary,
            "csv_detailed": self.to_csv_detailed,
            "json": self.to_json,
            "geojson": self.to_geojson,
        }
        render = renderers.get(fmt)
        if render is None:
            logger.error("不支持的导出格式：%s", fmt)
            return ExportError(format=fmt, message=f"不支持的导出格式：{fmt}")

        result = render()
        if isinstance(result, ExportError):
            return result
        return ExportFile(
            format=fmt,
            filename=self.generate_file_name(fmt),
            mime_type=MIME_TYPES[fmt],
            content=result.content,
        )


def calculate_statistics(records: Sequence[MeasurementRecord]) -> ExportStatistics:
    """Aggregate statistics; an empty list gives a zeroed object."""

    if not records:
        return ExportStatistics(
            total_records=0,
            total_area=AreaMeasure(square_meters=0.0, mu=0.0, hectares=0.0),
            total_perimeter=0.0,
            total_points=0,
            average_accuracy=0.0,
            elevation=ElevationAggregate(has_data=False, average_of_averages=0.0, global_max=None, global_min=None),
            date_range=DateRange(earliest=None, latest=None),
        )

    sqm = mu = hectares = 0.0
    perimeter = 0.0
    total_points = 0
    total_accuracy = 0.0
    elevation_sum = 0.0
    elevation_count = 0
    global_max: int | None = None
    global_min: int | None = None
    for r in records:
        sqm += r.area.square_meters
        mu += r.area.mu
        hectares += r.area.hectares
        perimeter += r.perimeter
        total_points += r.point_count
        total_accuracy += r.accuracy
        if r.elevation is not None:
            elevation_sum += r.elevation.average
            elevation_count += 1
            if global_max is None or r.elevation.max > global_max:
                global_max = r.elevation.max
            if global_min is None or r.elevation.min < global_min:
                global_min = r.elevation.min

    timestamps = sorted(r.timestamp for r in records)
    return ExportStatistics(
        total_records=len(records),
        total_area=AreaMeasure(square_meters=sqm, mu=mu, hectares=hectares),
        total_perimeter=perimeter,
        total_points=total_points,
        average_accuracy=total_accuracy / len(records),
        elevation=ElevationAggregate(
            has_data=elevation_count > 0,
            average_of_averages=elevation_sum / elevation_count if elevation_count else 0.0,
            global_max=global_max,
            global_min=global_min,
        ),
        date_range=DateRange(earliest=iso_utc(timestamps[0]), latest=iso_utc(timestamps[-1])),
    )
