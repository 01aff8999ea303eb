"""Data models for measurement points and records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Final, Literal

RecordStatus = Literal["completed", "draft"]

STATUS_COMPLETED: Final[str] = "completed"
STATUS_DRAFT: Final[str] = "draft"
RECORD_STATUSES: Final[frozenset[str]] = frozenset({STATUS_COMPLETED, STATUS_DRAFT})


@dataclass(frozen=True, slots=True)
class Point:
    """A single GPS fix collected during a measurement.

    Attributes:
        lat: Latitude in decimal degrees, [-90, 90].
        lon: Longitude in decimal degrees, [-180, 180].
        altitude: Altitude in meters, None when the barometer gave nothing.
        timestamp: Unix epoch milliseconds. Legacy records may lack it.
    """

    lat: float
    lon: float
    altitude: float | None = None
    timestamp: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "lat": self.lat,
            "lon": self.lon,
            "altitude": self.altitude,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class AreaMeasure:
    """One area expressed in the three units the app reports."""

    square_meters: float
    mu: float
    hectares: float

    def to_dict(self) -> dict[str, float]:
        return {"squareMeters": self.square_meters, "mu": self.mu, "hectares": self.hectares}


@dataclass(frozen=True, slots=True)
class ElevationStats:
    """Rounded altitude summary of a point sequence."""

    average: int
    max: int
    min: int
    range: int

    def to_dict(self) -> dict[str, int]:
        return {"average": self.average, "max": self.max, "min": self.min, "range": self.range}


@dataclass(frozen=True, slots=True)
class MeasurementRecord:
    """A completed (or draft) field measurement.

    Records are immutable. They are built once, either by a finished
    MeasurementSession or by normalising a stored dict
    (see hamgis.records.record_from_dict), and never edited afterwards.

    Attributes:
        id: Unique id, usually the completion time in epoch ms as a string.
        name: Display name, e.g. "地块A".
        timestamp: Completion time, epoch ms.
        date: UTC calendar date of ``timestamp`` (YYYY-MM-DD).
        points: Polygon vertices in collection order.
        area: Area in m², mu and hectares.
        perimeter: Closed-loop perimeter in meters.
        accuracy: Nominal GPS accuracy in meters.
        elevation: Altitude summary, None when no point has an altitude.
        status: "completed" or "draft".
        extras: Stored keys this model does not know; written back unchanged.
    """

    id: str
    name: str
    timestamp: int
    date: str
    points: tuple[Point, ...]
    area: AreaMeasure
    perimeter: float
    accuracy: float
    elevation: ElevationStats | None
    status: RecordStatus = "completed"
    extras: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def point_count(self) -> int:
        return len(self.points)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the stored/exported (camelCase) shape."""

        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "timestamp": self.timestamp,
            "date": self.date,
            "points": [p.to_dict() for p in self.points],
            "pointCount": self.point_count,
            "area": self.area.to_dict(),
            "perimeter": self.perimeter,
            "accuracy": self.accuracy,
            "elevation": self.elevation.to_dict() if self.elevation is not None else None,
            "status": self.status,
        }
        for key, value in self.extras.items():
            out.setdefault(key, value)
        return out


DEFAULT_TZ: Final[str] = "Asia/Shanghai"

# Storage key of the record collection (shared with the watch and phone apps).
RECORDS_KEY: Final[str] = "hamgis_measurements"
