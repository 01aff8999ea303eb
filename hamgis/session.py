"""Live measurement session: an append-only log of collected points.

Every change produces a new immutable tuple snapshot, and area/perimeter are
recomputed from that snapshot. Readers (the mini-map, a preview) keep whatever
snapshot they were handed, so a point added while they compute cannot change
their input underneath them.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Iterable

from hamgis.config import DEFAULT_CONFIG, HamgisConfig
from hamgis.elevation import compute_elevation_stats
from hamgis.errors import InsufficientPointsError
from hamgis.geo import compute_area, compute_perimeter
from hamgis.models import STATUS_COMPLETED, AreaMeasure, ElevationStats, MeasurementRecord, Point
from hamgis.records import area_measure
from hamgis.timeutils import utc_date

logger = logging.getLogger(__name__)


class MeasurementSession:
    """Collects points for one field and turns them into a MeasurementRecord."""

    def __init__(self, config: HamgisConfig = DEFAULT_CONFIG) -> None:
        self._config = config
        self._points: tuple[Point, ...] = ()
        self._area_m2 = 0.0
        self._perimeter_m = 0.0

    @property
    def points(self) -> tuple[Point, ...]:
        return self._points

    @property
    def area_m2(self) -> float:
        return self._area_m2

    @property
    def perimeter_m(self) -> float:
        return self._perimeter_m

    def _recompute(self) -> None:
        snapshot = self._points
        self._area_m2 = compute_area(snapshot)
        self._perimeter_m = compute_perimeter(snapshot)

    def add_point(self, point: Point) -> tuple[Point, ...]:
        """Append a point and return the new snapshot."""

        self._points = self._points + (point,)
        self._recompute()
        logger.debug("采集点%s: %s, %s, 海拔: %s", len(self._points), point.lat, point.lon, point.altitude)
        return self._points

    def extend(self, points: Iterable[Point]) -> tuple[Point, ...]:
        self._points = self._points + tuple(points)
        self._recompute()
        return self._points

    def undo_point(self) -> Point | None:
        """Drop the last point; returns it, or None when the log is empty."""

        if not self._points:
            logger.warning("没有点可以撤销")
            return None
        last = self._points[-1]
        self._points = self._points[:-1]
        self._recompute()
        return last

    def reset(self) -> None:
        self._points = ()
        self._recompute()

    def area_measure(self) -> AreaMeasure:
        return area_measure(self._area_m2, self._config)

    def elevation_preview(self) -> ElevationStats | None:
        return compute_elevation_stats(self._points)

    def finish(
        self,
        name: str,
        accuracy: float | None = None,
        now_ms: int | None = None,
    ) -> MeasurementRecord:
        """Complete the field and start a fresh, empty log.

        Args:
            name: Field name.
            accuracy: Nominal GPS accuracy; defaults to the configured value.
            now_ms: Completion time in epoch ms; defaults to the current time.

        Returns:
            The completed record. It is not persisted here.

        Raises:
            InsufficientPointsError: With fewer than 3 points or a zero area.
        """

        snapshot = self._points
        if len(snapshot) < 3:
            raise InsufficientPointsError(f"点数不足3个，无法完成地块（当前 {len(snapshot)} 个）")
        if self._area_m2 <= 0:
            raise InsufficientPointsError("面积无效，无法保存")

        ts = int(time.time() * 1000) if now_ms is None else int(now_ms)
        record = MeasurementRecord(
            id=str(ts),
            name=name or self._config.unnamed_label,
            timestamp=ts,
            date=utc_date(ts),
            points=snapshot,
            area=self.area_measure(),
            perimeter=self._perimeter_m,
            accuracy=self._config.default_accuracy_m if accuracy is None else float(accuracy),
            elevation=compute_elevation_stats(snapshot),
            status=STATUS_COMPLETED,
        )
        logger.info("地块完成：%s，面积：%.2f%s", record.name, record.area.mu, "亩")
        self.reset()
        return record


def field_letters(index: int) -> str:
    """Spreadsheet-style letters: 0 -> A, 25 -> Z, 26 -> AA, 27 -> AB, ..."""

    if index < 0:
        raise ValueError(f"index 不能为负数：{index}")
    result = ""
    n = index
    while n >= 0:
        result = chr(ord("A") + n % 26) + result
        n = n // 26 - 1
    return result


def next_field_name(
    records: Iterable[MeasurementRecord],
    today: date,
    config: HamgisConfig = DEFAULT_CONFIG,
) -> str:
    """Name for the next field of the day, e.g. "地块C" after two fields today."""

    today_s = today.isoformat()
    count = sum(1 for r in records if r.date == today_s)
    return f"{config.field_label}{field_letters(count)}"
