"""Altitude statistics for measurement points."""

from __future__ import annotations

import math
from typing import Iterable, Protocol, Sequence

from hamgis.models import ElevationStats


class HasAltitude(Protocol):
    altitude: float | None


def round_half_up(value: float) -> int:
    """Round like the watch app does (0.5 always rounds up, also for negatives)."""

    return int(math.floor(value + 0.5))


def _valid_altitude(value: object) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def valid_altitudes(points: Iterable[HasAltitude]) -> list[float]:
    """Return the usable altitudes, skipping None/NaN/non-numeric values."""

    return [float(p.altitude) for p in points if _valid_altitude(p.altitude)]


def compute_elevation_stats(points: Sequence[HasAltitude]) -> ElevationStats | None:
    """Summarise the altitudes of ``points``.

    Each statistic is rounded after reduction: the mean of the raw values is
    rounded, not the mean of rounded values.

    Returns:
        ElevationStats, or None when no point carries a usable altitude.
    """

    altitudes = valid_altitudes(points)
    if not altitudes:
        return None

    total = 0.0
    for a in altitudes:
        total += a
    hi = max(altitudes)
    lo = min(altitudes)
    return ElevationStats(
        average=round_half_up(total / len(altitudes)),
        max=round_half_up(hi),
        min=round_half_up(lo),
        range=round_half_up(hi - lo),
    )


def has_elevation_data(points: Iterable[HasAltitude]) -> bool:
    return any(_valid_altitude(p.altitude) for p in points)


def elevation_data_count(points: Iterable[HasAltitude]) -> int:
    return sum(1 for p in points if _valid_altitude(p.altitude))
