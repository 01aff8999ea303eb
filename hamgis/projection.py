"""Project lat/lon points onto a pixel canvas for the mini-map."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Sequence

from hamgis.geo import LatLon

# Rough length of one degree, used only for the scale bar.
METERS_PER_DEGREE: Final[float] = 111_000.0


@dataclass(frozen=True, slots=True)
class Bounds:
    """Bounding box of a point set in degrees."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @property
    def lat_range(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def lon_range(self) -> float:
        return self.max_lon - self.min_lon


@dataclass(frozen=True, slots=True)
class ProjectedPoint:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class CanvasProjection:
    """Result of project_to_canvas.

    Attributes:
        projected: One pixel position per input point, same order.
        scale: Pixels per degree (1.0 for degenerate input).
        bounds: Bounding box of the input, None for empty input.
    """

    projected: list[ProjectedPoint]
    scale: float
    bounds: Bounds | None


def calculate_bounds(points: Sequence[LatLon]) -> Bounds | None:
    """Min/max latitude and longitude of ``points`` (None if empty)."""

    if not points:
        return None
    lats = [p.lat for p in points]
    lons = [p.lon for p in points]
    return Bounds(min_lat=min(lats), max_lat=max(lats), min_lon=min(lons), max_lon=max(lons))


def project_to_canvas(
    points: Sequence[LatLon],
    width: float,
    height: float,
    padding: float = 0.1,
) -> CanvasProjection:
    """Fit ``points`` into a ``width`` x ``height`` canvas.

    The aspect ratio is preserved: one scale factor is used for both axes and
    the projected box is centred. The y axis is flipped because pixel rows grow
    downwards while latitude grows to the north.

    Args:
        points: Points to project.
        width: Canvas width in pixels.
        height: Canvas height in pixels.
        padding: Margin on each side as a fraction of the canvas, in [0, 1).

    Returns:
        CanvasProjection. When all points share one latitude or one
        longitude, every point is placed at the canvas centre with scale 1.

    Raises:
        ValueError: If padding is outside [0, 1).
    """

    if not 0.0 <= padding < 1.0:
        raise ValueError(f"padding 必须在 [0, 1) 范围内：{padding!r}")

    bounds = calculate_bounds(points)
    if bounds is None:
        return CanvasProjection(projected=[], scale=1.0, bounds=None)

    lat_range = bounds.lat_range
    lon_range = bounds.lon_range
    if lat_range == 0 or lon_range == 0:
        center = ProjectedPoint(x=width / 2, y=height / 2)
        return CanvasProjection(projected=[center for _ in points], scale=1.0, bounds=bounds)

    available_width = width * (1 - 2 * padding)
    available_height = height * (1 - 2 * padding)
    scale = min(available_width / lon_range, available_height / lat_range)

    offset_x = (width - lon_range * scale) / 2
    offset_y = (height - lat_range * scale) / 2

    projected = [
        ProjectedPoint(
            x=(p.lon - bounds.min_lon) * scale + offset_x,
            y=height - ((p.lat - bounds.min_lat) * scale + offset_y),
        )
        for p in points
    ]
    return CanvasProjection(projected=projected, scale=scale, bounds=bounds)


def pixel_to_meters(pixel_distance: float, scale: float) -> float:
    """Approximate ground distance of ``pixel_distance`` pixels at ``scale``.

    Uses 1 degree ~= 111 km; only meant for the scale-bar label.
    """

    return pixel_distance / scale * METERS_PER_DEGREE
