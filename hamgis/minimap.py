"""SVG mini-map of a measured field."""

from __future__ import annotations

from html import escape
from typing import Final, Sequence

from hamgis.geo import LatLon
from hamgis.projection import ProjectedPoint, pixel_to_meters, project_to_canvas

SCALE_BAR_PX: Final[int] = 50
EMPTY_TEXT: Final[str] = "暂无地图数据"

_POLYGON_COLOR = "#80caff"
_START_COLOR = "#ff3b30"
_BAR_COLOR = "#ffffff"


def _fmt(v: float) -> str:
    return f"{v:.1f}"


def _scale_bar(scale: float, height: float) -> list[str]:
    meters = round(pixel_to_meters(SCALE_BAR_PX, scale))
    x = 10
    y = height - 30
    x2 = x + SCALE_BAR_PX
    return [
        f'<g stroke="{_BAR_COLOR}" stroke-width="2">',
        f'<line x1="{x}" y1="{_fmt(y)}" x2="{x2}" y2="{_fmt(y)}"/>',
        f'<line x1="{x}" y1="{_fmt(y - 5)}" x2="{x}" y2="{_fmt(y + 5)}"/>',
        f'<line x1="{x2}" y1="{_fmt(y - 5)}" x2="{x2}" y2="{_fmt(y + 5)}"/>',
        "</g>",
        f'<text x="{x}" y="{_fmt(y + 20)}" font-size="10" fill="{_BAR_COLOR}">{meters}m</text>',
    ]


def _points(projected: Sequence[ProjectedPoint]) -> list[str]:
    out = []
    for i, p in enumerate(projected):
        # start point is drawn red and larger
        color = _START_COLOR if i == 0 else _POLYGON_COLOR
        radius = 6 if i == 0 else 4
        out.append(f'<circle cx="{round(p.x)}" cy="{round(p.y)}" r="{radius}" fill="{color}"/>')
    return out


def render_minimap_svg(
    points: Sequence[LatLon],
    width: int = 300,
    height: int = 300,
    padding: float = 0.1,
) -> str:
    """Render the polygon, its vertices and a scale bar as an SVG document.

    Fewer than 3 points give an SVG with the empty-state text only.
    """

    head = (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}" style="background:#000">'
    )
    if len(points) < 3:
        text = (
            f'<text x="{_fmt(width / 2)}" y="{_fmt(height / 2)}" font-size="14" fill="#666666" '
            f'text-anchor="middle">{escape(EMPTY_TEXT)}</text>'
        )
        return "\n".join([head, text, "</svg>"])

    projection = project_to_canvas(points, width, height, padding)
    outline = " ".join(f"{_fmt(p.x)},{_fmt(p.y)}" for p in projection.projected)
    body = [f'<polygon points="{outline}" fill="none" stroke="{_POLYGON_COLOR}" stroke-width="2"/>']
    body += _points(projection.projected)
    bounds = projection.bounds
    # all points on one line: no meaningful scale
    if bounds is not None and bounds.lat_range > 0 and bounds.lon_range > 0:
        body += _scale_bar(projection.scale, height)
    return "\n".join([head, *body, "</svg>"])
