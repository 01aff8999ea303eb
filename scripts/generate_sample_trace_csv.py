from __future__ import annotations

import argparse
import csv
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Final

from zoneinfo import ZoneInfo


TZ: Final[str] = "Asia/Shanghai"


@dataclass(frozen=True, slots=True)
class Field:
    name: str
    lat: float
    lon: float
    half_size_m: float


def _epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def generate_points(
    *,
    field: Field,
    corners: int,
    seed: int,
    start_local: datetime,
) -> list[dict[str, str]]:
    """Generate a fake field-boundary walk (one row per collected corner)."""

    rng = random.Random(seed)
    tz = ZoneInfo(TZ)
    cur = start_local.replace(tzinfo=tz)

    m_per_deg_lat = 111_195.0
    m_per_deg_lon = m_per_deg_lat * math.cos(math.radians(field.lat))
    altitude = rng.uniform(400, 600)

    out: list[dict[str, str]] = []
    for i in range(corners):
        # Roughly circular boundary with irregular radius
        angle = 2 * math.pi * i / corners
        radius = field.half_size_m * rng.uniform(0.8, 1.2)
        lat = field.lat + radius * math.sin(angle) / m_per_deg_lat
        lon = field.lon + radius * math.cos(angle) / m_per_deg_lon

        cur = cur + timedelta(seconds=rng.uniform(20, 90))
        altitude += rng.uniform(-1.5, 1.5)
        # Barometer sometimes gives nothing
        alt_s = "" if rng.random() < 0.1 else f"{altitude:.1f}"

        out.append(
            {
                "lat": f"{lat:.7f}",
                "lon": f"{lon:.7f}",
                "altitude": alt_s,
                "timestamp": str(_epoch_ms(cur)),
            }
        )
    return out


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake field trace CSV for demo/testing.")
    p.add_argument("--out", type=str, default="sample_data/field_trace.csv", help="Output CSV path")
    p.add_argument("--corners", type=int, default=12, help="Number of collected points")
    p.add_argument("--half-size-m", type=float, default=40.0, help="Approximate field radius in meters")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument(
        "--start",
        type=str,
        default="2025-01-01 08:00:00",
        help="Start local time in Asia/Shanghai, e.g. '2025-01-01 08:00:00'",
    )
    args = p.parse_args()

    field = Field("chengdu_farm", 30.7456421, 103.9284974, args.half_size_m)
    rows = generate_points(
        field=field,
        corners=args.corners,
        seed=args.seed,
        start_local=datetime.fromisoformat(args.start),
    )
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["lat", "lon", "altitude", "timestamp"])
        w.writeheader()
        w.writerows(rows)

    print(f"Generated: {out_path} (rows={len(rows)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
