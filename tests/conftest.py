"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable factories for points and
measurement records.
"""
from __future__ import annotations

import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from hamgis.config import HamgisConfig
from hamgis.models import ElevationStats, MeasurementRecord, Point
from hamgis.records import area_measure

# 2025-01-01 08:30:00 Asia/Shanghai
FIXED_NOW_MS = 1_735_691_400_000


# --- Factory helpers -------------------------------------------------
def make_square_points():
    """Small near-square of ~111 m sides at the equator, with altitudes."""

    return [
        Point(lat=0.0, lon=0.0, altitude=10.0, timestamp=FIXED_NOW_MS - 3000),
        Point(lat=0.0, lon=0.001, altitude=20.0, timestamp=FIXED_NOW_MS - 2000),
        Point(lat=0.001, lon=0.001, altitude=30.0, timestamp=FIXED_NOW_MS - 1000),
        Point(lat=0.001, lon=0.0, altitude=5.0, timestamp=FIXED_NOW_MS),
    ]


def make_record(
    record_id="1735691400000",
    name="地块A",
    timestamp=FIXED_NOW_MS,
    points=None,
    square_meters=12345.678,
    perimeter=444.7811,
    accuracy=5.0,
    elevation=ElevationStats(average=16, max=30, min=5, range=25),
    status="completed",
):
    pts = tuple(make_square_points() if points is None else points)
    return MeasurementRecord(
        id=record_id,
        name=name,
        timestamp=timestamp,
        date="2025-01-01",
        points=pts,
        area=area_measure(square_meters),
        perimeter=perimeter,
        accuracy=accuracy,
        elevation=elevation,
        status=status,
    )


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def square_points():
    return make_square_points()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW_MS


@pytest.fixture
def config():
    return HamgisConfig(tz_name="Asia/Shanghai")


@pytest.fixture
def sample_records():
    return [
        make_record(),
        make_record(
            record_id="1735777800000",
            name="地块B",
            timestamp=1_735_777_800_000,
            points=[
                Point(lat=30.0, lon=104.0, altitude=None, timestamp=None),
                Point(lat=30.0, lon=104.001),
                Point(lat=30.001, lon=104.0005),
            ],
            square_meters=4800.0,
            perimeter=320.0,
            accuracy=8.0,
            elevation=None,
        ),
    ]


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "hamgis_store.json"
