import math

import pytest

from conftest import FIXED_NOW_MS, make_record
from hamgis.config import HamgisConfig
from hamgis.errors import RecordFormatError
from hamgis.models import ElevationStats
from hamgis.records import area_measure, point_from_dict, record_from_dict


def _raw(**overrides):
    data = {
        "id": "1735691400000",
        "name": "地块A",
        "timestamp": FIXED_NOW_MS,
        "date": "2025-01-01",
        "points": [
            {"lat": 30.0, "lon": 104.0, "altitude": 500.0, "timestamp": FIXED_NOW_MS - 2000},
            {"lat": 30.0, "lon": 104.001, "altitude": 510.0, "timestamp": FIXED_NOW_MS - 1000},
            {"lat": 30.001, "lon": 104.0005, "altitude": None, "timestamp": FIXED_NOW_MS},
        ],
        "area": {"squareMeters": 4800.0, "mu": 7.2, "hectares": 0.48},
        "perimeter": 320.0,
        "accuracy": 3.0,
        "elevation": {"average": 505, "max": 510, "min": 500, "range": 10},
        "status": "completed",
    }
    data.update(overrides)
    return data


def test_area_measure_uses_factors():
    a = area_measure(10000.0)
    assert a.square_meters == 10000.0
    assert a.mu == pytest.approx(15.0)
    assert a.hectares == pytest.approx(1.0)

    custom = area_measure(1000.0, HamgisConfig(mu_factor=0.001))
    assert custom.mu == pytest.approx(1.0)


def test_point_from_dict_normalises_optional_fields():
    p = point_from_dict({"lat": 1, "lon": 2})
    assert (p.lat, p.lon, p.altitude, p.timestamp) == (1.0, 2.0, None, None)

    p = point_from_dict({"lat": 1.5, "lon": 2.5, "altitude": float("nan"), "timestamp": 0})
    assert p.altitude is None
    assert p.timestamp is None


@pytest.mark.parametrize("bad", [{"lat": 1}, {"lat": "1", "lon": 2}, {"lat": True, "lon": 2}, [1, 2]])
def test_point_from_dict_rejects_malformed(bad):
    with pytest.raises(RecordFormatError):
        point_from_dict(bad)


def test_record_from_dict_full():
    r = record_from_dict(_raw())
    assert r.id == "1735691400000"
    assert r.point_count == 3
    assert r.area.mu == 7.2
    assert r.accuracy == 3.0
    assert r.elevation == ElevationStats(average=505, max=510, min=500, range=10)
    assert r.points[2].altitude is None
    assert r.extras == {}


def test_record_from_dict_round_trips_through_to_dict():
    raw = _raw(pointCount=3, source="phone")
    r = record_from_dict(raw)
    assert r.extras == {"source": "phone"}
    assert r.to_dict() == raw


def test_point_count_is_written_from_the_points():
    assert make_record().to_dict()["pointCount"] == 4
    r = record_from_dict(_raw(pointCount=99))
    assert "pointCount" not in r.extras
    assert r.to_dict()["pointCount"] == 3


def test_stored_elevation_is_rounded_half_up():
    r = record_from_dict(_raw(elevation={"average": 15.7, "max": 20.5, "min": 10.2, "range": 10.3}))
    assert r.elevation == ElevationStats(average=16, max=21, min=10, range=10)


def test_stored_elevation_dropped_when_no_point_has_altitude():
    raw = _raw(points=[{"lat": 0, "lon": 0}, {"lat": 0, "lon": 1}, {"lat": 1, "lon": 1, "altitude": None}])
    assert record_from_dict(raw).elevation is None


@pytest.mark.parametrize(
    "overrides",
    [{"timestamp": math.inf}, {"elevation": {"average": math.inf, "max": 1, "min": 0, "range": 1}}],
)
def test_record_from_dict_rejects_non_finite(overrides):
    with pytest.raises(RecordFormatError):
        record_from_dict(_raw(**overrides))


def test_record_from_dict_derives_missing_units_and_defaults():
    raw = _raw(area={"squareMeters": 2000.0}, accuracy=None, name="", elevation=None)
    del raw["date"]
    r = record_from_dict(raw)
    assert r.area.mu == pytest.approx(3.0)
    assert r.area.hectares == pytest.approx(0.2)
    assert r.accuracy == 5.0
    assert r.name == "未命名"
    assert r.date == "2025-01-01"
    # recomputed from the points with altitude
    assert r.elevation == ElevationStats(average=505, max=510, min=500, range=10)


def test_record_from_dict_without_altitudes_has_no_elevation():
    raw = _raw(points=[{"lat": 0, "lon": 0}, {"lat": 0, "lon": 1}, {"lat": 1, "lon": 1}])
    raw.pop("elevation")
    assert record_from_dict(raw).elevation is None


def test_record_from_dict_nan_perimeter_becomes_zero():
    r = record_from_dict(_raw(perimeter=math.nan))
    assert r.perimeter == 0.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"id": None},
        {"id": ""},
        {"timestamp": "yesterday"},
        {"timestamp": None},
        {"points": "nope"},
        {"area": 12},
        {"status": "archived"},
    ],
)
def test_record_from_dict_rejects_invalid(overrides):
    with pytest.raises(RecordFormatError):
        record_from_dict(_raw(**overrides))


def test_record_from_dict_rejects_non_mapping():
    with pytest.raises(RecordFormatError):
        record_from_dict(["not", "a", "record"])


def test_record_to_dict_key_order():
    keys = list(make_record().to_dict())
    assert keys == [
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
    ]
