import json

import pytest

from conftest import FIXED_NOW_MS, make_record
from hamgis.config import HamgisConfig
from hamgis.export import ExportEngine, ExportError, ExportFile, ExportOk
from hamgis.models import ElevationStats, Point

SUMMARY_HEADER = (
    "ID,项目名称,测量时间,面积(平方米),面积(亩),面积(公顷),周长(m),采集点数,精度(m),"
    "平均海拔(m),最高海拔(m),最低海拔(m),海拔高差(m),状态\n"
)
DETAILED_HEADER = "项目ID,项目名称,点序号,纬度,经度,海拔(米),采集时间,项目面积(亩),项目状态\n"


@pytest.fixture
def engine(config, fixed_clock, sample_records):
    e = ExportEngine(config, clock=fixed_clock)
    e.load(sample_records)
    return e


def _content(result):
    assert isinstance(result, ExportOk), result
    return result.content


# --- CSV -------------------------------------------------------------
def test_csv_summary_empty_is_header_only(config, fixed_clock):
    e = ExportEngine(config, clock=fixed_clock)
    assert _content(e.to_csv_summary()) == SUMMARY_HEADER


def test_csv_summary_rows(engine):
    lines = _content(engine.to_csv_summary()).split("\n")
    assert lines[0] + "\n" == SUMMARY_HEADER
    assert lines[1] == (
        '"1735691400000","地块A","2025-01-01 08:30",12345.68,18.519,1.2346,444.78,4,5,'
        '16.0,30.0,5.0,25.0,"completed"'
    )
    assert lines[2] == (
        '"1735777800000","地块B","2025-01-02 08:30",4800.00,7.200,0.4800,320.00,3,8,,,,,"completed"'
    )
    assert lines[3] == ""
    assert len(lines) == 4


def test_csv_summary_escapes_quotes(config, fixed_clock):
    e = ExportEngine(config, clock=fixed_clock)
    e.load([make_record(name='Field "North", 2')])
    row = _content(e.to_csv_summary()).split("\n")[1]
    assert row.startswith('"1735691400000","Field ""North"", 2",')


def test_csv_summary_plain_accuracy(config, fixed_clock):
    e = ExportEngine(config, clock=fixed_clock)
    e.load([make_record(accuracy=3.5)])
    row = _content(e.to_csv_summary()).split("\n")[1]
    assert ",4,3.5,16.0," in row


def test_csv_detailed_rows(engine):
    lines = _content(engine.to_csv_detailed()).splitlines()
    assert lines[0] + "\n" == DETAILED_HEADER
    assert len(lines) == 1 + 4 + 3
    assert lines[1] == (
        '"1735691400000","地块A",1,0.0000000,0.0000000,10.0,"2025-01-01 08:29:57",18.519,"completed"'
    )
    assert lines[4].split(",")[2] == "4"
    # second record restarts numbering, lacks altitude/timestamp on first point
    assert lines[5] == '"1735777800000","地块B",1,30.0000000,104.0000000,,"",7.200,"completed"'
    assert lines[7].split(",")[2] == "3"


def test_csv_detailed_empty(config, fixed_clock):
    e = ExportEngine(config, clock=fixed_clock)
    assert _content(e.to_csv_detailed()) == DETAILED_HEADER


# --- JSON ------------------------------------------------------------
def test_json_structure(engine):
    doc = json.loads(_content(engine.to_json()))
    assert list(doc) == ["metadata", "statistics", "measurements"]
    meta = doc["metadata"]
    assert list(meta) == ["exportTime", "exportTimestamp", "version", "format", "totalRecords", "generator"]
    assert meta["exportTime"] == "2025-01-01T00:30:00.000Z"
    assert meta["exportTimestamp"] == FIXED_NOW_MS
    assert meta["version"] == "1.1.0"
    assert meta["format"] == "HAMGIS JSON Export"
    assert meta["totalRecords"] == 2
    assert meta["generator"] == "HAMGIS 测亩软件"
    assert doc["statistics"]["totalRecords"] == 2


def test_json_round_trip_adds_only_export_markers(engine, sample_records):
    doc = json.loads(_content(engine.to_json()))
    for original, exported in zip(sample_records, doc["measurements"]):
        expected = original.to_dict()
        assert set(exported) - set(expected) == {"_exported", "_exportTime"}
        assert exported["_exported"] is True
        assert exported["_exportTime"] == "2025-01-01T00:30:00.000Z"
        stripped = {k: v for k, v in exported.items() if k not in ("_exported", "_exportTime")}
        assert stripped == expected


def test_json_is_pretty_printed_with_two_spaces(engine):
    text = _content(engine.to_json())
    assert text.startswith('{\n  "metadata": {\n    "exportTime"')
    assert "测亩软件" in text


def test_json_failure_returns_error(config, fixed_clock):
    e = ExportEngine(config, clock=fixed_clock)
    e.load([make_record(perimeter=float("nan"))])
    result = e.to_json()
    assert isinstance(result, ExportError)
    assert result.format == "json"


# --- GeoJSON ---------------------------------------------------------
def test_geojson_collection(engine):
    doc = json.loads(_content(engine.to_geojson()))
    assert doc["type"] == "FeatureCollection"
    assert list(doc) == ["type", "metadata", "crs", "features"]
    assert doc["crs"] == {"type": "name", "properties": {"name": "urn:ogc:def:crs:OGC:1.3:CRS84"}}
    assert doc["metadata"] == {"generated": "2025-01-01T00:30:00.000Z", "generator": "HAMGIS v1.1.0", "count": 2}
    assert len(doc["features"]) == 2


def test_geojson_ring_is_closed_lon_lat(engine):
    doc = json.loads(_content(engine.to_geojson()))
    for feature in doc["features"]:
        assert feature["geometry"]["type"] == "Polygon"
        rings = feature["geometry"]["coordinates"]
        assert len(rings) == 1
        ring = rings[0]
        assert ring[0][:2] == ring[-1][:2]

    square = doc["features"][0]["geometry"]["coordinates"][0]
    assert len(square) == 5
    assert square[1] == [0.001, 0.0, 20.0]
    # no altitude -> 2D positions
    triangle = doc["features"][1]["geometry"]["coordinates"][0]
    assert triangle[0] == [104.0, 30.0]
    assert triangle[-1] == [104.0, 30.0]


def test_geojson_already_closed_ring_is_not_duplicated(config, fixed_clock, square_points):
    closed = square_points + [Point(0.0, 0.0, 99.0, FIXED_NOW_MS)]
    e = ExportEngine(config, clock=fixed_clock)
    e.load([make_record(points=closed)])
    ring = json.loads(_content(e.to_geojson()))["features"][0]["geometry"]["coordinates"][0]
    assert len(ring) == 5
    assert ring[-1] == [0.0, 0.0, 99.0]


def test_geojson_skips_records_with_too_few_points(config, fixed_clock):
    e = ExportEngine(config, clock=fixed_clock)
    e.load([make_record(points=[Point(0, 0), Point(0, 1)], record_id="short"), make_record(record_id="ok")])
    doc = json.loads(_content(e.to_geojson()))
    assert [f["properties"]["id"] for f in doc["features"]] == ["ok"]
    assert doc["metadata"]["count"] == 1


def test_geojson_properties(engine):
    props = json.loads(_content(engine.to_geojson()))["features"][0]["properties"]
    assert props["id"] == "1735691400000"
    assert props["name"] == "地块A"
    assert props["date"] == "2025-01-01T00:30:00.000Z"
    assert props["area_sqm"] == pytest.approx(12345.678)
    assert props["area_mu"] == pytest.approx(18.518517)
    assert props["point_count"] == 4
    assert props["gps_accuracy_m"] == 5.0
    assert props["elevation_avg_m"] == 16
    assert props["elevation_range_m"] == 25
    assert props["_generator"] == "HAMGIS"
    assert props["_version"] == "1.1.0"

    no_elev = json.loads(_content(engine.to_geojson()))["features"][1]["properties"]
    assert no_elev["elevation_avg_m"] is None


# --- Statistics ------------------------------------------------------
def test_statistics_average_of_averages(config, fixed_clock):
    e = ExportEngine(config, clock=fixed_clock)
    e.load(
        [
            make_record(record_id="a", elevation=ElevationStats(average=10, max=12, min=8, range=4)),
            make_record(record_id="b", elevation=ElevationStats(average=20, max=25, min=15, range=10)),
            make_record(record_id="c", elevation=None),
        ]
    )
    stats = e.calculate_statistics()
    assert stats.elevation.has_data is True
    assert stats.elevation.average_of_averages == 15
    assert stats.elevation.global_max == 25
    assert stats.elevation.global_min == 8


def test_statistics_totals_and_date_range(config, fixed_clock, sample_records):
    e = ExportEngine(config, clock=fixed_clock)
    e.load(list(reversed(sample_records)))
    stats = e.calculate_statistics()
    assert stats.total_records == 2
    assert stats.total_area.square_meters == pytest.approx(12345.678 + 4800.0)
    assert stats.total_area.mu == pytest.approx((12345.678 + 4800.0) * 0.0015)
    assert stats.total_perimeter == pytest.approx(764.7811)
    assert stats.total_points == 7
    assert stats.average_accuracy == pytest.approx(6.5)
    assert stats.date_range.earliest == "2025-01-01T00:30:00.000Z"
    assert stats.date_range.latest == "2025-01-02T00:30:00.000Z"


def test_statistics_empty(config, fixed_clock):
    stats = ExportEngine(config, clock=fixed_clock).calculate_statistics()
    d = stats.to_dict()
    assert d["totalRecords"] == 0
    assert d["totalArea"] == {"squareMeters": 0.0, "mu": 0.0, "hectares": 0.0}
    assert d["elevation"] == {"hasData": False, "averageOfAverages": 0.0, "globalMax": None, "globalMin": None}
    assert d["dateRange"] == {"earliest": None, "latest": None}


# --- File names / dispatch ------------------------------------------
@pytest.mark.parametrize(
    "fmt, expected",
    [
        ("json", "HAMGIS_JSON完整数据_20250101_083000.json"),
        ("csv_summary", "HAMGIS_CSV项目汇总_20250101_083000.csv"),
        ("csv_detailed", "HAMGIS_CSV详细点位_20250101_083000.csv"),
        ("geojson", "HAMGIS_GeoJSON标准_20250101_083000.geojson"),
        ("kml", "HAMGIS_kml_20250101_083000.txt"),
    ],
)
def test_generate_file_name(engine, fmt, expected):
    assert engine.generate_file_name(fmt) == expected


def test_file_name_uses_configured_timezone(fixed_clock):
    e = ExportEngine(HamgisConfig(tz_name="UTC"), clock=fixed_clock)
    assert e.generate_file_name("json") == "HAMGIS_JSON完整数据_20250101_003000.json"


def test_export_dispatch(engine):
    result = engine.export("geojson")
    assert isinstance(result, ExportFile)
    assert result.mime_type == "application/geo+json;charset=utf-8"
    assert result.filename.endswith(".geojson")
    assert json.loads(result.content)["type"] == "FeatureCollection"


def test_export_unsupported_format(engine):
    result = engine.export("kml")
    assert isinstance(result, ExportError)
    assert result.format == "kml"


def test_export_propagates_serializer_failure(config, fixed_clock):
    e = ExportEngine(config, clock=fixed_clock)
    e.load([make_record(name=None)])
    assert isinstance(e.to_csv_summary(), ExportError)
    assert isinstance(e.export("csv_summary"), ExportError)


def test_load_replaces_previous_list(engine, sample_records):
    assert len(engine.records) == 2
    assert engine.load(sample_records[:1]) == 1
    assert engine.records == (sample_records[0],)
