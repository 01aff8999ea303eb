"""Command-line interface for hamgis.

Run:
    python -m hamgis inspect --store hamgis_store.json
    python -m hamgis export --store hamgis_store.json --format geojson
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Sequence

from hamgis.config import DEFAULT_CONFIG, HamgisConfig, load_config
from hamgis.csv_io import load_trace_points
from hamgis.errors import InsufficientPointsError
from hamgis.export import EXPORT_FORMATS, ExportEngine, ExportError, calculate_statistics
from hamgis.formatters import format_accuracy, format_area, format_date, format_perimeter
from hamgis.minimap import render_minimap_svg
from hamgis.models import MeasurementRecord
from hamgis.session import MeasurementSession, next_field_name
from hamgis.store import RecordStore, sorted_newest_first
from hamgis.timeutils import epoch_ms_from_dt, parse_dt, utc_date

_EXPORT_MARKERS = ("_exported", "_exportTime")


def _config(args: argparse.Namespace) -> HamgisConfig:
    cfg = load_config(args.config) if args.config else DEFAULT_CONFIG
    if args.tz:
        cfg = replace(cfg, tz_name=args.tz)
    return cfg


def _filter_by_time(
    records: Sequence[MeasurementRecord],
    since: str | None,
    until: str | None,
    tz_name: str,
) -> list[MeasurementRecord]:
    start_ms = epoch_ms_from_dt(parse_dt(since, tz_name)) if since else None
    end_ms = epoch_ms_from_dt(parse_dt(until, tz_name)) if until else None
    out = list(records)
    if start_ms is not None:
        out = [r for r in out if r.timestamp >= start_ms]
    if end_ms is not None:
        out = [r for r in out if r.timestamp <= end_ms]
    return out


def _cmd_inspect(args: argparse.Namespace) -> int:
    cfg = _config(args)
    store = RecordStore(args.store, cfg)
    records, summary = store.load()
    stats = calculate_statistics(records)

    print("### 记录数")
    print(f"total={summary.records_total}, loaded={summary.records_loaded}, skipped={summary.records_skipped}")
    print()

    if stats.date_range.earliest is not None:
        print("### 时间范围（UTC）")
        print(f"earliest={stats.date_range.earliest}, latest={stats.date_range.latest}")
        print()

    print("### 合计")
    print(
        f"area={format_area(stats.total_area, 'all')}, hectares={stats.total_area.hectares:.4f}, "
        f"perimeter={format_perimeter(stats.total_perimeter)}, points={stats.total_points}, "
        f"avg_accuracy={stats.average_accuracy:.1f}m"
    )
    if stats.elevation.has_data:
        print(
            f"elevation: avg={stats.elevation.average_of_averages:.1f}m, "
            f"max={stats.elevation.global_max}m, min={stats.elevation.global_min}m"
        )
    print()

    if records:
        print("### 地块（按时间倒序）")
        for r in sorted_newest_first(records):
            print(
                f"{r.id}  {r.name}  {format_date(r.timestamp, 'datetime', cfg)}  "
                f"{format_area(r.area, cfg.primary_unit)}  {format_perimeter(r.perimeter)}  "
                f"{r.point_count}点  {format_accuracy(r.accuracy)}  {r.status}"
            )
        print()

    if args.json:
        info = store.storage_info()
        payload = stats.to_dict() | {
            "recordsTotal": summary.records_total,
            "recordsLoaded": summary.records_loaded,
            "recordsSkipped": summary.records_skipped,
            "storageSizeKb": info.size_kb,
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _cmd_measure(args: argparse.Namespace) -> int:
    cfg = _config(args)
    points, summary = load_trace_points(args.csv)
    print(f"轨迹点：total_rows={summary.rows_total}, parsed={summary.rows_parsed}, skipped={summary.rows_skipped}")

    store = RecordStore(args.store, cfg)
    now_ms = int(time.time() * 1000)
    name = args.name
    if not name:
        records, _ = store.load()
        name = next_field_name(records, date.fromisoformat(utc_date(now_ms)), cfg)

    session = MeasurementSession(cfg)
    session.extend(points)
    try:
        record = session.finish(name, accuracy=args.accuracy, now_ms=now_ms)
    except InsufficientPointsError as exc:
        print(f"无法完成测量：{exc}", file=sys.stderr)
        return 1

    total = store.append(record)
    print(
        f"{record.name} 已保存：{format_area(record.area, 'all')}，周长 {format_perimeter(record.perimeter)}，"
        f"总记录 {total}"
    )
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    cfg = _config(args)
    records, _ = RecordStore(args.store, cfg).load()
    records = _filter_by_time(records, args.since, args.until, cfg.tz_name)

    engine = ExportEngine(cfg)
    engine.load(records)
    result = engine.export(args.format)
    if isinstance(result, ExportError):
        print(f"导出失败（{result.format}）：{result.message}", file=sys.stderr)
        return 1

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / result.filename
    out_path.write_text(result.content, encoding="utf-8", newline="")
    print(f"已导出：{out_path}（{len(records)} 条记录，{result.mime_type}）")
    return 0


def _incoming_records(doc: Any) -> list[Any] | None:
    if isinstance(doc, dict):
        doc = doc.get("measurements")
    if not isinstance(doc, list):
        return None
    out = []
    for item in doc:
        if isinstance(item, dict):
            item = {k: v for k, v in item.items() if k not in _EXPORT_MARKERS}
        out.append(item)
    return out


def _cmd_import(args: argparse.Namespace) -> int:
    cfg = _config(args)
    try:
        doc = json.loads(Path(args.json).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        print(f"导入数据格式无效：无法读取 {args.json}（{exc}）", file=sys.stderr)
        return 2
    incoming = _incoming_records(doc)
    if incoming is None:
        print("导入数据格式无效：需要测量记录数组或包含 measurements 的导出文件", file=sys.stderr)
        return 2
    merged = RecordStore(args.store, cfg).merge(incoming)
    print(f"导入完成：总记录数={merged.total}，新增={merged.added}")
    return 0


def _cmd_delete(args: argparse.Namespace) -> int:
    store = RecordStore(args.store, _config(args))
    if not store.delete(args.id):
        print(f"找不到记录：{args.id}", file=sys.stderr)
        return 1
    print(f"已删除：{args.id}")
    return 0


def _cmd_render(args: argparse.Namespace) -> int:
    records, _ = RecordStore(args.store, _config(args)).load()
    record = next((r for r in records if r.id == args.id), None)
    if record is None:
        print(f"找不到记录：{args.id}", file=sys.stderr)
        return 1
    svg = render_minimap_svg(record.points, args.width, args.height, args.padding)
    Path(args.out).write_text(svg, encoding="utf-8")
    print(f"已导出：{args.out}")
    return 0


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--store", type=str, default="hamgis_store.json", help="测量记录存储文件（JSON）")
    p.add_argument("--tz", type=str, default=None, help="时区（IANA），默认 Asia/Shanghai")
    p.add_argument("--config", type=str, default=None, help="设置文件（JSON，可选）")


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="hamgis")
    p.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ins = sub.add_parser("inspect", help="查看存储中的地块记录与合计统计")
    _add_common(p_ins)
    p_ins.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    p_ins.set_defaults(func=_cmd_inspect)

    p_mea = sub.add_parser("measure", help="用轨迹CSV测量一个地块并保存")
    _add_common(p_mea)
    p_mea.add_argument("--csv", type=str, required=True, help="轨迹CSV路径（lat,lon,altitude,timestamp）")
    p_mea.add_argument("--name", type=str, default=None, help="地块名称，默认按当天序号生成（地块A、地块B…）")
    p_mea.add_argument("--accuracy", type=float, default=None, help="GPS精度（米），默认取设置中的值")
    p_mea.set_defaults(func=_cmd_measure)

    p_exp = sub.add_parser("export", help="导出测量数据（CSV汇总/CSV详细/JSON/GeoJSON）")
    _add_common(p_exp)
    p_exp.add_argument("--format", type=str, required=True, choices=list(EXPORT_FORMATS), help="导出格式")
    p_exp.add_argument("--out-dir", type=str, default=".", help="输出目录（文件名自动生成）")
    p_exp.add_argument("--since", type=str, default=None, help="仅导出该时间之后的记录（例如 2025-12-01 00:00:00）")
    p_exp.add_argument("--until", type=str, default=None, help="仅导出该时间之前的记录（例如 2025-12-31 23:59:59）")
    p_exp.set_defaults(func=_cmd_export)

    p_imp = sub.add_parser("import", help="合并导入测量记录（按ID去重）")
    _add_common(p_imp)
    p_imp.add_argument("--json", type=str, required=True, help="JSON导出文件或记录数组")
    p_imp.set_defaults(func=_cmd_import)

    p_del = sub.add_parser("delete", help="删除一个地块记录")
    _add_common(p_del)
    p_del.add_argument("--id", type=str, required=True, help="记录ID")
    p_del.set_defaults(func=_cmd_delete)

    p_ren = sub.add_parser("render", help="把地块绘制为SVG小地图")
    _add_common(p_ren)
    p_ren.add_argument("--id", type=str, required=True, help="记录ID")
    p_ren.add_argument("--out", type=str, default="minimap.svg", help="输出SVG路径")
    p_ren.add_argument("--width", type=int, default=300, help="画布宽度（像素）")
    p_ren.add_argument("--height", type=int, default=300, help="画布高度（像素）")
    p_ren.add_argument("--padding", type=float, default=0.1, help="边距比例（0-1）")
    p_ren.set_defaults(func=_cmd_render)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
