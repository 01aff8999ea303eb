from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import streamlit as st

from hamgis.config import DEFAULT_CONFIG, load_config
from hamgis.export import EXPORT_FORMATS, ExportEngine, ExportError
from hamgis.formatters import format_accuracy, format_area, format_date, format_perimeter
from hamgis.minimap import render_minimap_svg
from hamgis.models import DEFAULT_TZ, MeasurementRecord
from hamgis.store import RecordStore, sorted_newest_first


@st.cache_data(show_spinner=False)
def _load_records(store_path: str, tz_name: str, config_path: str, mtime: float) -> list[MeasurementRecord]:
    _ = mtime  # part of cache key so updated files reload automatically
    cfg = load_config(config_path) if config_path else DEFAULT_CONFIG
    records, _ = RecordStore(store_path, replace(cfg, tz_name=tz_name)).load()
    return records


def main() -> None:
    st.set_page_config(page_title="HAMGIS 测亩：地块数据", layout="wide")
    st.title("HAMGIS 测亩：地块记录与数据导出")

    with st.sidebar:
        st.subheader("数据与时区")
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)
        store_path = st.text_input("存储文件路径", value="hamgis_store.json")
        config_path = st.text_input("设置文件路径（可选）", value="")

    p = Path(store_path)
    if not p.exists():
        st.error(f"找不到文件：{store_path!r}。可先用 `python -m hamgis measure` 或 `import` 生成。")
        return

    try:
        records = _load_records(store_path, tz_name, config_path, p.stat().st_mtime)
    except Exception as exc:
        st.exception(exc)
        return

    cfg = load_config(config_path) if config_path else DEFAULT_CONFIG
    cfg = replace(cfg, tz_name=tz_name)
    engine = ExportEngine(cfg)
    engine.load(records)
    stats = engine.calculate_statistics()

    st.subheader("汇总")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("地块数", str(stats.total_records))
    c2.metric("总面积", format_area(stats.total_area, "mu"))
    c3.metric("总周长", format_perimeter(stats.total_perimeter, "km"))
    c4.metric("采集点数", str(stats.total_points))

    rows = [
        {
            "id": r.id,
            "name": r.name,
            "time": format_date(r.timestamp, "datetime", cfg),
            "area": format_area(r.area, "all"),
            "perimeter": format_perimeter(r.perimeter),
            "points": r.point_count,
            "accuracy": format_accuracy(r.accuracy),
            "avg_altitude_m": r.elevation.average if r.elevation else None,
            "status": r.status,
        }
        for r in sorted_newest_first(records)
    ]
    st.subheader("地块明细（按时间倒序）")
    st.dataframe(rows, use_container_width=True, height=360)

    if records:
        st.subheader("小地图")
        by_label = {f"{r.name}（{r.id}）": r for r in sorted_newest_first(records)}
        chosen = by_label[st.selectbox("选择地块", list(by_label))]
        st.markdown(render_minimap_svg(chosen.points, 320, 320), unsafe_allow_html=True)

    st.subheader("导出")
    cols = st.columns(len(EXPORT_FORMATS))
    for col, fmt in zip(cols, EXPORT_FORMATS):
        result = engine.export(fmt)
        if isinstance(result, ExportError):
            col.error(f"{cfg.labels.format_labels[fmt]} 导出失败：{result.message}")
            continue
        col.download_button(
            cfg.labels.format_labels[fmt],
            data=result.content.encode("utf-8"),
            file_name=result.filename,
            mime=result.mime_type,
            use_container_width=True,
        )

    st.caption("说明：GeoJSON 会跳过点数不足3个的地块；CSV/JSON 中的时间按所选时区显示。")


if __name__ == "__main__":
    main()
