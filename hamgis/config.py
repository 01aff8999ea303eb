"""Explicit configuration passed into the measurement and export code.

Nothing in hamgis reads global settings; callers build a HamgisConfig (or use
DEFAULT_CONFIG) and hand it to the session, the store loader and the export
engine.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Final, Mapping

from hamgis.models import DEFAULT_TZ

logger = logging.getLogger(__name__)

SUMMARY_HEADERS: Final[tuple[str, ...]] = (
    "ID",
    "项目名称",
    "测量时间",
    "面积(平方米)",
    "面积(亩)",
    "面积(公顷)",
    "周长(m)",
    "采集点数",
    "精度(m)",
    "平均海拔(m)",
    "最高海拔(m)",
    "最低海拔(m)",
    "海拔高差(m)",
    "状态",
)

DETAILED_HEADERS: Final[tuple[str, ...]] = (
    "项目ID",
    "项目名称",
    "点序号",
    "纬度",
    "经度",
    "海拔(米)",
    "采集时间",
    "项目面积(亩)",
    "项目状态",
)

FORMAT_LABELS: Final[dict[str, str]] = {
    "csv_summary": "CSV项目汇总",
    "csv_detailed": "CSV详细点位",
    "json": "JSON完整数据",
    "geojson": "GeoJSON标准",
}


@dataclass(frozen=True, slots=True)
class ExportLabels:
    """Header and file-name labels used by the exporters."""

    summary_headers: tuple[str, ...] = SUMMARY_HEADERS
    detailed_headers: tuple[str, ...] = DETAILED_HEADERS
    format_labels: Mapping[str, str] = field(default_factory=lambda: dict(FORMAT_LABELS))


@dataclass(frozen=True, slots=True)
class HamgisConfig:
    """Settings shared by measurement, storage and export.

    Attributes:
        tz_name: IANA timezone used for local date/time columns and file names.
        mu_factor: Square meters -> mu conversion factor.
        hectare_factor: Square meters -> hectares conversion factor.
        default_accuracy_m: Nominal GPS accuracy for records that carry none.
        unnamed_label: Name given to records without one.
        field_label: Prefix of generated field names ("地块A", "地块B", ...).
        primary_unit: Display unit for areas (mu / sqm / hectares / all).
        export_version: Version string written into JSON/GeoJSON exports.
        generator: Generator string of the JSON export.
        geojson_generator: Generator string of the GeoJSON export.
        labels: CSV header and file-name labels.
    """

    tz_name: str = DEFAULT_TZ
    mu_factor: float = 0.0015
    hectare_factor: float = 0.0001
    default_accuracy_m: float = 5.0
    unnamed_label: str = "未命名"
    field_label: str = "地块"
    primary_unit: str = "mu"
    export_version: str = "1.1.0"
    generator: str = "HAMGIS 测亩软件"
    geojson_generator: str = "HAMGIS v1.1.0"
    labels: ExportLabels = field(default_factory=ExportLabels)


DEFAULT_CONFIG: Final[HamgisConfig] = HamgisConfig()

# Keys written by the phone-side settings page.
_SETTING_ALIASES: Final[dict[str, str]] = {
    "gpsAccuracy": "default_accuracy_m",
    "primaryUnit": "primary_unit",
    "timezone": "tz_name",
}

_IGNORED_SETTINGS: Final[frozenset[str]] = frozenset(
    {"vibrationFeedback", "autoSave", "keepScreenOn", "largeFont"}
)


def config_from_mapping(values: Mapping[str, Any], base: HamgisConfig = DEFAULT_CONFIG) -> HamgisConfig:
    """Overlay known settings onto a base config.

    Args:
        values: Settings dict, using field names or the phone-side aliases.
        base: Config to start from.

    Returns:
        A new HamgisConfig.
    """

    known = {f.name for f in fields(HamgisConfig)} - {"labels"}
    overrides: dict[str, Any] = {}
    for key, value in values.items():
        name = _SETTING_ALIASES.get(key, key)
        if name in known:
            overrides[name] = value
        elif key not in _IGNORED_SETTINGS:
            logger.warning("忽略未知配置项：%s", key)
    for name in ("mu_factor", "hectare_factor", "default_accuracy_m"):
        if name in overrides:
            try:
                overrides[name] = float(overrides[name])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"配置项 {name} 必须是数字：{overrides[name]!r}") from exc
    return replace(base, **overrides)


def load_config(path: str | Path, base: HamgisConfig = DEFAULT_CONFIG) -> HamgisConfig:
    """Load a JSON settings file on top of ``base``.

    Raises:
        ValueError: If the file is not a JSON object.
    """

    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"配置文件不是合法JSON：{p}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"配置文件必须是JSON对象：{p}")
    return config_from_mapping(data, base)
