"""JSON-file key-value store holding the measurement record collection.

The watch and the phone app keep all records as one JSON array under the
``hamgis_measurements`` key of their local storage. RecordStore mirrors that
layout in a single JSON file so that dumps from either side can be used as is.
Records are only ever appended, merged by id, or deleted whole.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence

from hamgis.config import DEFAULT_CONFIG, HamgisConfig
from hamgis.errors import RecordFormatError
from hamgis.models import RECORDS_KEY, MeasurementRecord
from hamgis.records import record_from_dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoadSummary:
    """Quick summary of loading the record collection."""

    records_total: int
    records_loaded: int
    records_skipped: int


@dataclass(frozen=True, slots=True)
class MergeSummary:
    total: int
    added: int


@dataclass(frozen=True, slots=True)
class StorageInfo:
    measurement_count: int
    size_kb: float


class JsonKeyValueStore:
    """A tiny key -> JSON value store persisted to one file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, Any] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Load the file (no-op if it does not exist)."""

        if self._loaded:
            return
        self._loaded = True
        if not self._path.exists():
            self._data = {}
            return
        text = self._path.read_text(encoding="utf-8").strip()
        if not text:
            self._data = {}
            return
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = None
        if not isinstance(data, dict):
            # File corrupted: keep a backup and start fresh
            backup = self._path.with_suffix(self._path.suffix + ".broken")
            backup.write_text(text, encoding="utf-8")
            logger.warning("存储文件损坏，已备份到 %s", backup)
            data = {}
        self._data = data

    def get(self, key: str) -> Any:
        self.load()
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        """Set ``key`` and persist the whole file (atomic-ish)."""

        self.load()
        self._data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path)

    def raw_size(self, key: str) -> int:
        """Length of the JSON text stored under ``key`` (0 if absent)."""

        value = self.get(key)
        if value is None:
            return 0
        return len(json.dumps(value, ensure_ascii=False))


class RecordStore:
    """Measurement records kept under RECORDS_KEY of a JsonKeyValueStore."""

    def __init__(self, path: str | Path, config: HamgisConfig = DEFAULT_CONFIG) -> None:
        self._kv = JsonKeyValueStore(path)
        self._config = config

    @property
    def path(self) -> Path:
        return self._kv.path

    def _raw_records(self) -> list[Any]:
        stored = self._kv.get(RECORDS_KEY)
        if stored is None:
            return []
        if not isinstance(stored, list):
            logger.warning("数据格式无效（%s 不是数组），按空列表处理", RECORDS_KEY)
            return []
        return list(stored)

    def load(self) -> tuple[list[MeasurementRecord], LoadSummary]:
        """Load and normalise all records, in storage order.

        Records that cannot be normalised are skipped and counted.
        """

        raw = self._raw_records()
        records: list[MeasurementRecord] = []
        for item in raw:
            try:
                records.append(record_from_dict(item, self._config))
            except (RecordFormatError, ValueError, TypeError, OverflowError) as exc:
                logger.warning("跳过无效测量记录：%s", exc)
                continue

        summary = LoadSummary(
            records_total=len(raw),
            records_loaded=len(records),
            records_skipped=len(raw) - len(records),
        )
        if summary.records_skipped > 0:
            logger.warning("存储中有 %s 条记录解析失败已跳过", summary.records_skipped)
        return records, summary

    def append(self, record: MeasurementRecord) -> int:
        """Append one record; returns the new collection size."""

        raw = self._raw_records()
        raw.append(record.to_dict())
        self._kv.set(RECORDS_KEY, raw)
        logger.info("地块已保存：%s，总记录：%s", record.name, len(raw))
        return len(raw)

    def merge(self, incoming: Iterable[dict[str, Any] | MeasurementRecord]) -> MergeSummary:
        """Merge records by id; existing ids win, items without id are ignored."""

        raw = self._raw_records()
        seen = {str(item.get("id")) for item in raw if isinstance(item, dict) and item.get("id")}
        added = 0
        for item in incoming:
            data = item.to_dict() if isinstance(item, MeasurementRecord) else item
            if not isinstance(data, dict) or not data.get("id"):
                continue
            key = str(data["id"])
            if key in seen:
                continue
            raw.append(data)
            seen.add(key)
            added += 1
        self._kv.set(RECORDS_KEY, raw)
        logger.info("合并完成，总记录数：%s，新增：%s", len(raw), added)
        return MergeSummary(total=len(raw), added=added)

    def delete(self, record_id: str) -> bool:
        """Remove the whole record with ``record_id``; False if not found."""

        raw = self._raw_records()
        kept = [item for item in raw if not (isinstance(item, dict) and str(item.get("id")) == record_id)]
        if len(kept) == len(raw):
            return False
        self._kv.set(RECORDS_KEY, kept)
        return True

    def storage_info(self) -> StorageInfo:
        return StorageInfo(
            measurement_count=len(self._raw_records()),
            size_kb=round(self._kv.raw_size(RECORDS_KEY) / 1024, 1),
        )


def sorted_newest_first(records: Sequence[MeasurementRecord]) -> list[MeasurementRecord]:
    return sorted(records, key=lambda r: r.timestamp, reverse=True)
