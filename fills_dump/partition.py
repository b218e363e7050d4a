# -*- coding: utf-8 -*-
# Разбиение исполнений по календарным дням и запись посуточных файлов.
from dataclasses import dataclass, field
from datetime import date, datetime
import os
import pathlib
import tempfile
from typing import Dict, Iterable, List, Optional

import pandas as pd

from fills_dump.config import resolve_timezone
from fills_dump.errors import DecodeError, IoError
from fills_dump.logging_utils import log, log_error, log_fill_file
from fills_dump.records import COLUMNS, ExecutionRecord, sort_key

EXTENSIONS = {'\t': 'tsv', ',': 'csv'}


def sanitize_label(label: Optional[str]) -> str:
    if not label:
        return 'main'
    out = str(label).strip()
    for ch in ('/', '\\', os.sep):
        out = out.replace(ch, '_')
    return out or 'main'


def bucket_filename(label: str, day: date, delimiter: str = '\t') -> str:
    ext = EXTENSIONS.get(delimiter, 'txt')
    return f"{sanitize_label(label)}-{day:%Y-%m-%d}.{ext}"


def read_bucket(path, delimiter: str = '\t') -> List[ExecutionRecord]:
    df = pd.read_csv(path, sep=delimiter, dtype=str, keep_default_na=False, encoding='utf-8')
    return [ExecutionRecord.from_row(row) for row in df.to_dict('records')]


def write_rows(path: pathlib.Path, records: List[ExecutionRecord], delimiter: str = '\t') -> None:
    """Атомарно записывает файл: временный файл в том же каталоге, затем os.replace.

    При прерывании на диске остаётся либо старая версия файла, либо новая целиком.
    """
    df = pd.DataFrame([r.to_row() for r in records], columns=COLUMNS)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    os.close(fd)
    try:
        df.to_csv(tmp_name, sep=delimiter, index=False, encoding='utf-8')
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.remove(tmp_name)
        except FileNotFoundError:
            pass
        raise


@dataclass
class WriteReport:
    written: Dict[date, pathlib.Path] = field(default_factory=dict)
    failed: Dict[date, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def update(self, other: "WriteReport") -> None:
        self.written.update(other.written)
        self.failed.update(other.failed)

    def written_paths(self) -> List[pathlib.Path]:
        return [self.written[d] for d in sorted(self.written)]


class DailyPartitioner:
    """Группирует исполнения по календарной дате в фиксированной временной зоне и пишет по файлу на день.

    Дата берётся из времени исполнения, приведённого к зоне tz (по умолчанию UTC,
    от локальной зоны машины не зависит). Политика для уже существующих файлов:
    overwrite - файл дня заменяется содержимым текущего запуска; merge - строки
    файла объединяются с новыми по id, при совпадении id побеждает новая запись.
    """

    def __init__(self, outdir, label: Optional[str] = None, tz: str = 'UTC', delimiter: str = '\t',
                 on_existing: str = 'overwrite', verbose: bool = True):
        if on_existing not in ('overwrite', 'merge'):
            raise ValueError(f"неизвестная политика для существующих файлов: {on_existing!r}")
        self.outdir = pathlib.Path(outdir)
        self.label = sanitize_label(label)
        self.tz = resolve_timezone(tz)
        self.delimiter = delimiter
        self.on_existing = on_existing
        self.verbose = verbose
        self.buckets: Dict[date, Dict[int, ExecutionRecord]] = {}
        self.report = WriteReport()
        self._flushed: set = set()

    def day_of(self, moment: datetime) -> date:
        return moment.astimezone(self.tz).date()

    def path_for(self, day: date) -> pathlib.Path:
        return self.outdir / bucket_filename(self.label, day, self.delimiter)

    def add(self, records: Iterable[ExecutionRecord]) -> int:
        added = 0
        for r in records:
            bucket = self.buckets.setdefault(self.day_of(r.time), {})
            if r.id not in bucket:
                added += 1
            bucket[r.id] = r
        return added

    def _merge_existing(self, path: pathlib.Path, records: Dict[int, ExecutionRecord]) -> Dict[int, ExecutionRecord]:
        merged = {r.id: r for r in read_bucket(path, self.delimiter)}
        merged.update(records)
        return merged

    def write_bucket(self, day: date, records: Dict[int, ExecutionRecord]) -> pathlib.Path:
        path = self.path_for(day)
        try:
            # день, уже записанный в этом запуске, дописывается слиянием, а не затирается
            if path.exists() and (self.on_existing == 'merge' or day in self._flushed):
                records = self._merge_existing(path, records)
            rows = sorted(records.values(), key=sort_key)
            write_rows(path, rows, self.delimiter)
        except (OSError, DecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise IoError(f"{path}: {e}") from e
        self._flushed.add(day)
        log_fill_file(f"{path} записан (строк: {len(rows)})")
        return path

    def flush(self, before: Optional[date] = None) -> WriteReport:
        """Пишет накопленные дни; с before - только дни строго позже before (они уже полные)."""
        report = WriteReport()
        days = sorted(d for d in self.buckets if before is None or d > before)
        for day in days:
            records = self.buckets.pop(day)
            try:
                report.written[day] = self.write_bucket(day, records)
            except IoError as e:
                report.failed[day] = str(e)
                log_error(f"Не удалось записать файл за {day:%Y-%m-%d}", e)
        self.report.update(report)
        if days:
            log(f"Записано дней: {len(report.written)}, с ошибкой: {len(report.failed)}", self.verbose)
        return report
