# -*- coding: utf-8 -*-
# Постраничная выгрузка истории исполнений: курсор по времени от новых к старым.
from dataclasses import dataclass
from datetime import datetime, timezone
import math
from typing import Iterator, List, Optional, Protocol, Set

from fills_dump.errors import PaginationStalled, TransportError
from fills_dump.logging_utils import format_page_ctx, log
from fills_dump.records import ExecutionRecord, sort_key


class FillsSource(Protocol):
    def fetch_fills(self, start_time: Optional[int], end_time: int) -> List[dict]:
        ...


@dataclass
class Page:
    number: int
    # новые (ранее не встречавшиеся) записи в пределах границ, от новых к старым
    records: List[ExecutionRecord]
    # время самой старой записи страницы
    cursor: datetime
    # end_time следующего запроса, секунды
    next_end_time: int


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def next_end_time(cursor: datetime) -> int:
    # +1 секунда: исполнения с той же секундой могли не поместиться в страницу
    return int(math.floor(cursor.timestamp())) + 1


class HistoryPaginator:
    """Обходит историю исполнений одного аккаунта страницами от новых к старым.

    Биржа отдаёт ограниченную страницу, упорядоченную по убыванию времени, поэтому
    каждый следующий запрос сдвигает end_time к самой старой записи предыдущей
    страницы. Окна запросов перекрываются на одну секунду, дубликаты отсекаются
    по id. Если страница с новыми записями не сдвигает курсор в прошлое,
    выбрасывается PaginationStalled.
    """

    def __init__(self, client: FillsSource, start: Optional[datetime] = None,
                 end: Optional[datetime] = None, verbose: bool = True, page_limit: Optional[int] = None):
        self.client = client
        self.page_limit = page_limit
        self.start = _as_utc(start) if start is not None else None
        self.end = _as_utc(end) if end is not None else datetime.now(timezone.utc)
        self.verbose = verbose
        if self.start is not None and self.start >= self.end:
            raise ValueError(f"start ({self.start}) должен быть раньше end ({self.end})")

    def _in_range(self, record: ExecutionRecord) -> bool:
        if record.time >= self.end:
            return False
        return self.start is None or record.time >= self.start

    def iter_pages(self) -> Iterator[Page]:
        start_time = int(math.floor(self.start.timestamp())) if self.start is not None else None
        end_time = int(math.ceil(self.end.timestamp()))
        cursor: Optional[datetime] = None
        seen: Set[int] = set()
        number = 0

        while True:
            number += 1
            try:
                raw = self.client.fetch_fills(start_time, end_time)
            except TransportError as e:
                raise TransportError(
                    f"страница {number} (start_time={start_time}, end_time={end_time}): {e}",
                    page=number,
                    end_time=end_time,
                ) from e

            if not raw:
                log(f"Страница {number}: пусто, история выгружена полностью", self.verbose)
                return

            records = [ExecutionRecord.from_api(p) for p in raw]
            oldest = min(r.time for r in records)

            fresh: List[ExecutionRecord] = []
            for r in records:
                if r.id in seen:
                    continue
                seen.add(r.id)
                fresh.append(r)

            if not fresh:
                # полная страница из уже полученных id: в одной секунде больше исполнений, чем влезает в страницу
                if self.page_limit and len(raw) >= self.page_limit:
                    raise PaginationStalled(
                        f"страница {number}: {len(raw)} исполнений не сдвигают курсор "
                        f"(end_time={end_time}), история дальше недоступна"
                    )
                log(f"Страница {number}: только уже полученные исполнения, история выгружена полностью", self.verbose)
                return

            if cursor is not None and oldest >= cursor:
                raise PaginationStalled(
                    f"страница {number}: курсор не сдвинулся "
                    f"(предыдущий={cursor.isoformat()}, текущий={oldest.isoformat()}, end_time={end_time})"
                )

            in_range = sorted((r for r in fresh if self._in_range(r)), key=sort_key, reverse=True)
            cursor = oldest
            page = Page(number=number, records=in_range, cursor=cursor, next_end_time=next_end_time(cursor))
            log(format_page_ctx(number, len(in_range), len(raw), oldest, end_time), self.verbose)
            yield page

            if self.start is not None and oldest < self.start:
                return
            end_time = page.next_end_time

    def fetch_all(self) -> List[ExecutionRecord]:
        out: List[ExecutionRecord] = []
        for page in self.iter_pages():
            out.extend(page.records)
        out.sort(key=sort_key)
        return out
