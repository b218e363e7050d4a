from datetime import date, datetime, timezone

from conftest import make_fill
from fills_dump.partition import DailyPartitioner, bucket_filename, read_bucket, sanitize_label
from fills_dump.records import ExecutionRecord


def rec(fid, time, **kw):
    return ExecutionRecord.from_api(make_fill(fid, time, **kw))


def sample():
    return [
        rec(1, "2021-11-10T23:59:00+00:00"),
        rec(2, "2021-11-11T00:01:00+00:00"),
        rec(3, "2021-11-09T10:00:00+00:00"),
        rec(4, "2021-11-09T08:00:00+00:00", side="sell", market="ETH/USD"),
    ]


def test_three_days_three_files(tmp_path):
    p = DailyPartitioner(tmp_path, verbose=False)
    p.add(sample())
    report = p.flush()

    assert report.ok
    names = sorted(path.name for path in tmp_path.iterdir())
    assert names == ["main-2021-11-09.tsv", "main-2021-11-10.tsv", "main-2021-11-11.tsv"]
    assert [r.id for r in read_bucket(tmp_path / "main-2021-11-09.tsv")] == [4, 3]
    assert [r.id for r in read_bucket(tmp_path / "main-2021-11-10.tsv")] == [1]
    assert [r.id for r in read_bucket(tmp_path / "main-2021-11-11.tsv")] == [2]
    assert p.buckets == {}


def test_written_file_reads_back_identical(tmp_path):
    records = [
        rec(10, "2021-11-09T01:02:03.456789+00:00", price=61234.123456789, size=0.0001, fee=-0.00012),
        rec(11, "2021-11-09T05:00:00+00:00", market="BTC/USD", liquidity="maker", baseCurrency="BTC",
            quoteCurrency="USD", feeRate=None, orderId=None),
    ]
    p = DailyPartitioner(tmp_path, verbose=False)
    p.add(records)
    report = p.flush()
    assert read_bucket(report.written[date(2021, 11, 9)]) == records


def test_header_and_tab_layout(tmp_path):
    p = DailyPartitioner(tmp_path, label="sub1", verbose=False)
    p.add([rec(1, "2021-11-10T12:00:00+00:00")])
    path = p.flush().written[date(2021, 11, 10)]
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0].split("\t")[:4] == ["time", "id", "market", "side"]
    assert lines[1].split("\t")[:3] == ["2021-11-10T12:00:00+00:00", "1", "BTC-PERP"]
    assert len(lines) == 2


def test_duplicate_ids_in_bucket(tmp_path):
    p = DailyPartitioner(tmp_path, verbose=False)
    assert p.add([rec(1, "2021-11-10T12:00:00+00:00"), rec(1, "2021-11-10T12:00:00+00:00")]) == 1
    path = p.flush().written[date(2021, 11, 10)]
    assert len(read_bucket(path)) == 1


def test_reference_timezone_moves_day(tmp_path):
    p = DailyPartitioner(tmp_path, tz="Asia/Tokyo", verbose=False)
    p.add([rec(1, "2021-11-10T16:00:00+00:00")])
    report = p.flush()
    assert list(report.written) == [date(2021, 11, 11)]


def test_overwrite_replaces_existing_file(tmp_path):
    old = DailyPartitioner(tmp_path, verbose=False)
    old.add([rec(1, "2021-11-10T01:00:00+00:00"), rec(2, "2021-11-10T02:00:00+00:00")])
    old.flush()

    new = DailyPartitioner(tmp_path, verbose=False)
    new.add([rec(2, "2021-11-10T02:00:00+00:00", price=1.5)])
    path = new.flush().written[date(2021, 11, 10)]
    back = read_bucket(path)
    assert [r.id for r in back] == [2]
    assert back[0].price == 1.5


def test_merge_keeps_existing_rows(tmp_path):
    old = DailyPartitioner(tmp_path, verbose=False)
    old.add([rec(1, "2021-11-10T01:00:00+00:00"), rec(2, "2021-11-10T02:00:00+00:00")])
    old.flush()

    new = DailyPartitioner(tmp_path, on_existing="merge", verbose=False)
    new.add([rec(2, "2021-11-10T02:00:00+00:00", price=1.5), rec(3, "2021-11-10T03:00:00+00:00")])
    back = read_bucket(new.flush().written[date(2021, 11, 10)])
    assert [r.id for r in back] == [1, 2, 3]
    assert back[1].price == 1.5


def test_flush_before_keeps_incomplete_days(tmp_path):
    p = DailyPartitioner(tmp_path, verbose=False)
    p.add(sample())
    report = p.flush(before=date(2021, 11, 10))
    assert list(report.written) == [date(2021, 11, 11)]
    assert sorted(p.buckets) == [date(2021, 11, 9), date(2021, 11, 10)]


def test_same_day_written_twice_in_one_run_is_merged(tmp_path):
    p = DailyPartitioner(tmp_path, verbose=False)
    p.add([rec(1, "2021-11-10T01:00:00+00:00")])
    p.flush()
    p.add([rec(2, "2021-11-10T00:30:00+00:00")])
    path = p.flush().written[date(2021, 11, 10)]
    assert [r.id for r in read_bucket(path)] == [2, 1]


def test_io_error_is_reported_per_day(tmp_path):
    p = DailyPartitioner(tmp_path, verbose=False)
    # каталог на месте файла дня - запись этого дня невозможна
    (tmp_path / "main-2021-11-10.tsv").mkdir()
    p.add(sample())
    report = p.flush()
    assert not report.ok
    assert list(report.failed) == [date(2021, 11, 10)]
    assert sorted(report.written) == [date(2021, 11, 9), date(2021, 11, 11)]
    assert not [x for x in tmp_path.iterdir() if x.name.endswith(".tmp")]


def test_comma_delimiter_and_quoting(tmp_path):
    p = DailyPartitioner(tmp_path, delimiter=",", verbose=False)
    records = [rec(1, "2021-11-10T01:00:00+00:00", market="WEIRD,PAIR")]
    p.add(records)
    path = p.flush().written[date(2021, 11, 10)]
    assert path.name == "main-2021-11-10.csv"
    assert read_bucket(path, delimiter=",") == records


def test_filename_helpers():
    assert sanitize_label(None) == "main"
    assert sanitize_label("desk/a") == "desk_a"
    assert bucket_filename("main", date(2021, 1, 2)) == "main-2021-01-02.tsv"
    assert bucket_filename("x", date(2021, 1, 2), ";") == "x-2021-01-02.txt"


def test_day_of_uses_reference_zone(tmp_path):
    p = DailyPartitioner(tmp_path, tz="America/New_York", verbose=False)
    assert p.day_of(datetime(2021, 11, 10, 3, 0, tzinfo=timezone.utc)) == date(2021, 11, 9)


def test_empty_optional_fields_survive_file(tmp_path):
    records = [rec(1, "2021-11-10T01:00:00+00:00", side="", liquidity="", type="")]
    p = DailyPartitioner(tmp_path, verbose=False)
    p.add(records)
    path = p.flush().written[date(2021, 11, 10)]
    assert read_bucket(path) == records
