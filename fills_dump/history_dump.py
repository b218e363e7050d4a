# -*- coding: utf-8 -*-
# Точка входа: выгрузка истории исполнений аккаунта (или субаккаунта) в посуточные файлы.
import argparse
from datetime import date, datetime, time, timezone
import pathlib
import sys
from typing import List, Optional

from fills_dump.config import (
    ON_EXISTING_CHOICES,
    load_config,
    load_yaml_overrides,
    parse_delimiter,
    resolve_timezone,
    validate_config,
)
from fills_dump.credentials import load_credential
from fills_dump.errors import CredentialError, FillsDumpError
from fills_dump.exchange import FillsClient
from fills_dump.history import FillsSource, HistoryPaginator
from fills_dump.logging_utils import log, log_error, setup_logging, shutdown_logging
from fills_dump.partition import DailyPartitioner, WriteReport, sanitize_label

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"ожидается дата в формате YYYY-MM-DD: {value!r}") from e


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog='fills-dump',
        description='Выгрузка истории исполнений аккаунта биржи в посуточные файлы.',
    )
    p.add_argument('--outdir', required=True, type=pathlib.Path, help='каталог для файлов (создаётся при отсутствии)')
    p.add_argument('--credential', required=True, type=pathlib.Path, help='JSON-файл с полями api_key и api_secret')
    p.add_argument('--sub-account', default=None, help='субаккаунт; без него выгружается основной аккаунт')
    p.add_argument('--start', type=parse_date, default=None, help='первый день выгрузки включительно, YYYY-MM-DD')
    p.add_argument('--end', type=parse_date, default=None, help='день окончания, не включается, YYYY-MM-DD')
    p.add_argument('--config', default=None, help='YAML-файл с параметрами поверх .env')
    p.add_argument('--timezone', default=None, help='зона для определения календарного дня (по умолчанию UTC)')
    p.add_argument('--delimiter', default=None, help='разделитель колонок: tab (по умолчанию) или один символ')
    p.add_argument('--on-existing', default=None, choices=ON_EXISTING_CHOICES,
                   help='что делать с уже существующим файлом дня')
    p.add_argument('--log-dir', default=None, help='каталог логов')
    p.add_argument('--quiet', action='store_true', help='не писать постраничный прогресс')
    return p


def _resolve_config(args):
    cfg = load_config()
    if args.config:
        load_yaml_overrides(cfg, args.config)
    if args.timezone:
        cfg.TIMEZONE = args.timezone
    if args.delimiter is not None:
        cfg.DELIMITER = parse_delimiter(args.delimiter)
    if args.on_existing:
        cfg.ON_EXISTING = args.on_existing
    if args.log_dir:
        cfg.LOG_DIR = args.log_dir
    if args.quiet:
        cfg.VERBOSE = False
    return validate_config(cfg)


def _report_written(report: WriteReport):
    paths = report.written_paths()
    if not paths:
        log("Файлы не записаны.")
        return
    log(f"Записанные файлы ({len(paths)}):")
    for path in paths:
        log(f"  {path}")


def run(args, client: Optional[FillsSource] = None) -> int:
    try:
        cfg = _resolve_config(args)
    except (ValueError, FileNotFoundError) as e:
        print(f"ошибка конфигурации: {e}", file=sys.stderr)
        return EXIT_USAGE

    tz = resolve_timezone(cfg.TIMEZONE)
    start = datetime.combine(args.start, time(0), tzinfo=tz) if args.start else None
    end = datetime.combine(args.end, time(0), tzinfo=tz) if args.end else None
    if start is not None and end is not None and start >= end:
        print("ошибка: --end должен быть позже --start", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(cfg.LOG_DIR)
    try:
        label = sanitize_label(args.sub_account)
        log(f"Запуск выгрузки: аккаунт={label} start={args.start} end={args.end or 'сейчас'} зона={cfg.TIMEZONE}", True)

        try:
            credential = load_credential(args.credential)
        except CredentialError as e:
            log_error(f"Ошибка файла ключей: {e}")
            return EXIT_FAILURE

        try:
            pathlib.Path(args.outdir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log_error(f"Не удалось создать каталог {args.outdir}", e)
            return EXIT_FAILURE

        if client is None:
            client = FillsClient(credential, sub_account=args.sub_account, cfg=cfg)
        paginator = HistoryPaginator(client, start=start, end=end, verbose=cfg.VERBOSE, page_limit=cfg.PAGE_LIMIT)
        partitioner = DailyPartitioner(
            args.outdir,
            label=label,
            tz=cfg.TIMEZONE,
            delimiter=cfg.DELIMITER,
            on_existing=cfg.ON_EXISTING,
            verbose=cfg.VERBOSE,
        )

        total = 0
        try:
            for page in paginator.iter_pages():
                total += partitioner.add(page.records)
                # страницы идут от новых к старым: дни новее границы следующего запроса уже полные
                boundary = datetime.fromtimestamp(page.next_end_time, tz=timezone.utc)
                partitioner.flush(before=partitioner.day_of(boundary))
            partitioner.flush()
        except FillsDumpError as e:
            log_error(f"Выгрузка прервана ({type(e).__name__}): {e}")
            _report_written(partitioner.report)
            return EXIT_FAILURE
        except KeyboardInterrupt:
            log_error("Выгрузка прервана пользователем")
            _report_written(partitioner.report)
            return EXIT_INTERRUPTED

        report = partitioner.report
        _report_written(report)
        if report.failed:
            for day in sorted(report.failed):
                log_error(f"{day:%Y-%m-%d}: {report.failed[day]}")
            return EXIT_FAILURE
        log(f"Готово: исполнений {total}, файлов {len(report.written)}", True)
        return EXIT_OK
    finally:
        shutdown_logging()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return run(args)


if __name__ == '__main__':
    sys.exit(main())
