from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd
import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, AppConfig, ConfigError, load_config
from ..db.connection import db_cursor
from ..db.risk_store import RiskStore, RiskStoreError
from ..excel.reader import UPLOAD_MODES, MissingColumnsError, UploadError, find_missing_headers, merge_upload, read_upload
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.error_record import ErrorRecord
from ..models.query_result import QueryStatus
from ..services.data_context import SERIAL_COLUMN, DataContextError, RiskDataContext, as_stored
from ..services.export import ExportError, export_rows
from ..services.query_builder import QueryBuilder, QueryBuilderError, load_conditions, parse_condition
from ..services.risk_calc import summarize
from ..services.sanitizer import map_db_to_csv
from ..services.search import display_columns, paginate, search_rows
from ..services.smart_save import apply_changes, diff_records
from ..services.summary import (
    render_dashboard_summary,
    render_query_summary,
    render_save_summary,
    render_upload_summary,
)

"""Command line entrypoint.

Commands operate on the working dataset kept in the data store file:

    upload FILE [--mode replace|append]   load a CSV/XLSX register
    query [--where C ...] [--filters F]   run a filter chain, optionally export
    search TEXT [--page N]                free-text search with pagination
    dashboard                             risk level / treatment distribution
    clear                                 empty the data store
    add --set COL=VALUE ...               add a record with the next Sr#
    edit SR --set COL=VALUE ...           change fields of a record
    delete SR                             remove a record
    fetch --company ID                    load a company's records from the database
    save --company ID                     write changes back to the database

Exit codes: 0 success, 1 fatal (config, I/O, database), 2 input the user must
correct (missing columns, empty dataset, incomplete filter, unknown Sr#).
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_USER_ERROR = 2

NO_DATA_HINT = "Upload a CSV in the Risk Assessment page to enable the Query Builder."


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so that its values take precedence for database settings."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="risk-register", description="Risk register toolkit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Path to YAML config")
    p.add_argument("--data-store", default=None, help="Override the data store path from config")
    sub = p.add_subparsers(dest="command", required=True)

    up = sub.add_parser("upload", help="Load a CSV/XLSX register into the data store")
    up.add_argument("file", type=Path)
    up.add_argument("--mode", choices=UPLOAD_MODES, default="replace")

    q = sub.add_parser("query", help="Filter the working dataset")
    q.add_argument("--where", action="append", default=[], metavar="COND",
                   help="column|operator|value[|type[|connector]] (repeatable)")
    q.add_argument("--filters", type=Path, default=None, help="YAML file with a list of conditions")
    q.add_argument("--export", type=Path, default=None, help="Write results to .csv or .xlsx")
    q.add_argument("--limit", type=int, default=None, help="Print at most N result rows")

    s = sub.add_parser("search", help="Free-text search over every column")
    s.add_argument("text")
    s.add_argument("--page", type=int, default=1)

    sub.add_parser("dashboard", help="Show risk level and treatment distribution")
    sub.add_parser("clear", help="Delete the uploaded dataset")

    a = sub.add_parser("add", help="Add a record (next Sr#, risk score computed)")
    a.add_argument("--set", action="append", default=[], metavar="COL=VALUE", dest="fields")

    e = sub.add_parser("edit", help="Change fields of the record with the given Sr#")
    e.add_argument("serial", type=int)
    e.add_argument("--set", action="append", default=[], metavar="COL=VALUE", dest="fields")

    d = sub.add_parser("delete", help="Remove the record with the given Sr#")
    d.add_argument("serial", type=int)

    f = sub.add_parser("fetch", help="Load a company's records from the database")
    f.add_argument("--company", required=True)

    sv = sub.add_parser("save", help="Save the working dataset to the database")
    sv.add_argument("--company", required=True)
    return p.parse_args(argv)


def _print_rows(rows: list[dict], columns: list[str], limit: int | None = None) -> None:
    shown = rows if limit is None else rows[:limit]
    if not shown:
        return
    df = pd.DataFrame(shown, columns=display_columns(columns))
    print(df.fillna("-").to_string(index=False))


def _cmd_upload(args: argparse.Namespace, cfg: AppConfig, ctx: RiskDataContext, logger: logging.Logger) -> int:
    errors = ErrorLogBuffer()
    try:
        sheet = read_upload(args.file)
        missing = find_missing_headers(cfg.upload.required_headers, sheet.columns)
        if missing:
            raise MissingColumnsError(missing)
    except UploadError as e:
        logger.error(f"upload: {e}")
        errors.append(ErrorRecord.create(args.file.name, -1, e.error_type, str(e)))
        errors.flush()
        return EXIT_USER_ERROR

    result = merge_upload(ctx.rows, sheet.rows, args.mode)
    if result.duplicates:
        logger.warning(f"{len(result.duplicates)} duplicate rows skipped, {result.added} added")
    ctx.set_data(result.rows)
    ctx.save(cfg.data_store)
    log_summary(render_upload_summary(sheet.source, args.mode, result.added, len(result.duplicates), len(ctx))[8:])
    return EXIT_SUCCESS


def _cmd_query(args: argparse.Namespace, cfg: AppConfig, ctx: RiskDataContext, logger: logging.Logger) -> int:
    builder = QueryBuilder(ctx.columns)
    try:
        if args.filters is not None:
            builder.filters.extend(load_conditions(args.filters))
        for text in args.where:
            builder.filters.append(parse_condition(text, index=len(builder.filters)))
    except QueryBuilderError as e:
        logger.error(f"query: {e}")
        return EXIT_USER_ERROR

    for condition in builder.filters:
        if condition.column and condition.column not in builder.columns and builder.columns:
            logger.warning(f"unknown column '{condition.column}' never matches")

    result = builder.execute(ctx.rows)
    log_line = render_query_summary(len(ctx), result, len(builder.filters))[8:]

    if result.status is QueryStatus.EMPTY_TABLE:
        logger.warning(f"{result.message} {NO_DATA_HINT}")
        log_summary(log_line)
        return EXIT_USER_ERROR
    if result.status is QueryStatus.INCOMPLETE_FILTER:
        logger.error(f"query: {result.message}")
        log_summary(log_line)
        return EXIT_USER_ERROR

    if result.rows:
        logger.info(f"Query Results ({result.matched} rows)")
        _print_rows(result.rows, ctx.columns, args.limit)
    else:
        logger.info("No results found.")

    if args.export is not None:
        try:
            path = export_rows(result.rows, args.export, columns=ctx.columns)
            logger.info(f"exported {result.matched} rows to {path}")
        except ExportError as e:
            logger.error(f"export: {e}")
            log_summary(log_line)
            return EXIT_USER_ERROR
    log_summary(log_line)
    return EXIT_SUCCESS


def _cmd_search(args: argparse.Namespace, cfg: AppConfig, ctx: RiskDataContext, logger: logging.Logger) -> int:
    found = search_rows(ctx.rows, args.text)
    page = paginate(found, args.page, cfg.page_size)
    logger.info(f"Total Records: {page.total_rows} (page {page.page}/{max(page.total_pages, 1)})")
    _print_rows(page.rows, ctx.columns)
    log_summary(f"command=search matched={page.total_rows} page={page.page} pages={page.total_pages}")
    return EXIT_SUCCESS


def _cmd_dashboard(args: argparse.Namespace, cfg: AppConfig, ctx: RiskDataContext, logger: logging.Logger) -> int:
    summary = summarize(ctx.rows)
    logger.info(f"Total Risks: {summary.total}")
    for level, count in summary.level_counts.items():
        logger.info(f"level {level}: {count}")
    for treatment, count in summary.treatment_counts.items():
        logger.info(f"treatment {treatment}: {count}")
    log_summary(render_dashboard_summary(summary)[8:])
    return EXIT_SUCCESS


def _cmd_clear(args: argparse.Namespace, cfg: AppConfig, ctx: RiskDataContext, logger: logging.Logger) -> int:
    removed = len(ctx)
    ctx.clear()
    ctx.save(cfg.data_store)
    log_summary(f"command=clear removed={removed}")
    return EXIT_SUCCESS


def _parse_fields(pairs: list[str]) -> dict[str, str]:
    fields: dict[str, str] = {}
    for pair in pairs:
        column, sep, value = pair.partition("=")
        if not sep or not column.strip():
            raise ValueError(f"expected COL=VALUE: {pair!r}")
        fields[column.strip()] = value.strip()
    return fields


def _cmd_add(args: argparse.Namespace, cfg: AppConfig, ctx: RiskDataContext, logger: logging.Logger) -> int:
    try:
        fields = _parse_fields(args.fields)
    except ValueError as e:
        logger.error(f"add: {e}")
        return EXIT_USER_ERROR
    if not fields:
        logger.error("add: at least one --set COL=VALUE is required")
        return EXIT_USER_ERROR
    record = ctx.add_record(fields)
    ctx.save(cfg.data_store)
    logger.info(f"added record {SERIAL_COLUMN} {record[SERIAL_COLUMN]} (Risk Value {record['Risk Value']})")
    log_summary(f"command=add serial={record[SERIAL_COLUMN]} total={len(ctx)}")
    return EXIT_SUCCESS


def _cmd_edit(args: argparse.Namespace, cfg: AppConfig, ctx: RiskDataContext, logger: logging.Logger) -> int:
    try:
        fields = _parse_fields(args.fields)
        fields.pop(SERIAL_COLUMN, None)
        record = ctx.update_record(args.serial, fields)
    except (ValueError, DataContextError) as e:
        logger.error(f"edit: {e}")
        return EXIT_USER_ERROR
    ctx.save(cfg.data_store)
    logger.info(f"updated record {SERIAL_COLUMN} {args.serial} (Risk Value {record['Risk Value']})")
    log_summary(f"command=edit serial={args.serial} fields={len(fields)}")
    return EXIT_SUCCESS


def _cmd_delete(args: argparse.Namespace, cfg: AppConfig, ctx: RiskDataContext, logger: logging.Logger) -> int:
    try:
        ctx.delete_record(args.serial)
    except DataContextError as e:
        logger.error(f"delete: {e}")
        return EXIT_USER_ERROR
    ctx.save(cfg.data_store)
    log_summary(f"command=delete serial={args.serial} total={len(ctx)}")
    return EXIT_SUCCESS


def _cmd_fetch(args: argparse.Namespace, cfg: AppConfig, ctx: RiskDataContext, logger: logging.Logger) -> int:
    try:
        with db_cursor(cfg.database) as cur:
            records = RiskStore(cur).fetch_risks(args.company)
    except (RiskStoreError, psycopg2.Error) as e:
        logger.error(f"fetch: {e}")
        return EXIT_FATAL
    ctx.set_data(as_stored(map_db_to_csv(r)) for r in records)
    ctx.save(cfg.data_store)
    log_summary(f"command=fetch company={args.company} rows={len(ctx)}")
    return EXIT_SUCCESS


def _cmd_save(args: argparse.Namespace, cfg: AppConfig, ctx: RiskDataContext, logger: logging.Logger) -> int:
    errors = ErrorLogBuffer()
    try:
        with db_cursor(cfg.database) as cur:
            store = RiskStore(cur)
            # compare in data store form: the working set was reloaded from JSON
            original = [as_stored(map_db_to_csv(r)) for r in store.fetch_risks(args.company)]
            changes = diff_records(ctx.rows, original)
            result = apply_changes(store, changes, args.company, cfg.upload.null_sentinels)
            refreshed = [map_db_to_csv(r) for r in store.fetch_risks(args.company)]
    except (RiskStoreError, psycopg2.Error) as e:
        logger.error(f"save: {e}")
        errors.append(ErrorRecord.create(str(cfg.data_store), -1, "SAVE_FAILED", str(e)))
        errors.flush()
        return EXIT_FATAL
    ctx.set_data(as_stored(r) for r in refreshed)
    ctx.save(cfg.data_store)
    log_summary(render_save_summary(result)[8:])
    return EXIT_SUCCESS


_COMMANDS = {
    "upload": _cmd_upload,
    "query": _cmd_query,
    "search": _cmd_search,
    "dashboard": _cmd_dashboard,
    "clear": _cmd_clear,
    "add": _cmd_add,
    "edit": _cmd_edit,
    "delete": _cmd_delete,
    "fetch": _cmd_fetch,
    "save": _cmd_save,
}


def main(argv: list[str] | None = None) -> int:
    # only read sys.argv when no list is given, so main([]) never sees pytest's args
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    if args.data_store:
        cfg = AppConfig(
            data_store=Path(args.data_store),
            page_size=cfg.page_size,
            upload=cfg.upload,
            database=cfg.database,
        )
    logger.debug(f"data store: {cfg.data_store}")

    try:
        ctx = RiskDataContext.load(cfg.data_store)
        return _COMMANDS[args.command](args, cfg, ctx, logger)
    except DataContextError as e:
        logger.error(f"data store: {e}")
        return EXIT_FATAL
    except OSError as e:
        logger.error(f"io: {e}")
        return EXIT_FATAL
