"""
Main entry point for the NYC property ETL.

Modes:
  init-db: Create all staging, canonical and catalog tables
  run:     Full-reset import (fetch -> stage -> normalize -> enrich -> comps -> catalog)

Examples:
  uv run python main.py init-db
  uv run python main.py run --parcel-limit 20000 --valuation-limit 20000 \
      --transaction-limit 5000 --compliance-limit 5000 --seed 7
"""

from __future__ import annotations

import argparse
import logging
import sys

from loguru import logger

from opendata.db import create_schema, get_engine, resolve_dsn
from propetl import config
from propetl.runner import build_context, run_full_import
from propetl.state import RunReport


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: str = "INFO", log_dir: str = "logs") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
        backtrace=True,
        diagnose=False,
    )
    logger.add(
        f"{log_dir}/property_etl_{{time:YYYY-MM-DD}}.log",
        rotation="00:00",
        retention="30 days",
        level=level,
        format="{time:HH:mm:ss} | {level: <8} | {module}:{function}:{line} | {extra} - {message}{exception}",
        backtrace=True,
        diagnose=False,
    )

    # Route urllib3/sqlalchemy logging through loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=logging.WARNING, force=True)
    for logger_name in ["urllib3", "sqlalchemy", "requests"]:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]
        logging.getLogger(logger_name).propagate = False


def log_summary(report: RunReport) -> None:
    logger.info("=" * 60)
    logger.info("IMPORT COMPLETE")
    logger.info("=" * 60)
    for result in report.results:
        logger.info(
            f"  {result.step:<18} processed={result.processed:>9,} "
            f"succeeded={result.succeeded:>9,} skipped={result.skipped:>7,} "
            f"failed={result.failed:>7,}"
        )
    for key, value in sorted(report.counts.items()):
        logger.info(f"  - {key}: {value:,}")
    failed = report.failed_batches
    if failed:
        logger.warning(f"  {len(failed)} batch(es) failed and were skipped:")
        for batch in failed:
            logger.warning(f"    {batch.label}#{batch.index} (offset {batch.offset}): {batch.error}")
    logger.info(f"  - Time elapsed: {report.elapsed_seconds:.0f}s")


def handle_init_db(args: argparse.Namespace) -> int:
    dsn = resolve_dsn(args.dsn)
    create_schema(get_engine(dsn))
    logger.success("Schema created")
    return 0


def handle_run(args: argparse.Namespace) -> int:
    dsn = resolve_dsn(args.dsn)
    if args.create_schema:
        create_schema(get_engine(dsn))
    context = build_context(
        dsn=dsn,
        parcel_limit=args.parcel_limit,
        valuation_limit=args.valuation_limit,
        transaction_limit=args.transaction_limit,
        compliance_limit=args.compliance_limit,
        violation_limit=args.violation_limit,
        page_size=args.page_size,
        seed=args.seed,
    )
    report = run_full_import(context)
    log_summary(report)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NYC property data ETL")
    parser.add_argument("--dsn", help="SQLAlchemy DSN (default: $PROPERTY_ETL_DSN)")
    parser.add_argument("--log-level", default="INFO")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=handle_init_db)

    run_parser = subparsers.add_parser("run", help="Run the full-reset import pipeline")
    run_parser.add_argument("--parcel-limit", type=int, default=config.DEFAULT_PARCEL_LIMIT)
    run_parser.add_argument("--valuation-limit", type=int, default=config.DEFAULT_VALUATION_LIMIT)
    run_parser.add_argument("--transaction-limit", type=int, default=config.DEFAULT_TRANSACTION_LIMIT)
    run_parser.add_argument("--compliance-limit", type=int, default=config.DEFAULT_COMPLIANCE_LIMIT)
    run_parser.add_argument(
        "--violation-limit",
        type=int,
        default=config.DEFAULT_VIOLATION_LIMIT,
        help="HPD violations to roll up into compliance rows (0 disables)",
    )
    run_parser.add_argument("--page-size", type=int, default=config.FETCH_PAGE_SIZE)
    run_parser.add_argument("--seed", type=int, help="Seed for placeholder scores and comp sampling")
    run_parser.add_argument(
        "--create-schema", action="store_true", help="Create missing tables before running"
    )
    run_parser.set_defaults(func=handle_run)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    try:
        return args.func(args)
    except Exception as exc:  # noqa: BLE001
        logger.error(f"Import failed: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
