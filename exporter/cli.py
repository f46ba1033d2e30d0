"""CLI entrypoint.

Usage:
- `python -m exporter.cli --connection-url postgresql+asyncpg://user@host/db --table orders --output /data/orders`
- `python -m exporter.cli ... --split-column id --query-parallelism 8`
- `python -m exporter.cli ... --partition-column created_at --partition 2024-01-15`

Exit code 0 only when schema, queries, every shard and metrics were written.
"""

import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from core.config import settings
from core.exceptions import ExportError
from core.logging import setup_logging
from exporter.orchestrator import ExportOrchestrator
from schemas.export_config import ExportConfig

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="avro-export", description="Export a SQL table to Avro files")

    conn = p.add_argument_group("connection")
    conn.add_argument("--connection-url", default=settings.DATABASE_URL)
    conn.add_argument("--driver", help="Override the URL driver, e.g. postgresql+asyncpg")
    conn.add_argument("--username")
    conn.add_argument("--password")
    conn.add_argument("--password-file", help="Read the password from this file")

    src = p.add_argument_group("source")
    src.add_argument("--table", required=True)
    src.add_argument("--fetch-size", type=int, default=settings.EXPORT_FETCH_SIZE)
    src.add_argument("--partition-column")
    src.add_argument("--partition", type=date.fromisoformat, help="Partition date (YYYY-MM-DD)")
    src.add_argument("--partition-period-days", type=int, default=1)
    src.add_argument("--limit", type=int)
    src.add_argument("--split-column")
    src.add_argument("--query-parallelism", type=int)

    out = p.add_argument_group("output")
    out.add_argument("--output", default="")
    out.add_argument("--avro-codec", default=settings.EXPORT_AVRO_CODEC)
    out.add_argument("--avro-schema-namespace", default=settings.EXPORT_SCHEMA_NAMESPACE)
    out.add_argument("--avro-doc")
    out.add_argument("--use-avro-logical-types", action="store_true")

    p.add_argument("--max-concurrency", type=int, default=settings.EXPORT_MAX_CONCURRENCY)
    p.add_argument("--log-level", default=settings.LOG_LEVEL)
    return p


def config_from_args(args: argparse.Namespace) -> ExportConfig:
    password = args.password
    if args.password_file:
        password = Path(args.password_file).read_text(encoding="utf-8").strip()

    return ExportConfig(
        connection_url=args.connection_url,
        driver=args.driver,
        username=args.username,
        password=password,
        table_name=args.table,
        fetch_size=args.fetch_size,
        avro_codec=args.avro_codec,
        avro_schema_namespace=args.avro_schema_namespace,
        avro_doc=args.avro_doc,
        use_avro_logical_types=args.use_avro_logical_types,
        output=args.output,
        partition_column=args.partition_column,
        partition=args.partition,
        partition_period_days=args.partition_period_days,
        limit=args.limit,
        split_column=args.split_column,
        query_parallelism=args.query_parallelism,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = config_from_args(args)
    except (ValidationError, OSError) as e:
        logger.error(f"Invalid export configuration: {e}")
        return 1

    try:
        result = asyncio.run(ExportOrchestrator(config, max_concurrency=args.max_concurrency).run())
    except ExportError as e:
        logger.error(f"Export of {config.table_name} failed: {e}")
        return 1

    logger.info(f"Export written to {result.output} ({len(result.shard_paths)} shards)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
