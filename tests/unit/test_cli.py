"""
Unit tests for the command line entrypoint
"""

import json
import sqlite3
from contextlib import closing
from datetime import date
from unittest.mock import AsyncMock, patch
from exporter.cli import build_parser, config_from_args, main


def test_config_from_args(tmp_path):
    password_file = tmp_path / "password"
    password_file.write_text("s3cret\n")

    args = build_parser().parse_args([
        "--connection-url", "postgresql+asyncpg://db/source",
        "--username", "etl",
        "--password-file", str(password_file),
        "--table", "orders",
        "--output", str(tmp_path / "out"),
        "--avro-codec", "snappy",
        "--use-avro-logical-types",
        "--partition-column", "created_at",
        "--partition", "2024-01-15",
        "--split-column", "id",
        "--query-parallelism", "4",
        "--limit", "1000",
    ])
    config = config_from_args(args)

    assert config.table_name == "orders"
    assert config.username == "etl"
    assert config.password == "s3cret"
    assert config.avro_codec == "snappy"
    assert config.use_avro_logical_types is True
    assert config.partition == date(2024, 1, 15)
    assert config.split_column == "id"
    assert config.query_parallelism == 4
    assert config.limit == 1000


def test_empty_output_exits_non_zero(tmp_path):
    with patch("exporter.orchestrator.SchemaProber.create_schema", new_callable=AsyncMock) as mock_probe:
        code = main([
            "--connection-url", f"sqlite+aiosqlite:///{tmp_path / 'missing.db'}",
            "--table", "users",
            "--output", "",
        ])

    assert code == 1
    mock_probe.assert_not_called()
    assert not (tmp_path / "missing.db").exists()


def test_invalid_configuration_exits_non_zero(tmp_path):
    code = main([
        "--connection-url", "sqlite+aiosqlite:///unused.db",
        "--table", "users; DROP TABLE users",
        "--output", str(tmp_path),
    ])
    assert code == 1


def test_successful_export(tmp_path):
    db_path = tmp_path / "cli_source.db"
    with closing(sqlite3.connect(db_path)) as conn:
        conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
        conn.executemany("INSERT INTO users VALUES (?, ?)", [(i, f"user_{i}") for i in range(1, 5)])
        conn.commit()

    code = main([
        "--connection-url", f"sqlite+aiosqlite:///{db_path}",
        "--table", "users",
        "--output", str(tmp_path / "cli_export"),
        "--split-column", "id",
        "--query-parallelism", "2",
    ])

    assert code == 0
    metrics = json.loads((tmp_path / "cli_export" / "_METRICS.json").read_text())
    assert metrics["record_count"] == 4
    assert len(list((tmp_path / "cli_export").glob("*.avro"))) == 2
