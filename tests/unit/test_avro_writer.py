"""
Unit tests for the Avro partition writer
"""

import sqlite3
import pytest
import fastavro
from contextlib import closing
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from core.exceptions import PartitionExecutionError
from exporter.avro_writer import AvroPartitionWriter
from exporter.metrics import MetricsRegistry
from exporter.schema_prober import SchemaProber
from schemas.export import ExportQuery
from schemas.export_config import ExportConfig


class TestAvroPartitionWriter:
    """Test writing one partition to one shard"""

    async def _writer(self, config, engine, metrics, codec="deflate", level=6):
        schema = await SchemaProber(config, MetricsRegistry()).create_schema(engine)
        return AvroPartitionWriter(engine, schema, metrics, fetch_size=config.fetch_size, codec=codec, codec_level=level)

    @pytest.mark.asyncio
    async def test_export_partition(self, make_config, mock_user_rows, tmp_path):
        config = make_config()
        engine = create_async_engine(config.connection_url, poolclass=NullPool)
        metrics = MetricsRegistry()
        destination = tmp_path / "part-00000-of-00001.avro"

        try:
            writer = await self._writer(config, engine, metrics)
            count = await writer.export(
                ExportQuery(index=0, sql="SELECT * FROM users WHERE 1=1 AND id >= 1 AND id < 6"),
                destination
            )
        finally:
            await engine.dispose()

        assert count == 5
        with destination.open("rb") as fo:
            reader = fastavro.reader(fo)
            records = list(reader)
            assert reader.codec == "deflate"

        assert [r["id"] for r in records] == [1, 2, 3, 4, 5]
        first = records[0]
        assert first["name"] == "user_1"
        assert first["score"] == 1.5
        assert first["active"] is False
        assert first["created_at"] == 1704103200000
        assert first["balance"] == "10.25"
        assert first["avatar"] == bytes([1, 2])

        assert metrics.get("record_count") == 5
        assert metrics.get("shard_count") == 1
        assert metrics.get("bytes_written") == destination.stat().st_size

    @pytest.mark.asyncio
    async def test_logical_timestamps(self, make_config, tmp_path):
        config = make_config(use_avro_logical_types=True)
        engine = create_async_engine(config.connection_url, poolclass=NullPool)
        destination = tmp_path / "shard.avro"

        try:
            writer = await self._writer(config, engine, MetricsRegistry(), codec="null", level=None)
            await writer.export(ExportQuery(index=0, sql="SELECT * FROM users WHERE id = 1"), destination)
        finally:
            await engine.dispose()

        with destination.open("rb") as fo:
            record = next(fastavro.reader(fo))

        assert record["created_at"].year == 2024
        assert record["created_at"].day == 1

    @pytest.mark.asyncio
    async def test_empty_partition_writes_valid_file(self, make_config, tmp_path):
        config = make_config()
        engine = create_async_engine(config.connection_url, poolclass=NullPool)
        destination = tmp_path / "empty.avro"

        try:
            writer = await self._writer(config, engine, MetricsRegistry())
            count = await writer.export(ExportQuery(index=0, sql="SELECT * FROM users WHERE id > 100"), destination)
        finally:
            await engine.dispose()

        assert count == 0
        with destination.open("rb") as fo:
            assert list(fastavro.reader(fo)) == []

    @pytest.mark.asyncio
    async def test_read_failure(self, make_config, tmp_path):
        config = make_config()
        engine = create_async_engine(config.connection_url, poolclass=NullPool)
        metrics = MetricsRegistry()

        try:
            writer = await self._writer(config, engine, metrics)
            with pytest.raises(PartitionExecutionError) as exc_info:
                await writer.export(ExportQuery(index=3, sql="SELECT * FROM missing_table"), tmp_path / "x.avro")
        finally:
            await engine.dispose()

        assert exc_info.value.context["query_index"] == 3
        assert metrics.get("record_count") == 0
        assert metrics.get("shard_count") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("codec,level", [("deflate", 9), ("deflate", 1), ("null", None)])
    async def test_codec_and_compression_level(self, make_config, tmp_path, codec, level):
        config = make_config()
        engine = create_async_engine(config.connection_url, poolclass=NullPool)
        destination = tmp_path / "shard.avro"

        try:
            writer = await self._writer(config, engine, MetricsRegistry(), codec=codec, level=level)
            count = await writer.export(ExportQuery(index=0, sql="SELECT * FROM users"), destination)
        finally:
            await engine.dispose()

        assert count == 9
        with destination.open("rb") as fo:
            reader = fastavro.reader(fo)
            assert reader.codec == codec
            assert len(list(reader)) == 9

    @pytest.mark.asyncio
    async def test_time_column(self, tmp_path):
        db_path = tmp_path / "times.db"
        with closing(sqlite3.connect(db_path)) as conn:
            conn.execute("CREATE TABLE shifts (id INTEGER, starts_at TIME, ends_on DATE)")
            conn.execute("INSERT INTO shifts VALUES (1, '10:30:00', '1970-01-02')")
            conn.execute("INSERT INTO shifts VALUES (2, NULL, NULL)")
            conn.commit()

        config = ExportConfig(connection_url=f"sqlite+aiosqlite:///{db_path}", table_name="shifts")
        engine = create_async_engine(config.connection_url, poolclass=NullPool)
        destination = tmp_path / "shifts.avro"

        try:
            writer = await self._writer(config, engine, MetricsRegistry())
            count = await writer.export(ExportQuery(index=0, sql="SELECT * FROM shifts ORDER BY id"), destination)
        finally:
            await engine.dispose()

        assert count == 2
        with destination.open("rb") as fo:
            records = list(fastavro.reader(fo))

        assert records[0] == {"id": 1, "starts_at": 37_800_000, "ends_on": 86_400_000}
        assert records[1] == {"id": 2, "starts_at": None, "ends_on": None}
