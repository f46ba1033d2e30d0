"""
Mapping between SQL column types, Python row values and Avro types.
"""

import calendar
import json
import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import types as sqltypes

from schemas.avro import AvroField

TIMESTAMP_MILLIS = "timestamp-millis"

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")

_TEMPORAL_TYPES = (sqltypes.DateTime, sqltypes.Date, sqltypes.Time)
_BINARY_TYPES = (sqltypes.LargeBinary, sqltypes.BINARY, sqltypes.VARBINARY)


def normalize_name(name: str) -> str:
    """Turn a column or table name into a valid Avro name"""
    normalized = _INVALID_NAME_CHARS.sub("_", name)
    if not normalized or normalized[0].isdigit():
        normalized = f"_{normalized}"
    return normalized


def avro_type_for_sql(sql_type: sqltypes.TypeEngine) -> str:
    """Avro primitive for a reflected SQLAlchemy column type"""
    # Boolean before Integer, Float before Numeric: subclass order matters
    if isinstance(sql_type, sqltypes.Boolean):
        return "boolean"
    if isinstance(sql_type, sqltypes.SmallInteger):
        return "int"
    if isinstance(sql_type, sqltypes.Integer):
        return "long"
    if isinstance(sql_type, sqltypes.Float):
        return "double"
    if isinstance(sql_type, sqltypes.Numeric):
        return "string"
    if isinstance(sql_type, _TEMPORAL_TYPES):
        return "long"
    if isinstance(sql_type, _BINARY_TYPES):
        return "bytes"
    return "string"


def avro_type_for_value(value: Any) -> str:
    """Avro primitive guessed from a probe row value, used when reflection has no type"""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "long"
    if isinstance(value, float):
        return "double"
    if isinstance(value, (datetime, date, time)):
        return "long"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "bytes"
    return "string"


def is_temporal_sql(sql_type: Optional[sqltypes.TypeEngine], value: Any = None) -> bool:
    if sql_type is not None and not isinstance(sql_type, sqltypes.NullType):
        return isinstance(sql_type, _TEMPORAL_TYPES)
    return isinstance(value, (datetime, date, time))


def to_epoch_millis(value: Any) -> int:
    """Datetimes and dates as milliseconds since the epoch (naive values are UTC)"""
    if isinstance(value, datetime):
        return calendar.timegm(value.utctimetuple()) * 1000 + value.microsecond // 1000
    if isinstance(value, date):
        return calendar.timegm(value.timetuple()) * 1000
    if isinstance(value, time):
        return ((value.hour * 60 + value.minute) * 60 + value.second) * 1000 + value.microsecond // 1000
    raise TypeError(f"Cannot convert {type(value).__name__} to epoch millis")


def _to_long(value: Any) -> int:
    if isinstance(value, (datetime, date, time)):
        return to_epoch_millis(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
        # Drivers without native temporal types hand back ISO strings
        try:
            return to_epoch_millis(datetime.fromisoformat(value))
        except ValueError:
            return to_epoch_millis(time.fromisoformat(value))
    return int(value)


def _to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


def to_avro_value(value: Any, field: AvroField) -> Any:
    """Convert one column value to the datum the field's Avro type expects"""
    if value is None:
        return None

    avro_type = field.avro_type
    if avro_type == "boolean":
        return bool(value)
    if avro_type in ("int", "long"):
        return _to_long(value)
    if avro_type in ("float", "double"):
        return float(value)
    if avro_type == "bytes":
        if isinstance(value, str):
            return value.encode("utf-8")
        return bytes(value)
    return _to_string(value)
