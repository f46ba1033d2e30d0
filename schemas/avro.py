"""
Pydantic models for the generated Avro schema.

The schema is built once per export and shared by every partition unit,
so both models are frozen and fields are held in a tuple.
"""

import json
from typing import Any, Dict, Optional, Tuple

from fastavro import parse_schema
from pydantic import BaseModel, ConfigDict


class AvroField(BaseModel):
    """One nullable Avro field derived from a source column"""

    model_config = ConfigDict(frozen=True)

    name: str
    column_name: str
    sql_type: str
    avro_type: str
    logical_type: Optional[str] = None

    def to_avro(self) -> Dict[str, Any]:
        if self.logical_type:
            value_type: Any = {"type": self.avro_type, "logicalType": self.logical_type}
        else:
            value_type = self.avro_type

        return {
            "name": self.name,
            "type": ["null", value_type],
            "doc": f"From sqlType {self.sql_type}",
            "default": None,
            "columnName": self.column_name,
            "sqlType": self.sql_type,
        }

    @classmethod
    def from_avro(cls, field: Dict[str, Any]) -> "AvroField":
        value_type = field["type"][1]
        if isinstance(value_type, dict):
            avro_type = value_type["type"]
            logical_type = value_type.get("logicalType")
        else:
            avro_type = value_type
            logical_type = None

        return cls(
            name=field["name"],
            column_name=field.get("columnName", field["name"]),
            sql_type=field.get("sqlType", ""),
            avro_type=avro_type,
            logical_type=logical_type,
        )


class AvroSchema(BaseModel):
    """Record schema for every shard of one export"""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    doc: str
    table_name: str
    fields: Tuple[AvroField, ...]

    def to_avro(self) -> Dict[str, Any]:
        """Avro JSON schema as a plain dictionary"""
        return {
            "type": "record",
            "name": self.name,
            "namespace": self.namespace,
            "doc": self.doc,
            "tableName": self.table_name,
            "fields": [f.to_avro() for f in self.fields],
        }

    def to_json(self, pretty: bool = False) -> str:
        return json.dumps(self.to_avro(), indent=2 if pretty else None)

    def parsed(self) -> Dict[str, Any]:
        """Schema parsed by fastavro, ready for a writer"""
        return parse_schema(self.to_avro())

    @classmethod
    def from_json(cls, text: str) -> "AvroSchema":
        data = json.loads(text)
        return cls(
            name=data["name"],
            namespace=data.get("namespace", ""),
            doc=data.get("doc", ""),
            table_name=data.get("tableName", data["name"]),
            fields=tuple(AvroField.from_avro(f) for f in data["fields"]),
        )

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)
