"""
Table schema models.

Column definitions come back from the server in ``status.projectionSchema``,
``status.primaryKeySchema`` and ``listTables``; the same shapes are sent in
``createTable``. They are parsed with pydantic so malformed metadata fails
loudly instead of being guessed at.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .exceptions import TableSchemaError


class ApiSupport(BaseModel):
    """What the Data API can do with a column of a type it only partly supports."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    cql_definition: str = Field(alias="cqlDefinition")
    create_table: bool | None = Field(default=None, alias="createTable")
    insert: bool | None = None
    read: bool | None = None
    filter: bool | None = None


class ColumnDefinition(BaseModel):
    """A single column: ``{"type": "map", "keyType": "text", "valueType": "int"}``."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    type: str
    key_type: str | None = Field(default=None, alias="keyType")
    value_type: str | None = Field(default=None, alias="valueType")
    dimension: int | None = None
    service: dict[str, Any] | None = None
    api_support: ApiSupport | None = Field(default=None, alias="apiSupport")

    @model_validator(mode="before")
    @classmethod
    def _shorthand(cls, data: Any) -> Any:
        # "text" is shorthand for {"type": "text"}
        if isinstance(data, str):
            return {"type": data}
        return data

    @model_validator(mode="after")
    def _check_unsupported(self) -> ColumnDefinition:
        if self.type == "UNSUPPORTED" and self.api_support is None:
            raise ValueError("UNSUPPORTED columns must carry apiSupport.cqlDefinition")
        return self

    @property
    def resolved_type(self) -> str:
        """The column type, falling back to the CQL definition for unsupported types."""
        if self.type == "UNSUPPORTED" and self.api_support is not None:
            return self.api_support.cql_definition
        return self.type

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PrimaryKey(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    partition_by: list[str] = Field(alias="partitionBy")
    partition_sort: dict[str, int] = Field(default_factory=dict, alias="partitionSort")

    @model_validator(mode="before")
    @classmethod
    def _shorthand(cls, data: Any) -> Any:
        # A bare column name is a single-column partition key
        if isinstance(data, str):
            return {"partitionBy": [data]}
        return data


class TableDefinition(BaseModel):
    """Columns plus primary key, as used by ``createTable`` and ``listTables``."""

    model_config = ConfigDict(populate_by_name=True)

    columns: dict[str, ColumnDefinition]
    primary_key: PrimaryKey = Field(alias="primaryKey")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TableDescriptor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    definition: TableDefinition


def parse_table_schema(raw: Any) -> dict[str, ColumnDefinition]:
    """Parse a ``{column: definition}`` mapping, raising ``TableSchemaError`` if malformed."""
    if not isinstance(raw, dict):
        raise TableSchemaError(f"Malformed table schema: expected an object, got {type(raw).__name__}")
    try:
        return {name: ColumnDefinition.model_validate(column) for name, column in raw.items()}
    except ValidationError as e:
        raise TableSchemaError(f"Malformed table schema: {e}") from e


def extract_table_schema(response: dict[str, Any]) -> tuple[dict[str, ColumnDefinition], bool]:
    """
    Pull the column schema out of a raw response.

    Returns:
        ``(schema, is_primary_key_schema)``.

    Raises:
        TableSchemaError: If the response carries neither schema.
    """
    status = response.get("status") or {}

    if status.get("primaryKeySchema") is not None:
        return parse_table_schema(status["primaryKeySchema"]), True
    if status.get("projectionSchema") is not None:
        return parse_table_schema(status["projectionSchema"]), False

    raise TableSchemaError("No schema found in response")


__all__ = [
    "ApiSupport",
    "ColumnDefinition",
    "PrimaryKey",
    "TableDefinition",
    "TableDescriptor",
    "extract_table_schema",
    "parse_table_schema",
]
