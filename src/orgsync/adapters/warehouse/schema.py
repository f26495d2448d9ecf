"""Pydantic models describing the warehouse statement API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

type WireValue = str | int | float | bool | None


class WarehouseBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ColumnType(WarehouseBaseModel):
    name: str


class PartitionInfo(WarehouseBaseModel):
    row_count: int | None = Field(default=None, alias="rowCount")
    uncompressed_size: int | None = Field(default=None, alias="uncompressedSize")


class ResultSetMetaData(WarehouseBaseModel):
    row_type: list[ColumnType] = Field(alias="rowType")
    partition_info: list[PartitionInfo] = Field(alias="partitionInfo")
    num_rows: int | None = Field(default=None, alias="numRows")


class SubmitResponse(WarehouseBaseModel):
    statement_handle: str = Field(alias="statementHandle", min_length=1)
    result_set_meta_data: ResultSetMetaData = Field(alias="resultSetMetaData")
    message: str | None = None

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.result_set_meta_data.row_type)

    @property
    def partition_count(self) -> int:
        return len(self.result_set_meta_data.partition_info)


class PartitionResponse(WarehouseBaseModel):
    data: list[list[WireValue]]


class StatementErrorResponse(WarehouseBaseModel):
    code: str | None = None
    message: str | None = None
    statement_handle: str | None = Field(default=None, alias="statementHandle")
