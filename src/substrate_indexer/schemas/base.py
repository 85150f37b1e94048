from typing import Dict, Iterable, Optional

import pyarrow as pa
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Float,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    Table,
    Text,
)
from sqlalchemy.types import TypeEngine


class SchemaConverter:
    """Converts Arrow schemas to SQLAlchemy tables"""

    ARROW_TO_SQL: Dict[pa.DataType, type] = {
        pa.string(): Text,
        pa.int64(): BigInteger,
        pa.int32(): Integer,
        pa.bool_(): Boolean,
        pa.float64(): Float,
        pa.binary(): LargeBinary,
    }

    @staticmethod
    def to_sql_type(dt: pa.DataType) -> TypeEngine:
        sql_type = SchemaConverter.ARROW_TO_SQL.get(dt)
        if sql_type is None:
            raise ValueError(f"Unsupported arrow type: {dt}")
        return sql_type()

    @staticmethod
    def to_table(
        arrow_schema: pa.Schema,
        table_name: str,
        metadata: MetaData,
        primary_key: Optional[str] = None,
        autoincrement_key: Optional[str] = None,
        indexes: Iterable[str] = (),
    ) -> Table:
        """Convert an Arrow schema to a SQLAlchemy Table

        autoincrement_key adds a database assigned integer id column that is
        not part of the Arrow schema.
        """

        columns = []

        if autoincrement_key is not None:
            # INTEGER PRIMARY KEY is the rowid alias on sqlite
            columns.append(
                Column(autoincrement_key, Integer, primary_key=True, autoincrement=True)
            )

        for f in arrow_schema:
            columns.append(
                Column(
                    f.name,
                    SchemaConverter.to_sql_type(f.type),
                    primary_key=f.name == primary_key,
                    autoincrement=False,
                    nullable=f.nullable and f.name != primary_key,
                )
            )

        table_indexes = [
            Index(f"idx_{table_name}_{column}", column) for column in indexes
        ]

        return Table(table_name, metadata, *columns, *table_indexes)
