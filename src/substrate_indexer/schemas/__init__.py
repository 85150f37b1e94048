from sqlalchemy import MetaData

from .base import SchemaConverter
from .blockchain_schemas import (
    ACCOUNTS,
    ACCOUNTS_TABLE,
    BLOCKS,
    BLOCKS_TABLE,
    EVENTS,
    EVENTS_TABLE,
    EXTRINSICS,
    EXTRINSICS_TABLE,
    GAS_FEES,
    GAS_FEES_TABLE,
    TABLE_SCHEMAS,
    TRANSACTIONS,
    TRANSACTIONS_TABLE,
)

metadata = MetaData()

blocks = SchemaConverter.to_table(BLOCKS, BLOCKS_TABLE, metadata, primary_key="number")
transactions = SchemaConverter.to_table(
    TRANSACTIONS,
    TRANSACTIONS_TABLE,
    metadata,
    primary_key="contentHash",
    indexes=["blockNumber"],
)
events = SchemaConverter.to_table(
    EVENTS, EVENTS_TABLE, metadata, autoincrement_key="id", indexes=["blockNumber"]
)
extrinsics = SchemaConverter.to_table(
    EXTRINSICS, EXTRINSICS_TABLE, metadata, autoincrement_key="id"
)
gas_fees = SchemaConverter.to_table(GAS_FEES, GAS_FEES_TABLE, metadata)
accounts = SchemaConverter.to_table(
    ACCOUNTS, ACCOUNTS_TABLE, metadata, primary_key="address"
)

__all__ = [
    "SchemaConverter",
    "TABLE_SCHEMAS",
    "metadata",
    "blocks",
    "transactions",
    "events",
    "extrinsics",
    "gas_fees",
    "accounts",
]
