import pyarrow as pa

BLOCKS_TABLE = "blocks"
TRANSACTIONS_TABLE = "transactions"
EVENTS_TABLE = "events"
EXTRINSICS_TABLE = "extrinsics"
GAS_FEES_TABLE = "gas_fees"
ACCOUNTS_TABLE = "accounts"

# Amounts and balances are decimal strings so no precision is lost on u128 values

BLOCKS = pa.schema(
    [
        pa.field("number", pa.int64(), nullable=False),
        pa.field("hash", pa.string(), nullable=False),
        pa.field("parentHash", pa.string()),
        pa.field("stateRoot", pa.string()),
        pa.field("extrinsicsRoot", pa.string()),
        pa.field("timestamp", pa.int64()),
    ]
)

TRANSACTIONS = pa.schema(
    [
        pa.field("contentHash", pa.string(), nullable=False),
        pa.field("blockNumber", pa.int64(), nullable=False),
        pa.field("from_address", pa.string()),
        pa.field("to_address", pa.string()),
        pa.field("amount", pa.string()),
        pa.field("fee", pa.string()),
    ]
)

# events.id and extrinsics.id are assigned by the database

EVENTS = pa.schema(
    [
        pa.field("blockNumber", pa.int64(), nullable=False),
        pa.field("section", pa.string()),
        pa.field("method", pa.string()),
        pa.field("data", pa.string()),
    ]
)

EXTRINSICS = pa.schema(
    [
        pa.field("name", pa.string()),
        pa.field("weight", pa.int64()),
    ]
)

GAS_FEES = pa.schema(
    [
        pa.field("extrinsicId", pa.int64()),
        pa.field("amount", pa.string()),
    ]
)

ACCOUNTS = pa.schema(
    [
        pa.field("address", pa.string(), nullable=False),
        pa.field("balance", pa.string()),
    ]
)

TABLE_SCHEMAS = {
    BLOCKS_TABLE: BLOCKS,
    TRANSACTIONS_TABLE: TRANSACTIONS,
    EVENTS_TABLE: EVENTS,
    EXTRINSICS_TABLE: EXTRINSICS,
    GAS_FEES_TABLE: GAS_FEES,
    ACCOUNTS_TABLE: ACCOUNTS,
}
