import pytest
from sqlalchemy.exc import OperationalError

from conftest import ONE_TOKEN, fetch_rows, make_block, timestamp_extrinsic, transfer_block, transfer_extrinsic
from substrate_indexer.config import WriterConfig, WriterKind
from substrate_indexer.errors import PersistenceError
from substrate_indexer.processors.normalizer import normalize
from substrate_indexer.types.data import Extrinsic
from substrate_indexer.writers.writer import create_engine_from_config


def normalized(raw):
    return normalize(raw, raw.events or [])


@pytest.mark.asyncio
async def test_commit_writes_every_table(writer):
    result = await writer.commit(normalized(transfer_block(100, "Addr1", "Addr2")))

    assert (result.block_number, result.blocks, result.transactions) == (100, 1, 1)
    assert (result.events, result.extrinsics, result.gas_fees) == (1, 2, 0)

    blocks = fetch_rows(writer, "blocks")
    assert blocks == [
        {
            "number": 100,
            "hash": "hash100",
            "parentHash": "hash99",
            "stateRoot": "state100",
            "extrinsicsRoot": "extrinsics100",
            "timestamp": 1_700_000_000_100,
        }
    ]

    transactions = fetch_rows(writer, "transactions")
    assert len(transactions) == 1
    assert transactions[0]["amount"] == "1"
    assert transactions[0]["blockNumber"] == 100

    extrinsics = fetch_rows(writer, "extrinsics", exclude=())
    assert [(e["id"], e["name"]) for e in extrinsics] == [(1, "timestamp.set"), (2, "balances.transfer")]


@pytest.mark.asyncio
async def test_recommit_keeps_blocks_and_transfers_unique(writer):
    data = normalized(transfer_block(100, "Addr1", "Addr2"))

    await writer.commit(data)
    second = await writer.commit(data)

    assert second.blocks == 0
    assert second.transactions == 0
    assert len(fetch_rows(writer, "blocks")) == 1
    assert len(fetch_rows(writer, "transactions")) == 1
    # events and extrinsics have no natural key and are appended again
    assert len(fetch_rows(writer, "events")) == 2
    assert len(fetch_rows(writer, "extrinsics")) == 4


@pytest.mark.asyncio
async def test_failed_commit_leaves_no_rows(writer, monkeypatch):
    def broken_insert(conn, extrinsic_rows, gas_fee_rows):
        raise OperationalError("INSERT INTO extrinsics", {}, Exception("disk I/O error"))

    monkeypatch.setattr(writer, "_insert_extrinsics", broken_insert)

    with pytest.raises(PersistenceError) as excinfo:
        await writer.commit(normalized(transfer_block(7, "Addr1", "Addr2")))

    assert excinfo.value.block_number == 7
    for table_name in ("blocks", "transactions", "events", "extrinsics", "gas_fees"):
        assert fetch_rows(writer, table_name) == []


@pytest.mark.asyncio
async def test_gas_fee_only_stored_when_position_matches_new_id(writer):
    raw = make_block(
        3,
        extrinsics=[
            transfer_extrinsic("Addr1", "Addr2", ONE_TOKEN, fee="100"),
            transfer_extrinsic("Addr3", "Addr4", ONE_TOKEN, fee="200"),
        ],
    )

    result = await writer.commit(normalize(raw, []))

    # positions 0 and 1 against fresh ids 1 and 2
    assert result.gas_fees == 1
    assert fetch_rows(writer, "gas_fees") == [
        {"extrinsicId": 1, "amount": "0.0000000000000002"}
    ]


@pytest.mark.asyncio
async def test_block_without_transfers(writer):
    result = await writer.commit(normalize(make_block(5, extrinsics=[timestamp_extrinsic(5)]), []))

    assert (result.blocks, result.transactions, result.events, result.extrinsics) == (1, 0, 0, 1)
    assert fetch_rows(writer, "transactions") == []


@pytest.mark.asyncio
async def test_upsert_account_replaces_balance(writer):
    await writer.upsert_account("Addr1", "100")
    await writer.upsert_account("Addr2", "5")
    await writer.upsert_account("Addr1", "42")

    rows = sorted(fetch_rows(writer, "accounts"), key=lambda r: r["address"])
    assert rows == [
        {"address": "Addr1", "balance": "42"},
        {"address": "Addr2", "balance": "5"},
    ]


@pytest.mark.asyncio
async def test_create_tables_is_idempotent(writer):
    await writer.create_tables()
    await writer.create_tables()
    await writer.commit(normalized(transfer_block(1, "A", "B")))

    assert len(fetch_rows(writer, "blocks")) == 1


def test_engine_rejects_mismatched_url():
    with pytest.raises(ValueError):
        create_engine_from_config(WriterConfig(url="postgresql://localhost/db", kind=WriterKind.SQLITE))

    with pytest.raises(ValueError):
        create_engine_from_config(WriterConfig(url="sqlite:///x.db", kind=WriterKind.POSTGRES))


@pytest.mark.asyncio
async def test_unconvertible_row_is_a_persistence_error(writer):
    data = normalized(transfer_block(9, "Addr1", "Addr2"))
    data.extrinsics.append(Extrinsic(name="system.remark", weight=2**64 - 1))

    with pytest.raises(PersistenceError) as excinfo:
        await writer.commit(data)

    assert excinfo.value.block_number == 9
    assert fetch_rows(writer, "blocks") == []
    assert fetch_rows(writer, "extrinsics") == []
