import asyncio
import dataclasses
import logging
from typing import Dict, List, Optional

import pytest
from sqlalchemy import select

from substrate_indexer import schemas
from substrate_indexer.config import WriterConfig, WriterKind
from substrate_indexer.errors import SourceProtocolError, SourceUnavailable
from substrate_indexer.ingesters.base import ChainSource
from substrate_indexer.types.raw import (
    RawBlock,
    RawEvent,
    RawExtrinsic,
    RawHeader,
    TypedValue,
)
from substrate_indexer.writers.writer import create_writer

ONE_TOKEN = "1000000000000000000"


# Configure logging for tests
@pytest.fixture(autouse=True)
def configure_logging():
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    yield


def make_header(number: int) -> RawHeader:
    return RawHeader(
        number=number,
        hash=f"hash{number}",
        parent_hash=f"hash{number - 1}",
        state_root=f"state{number}",
        extrinsics_root=f"extrinsics{number}",
    )


def timestamp_extrinsic(now: int) -> RawExtrinsic:
    return RawExtrinsic(section="timestamp", method="set", args={"now": str(now)})


def transfer_extrinsic(
    signer: Optional[str],
    dest,
    value: str,
    fee: Optional[str] = None,
    method: str = "transfer",
) -> RawExtrinsic:
    return RawExtrinsic(
        section="balances",
        method=method,
        hash=f"0x{signer}{dest}{value}",
        signer=signer,
        args={"dest": dest, "value": value},
        weight={"refTime": "1000", "proofSize": "0"},
        partial_fee=fee,
    )


def transfer_event(from_address: str, to_address: str, value: str) -> RawEvent:
    return RawEvent(
        section="balances",
        method="Transfer",
        data=[
            TypedValue("AccountId32", from_address),
            TypedValue("AccountId32", to_address),
            TypedValue("u128", value),
        ],
    )


def make_block(
    number: int,
    extrinsics: Optional[List[RawExtrinsic]] = None,
    events: Optional[List[RawEvent]] = None,
) -> RawBlock:
    return RawBlock(
        header=make_header(number),
        extrinsics=extrinsics if extrinsics is not None else [timestamp_extrinsic(1_700_000_000_000 + number)],
        events=events,
    )


def transfer_block(number: int, from_address: str, to_address: str, value: str = ONE_TOKEN) -> RawBlock:
    return make_block(
        number,
        extrinsics=[
            timestamp_extrinsic(1_700_000_000_000 + number),
            transfer_extrinsic(from_address, to_address, value),
        ],
        events=[transfer_event(from_address, to_address, value)],
    )


class FakeSource(ChainSource):
    """In-memory chain, blocks are served without their events like a node would"""

    def __init__(self, blocks: List[RawBlock], balances: Optional[Dict[str, str]] = None):
        self.blocks: Dict[int, RawBlock] = {b.number: b for b in blocks}
        self.by_hash: Dict[str, RawBlock] = {b.hash: b for b in blocks}
        self.balances: Dict[str, str] = dict(balances or {})
        self.pushed: List[RawBlock] = []
        self.failing_heights = set()
        self.failing_balances = set()
        self.unreachable = False
        self.balance_calls: List[str] = []
        self.events_calls: List[str] = []
        self.active_fetches = 0
        self.max_active_fetches = 0

    async def latest_height(self) -> int:
        if self.unreachable:
            raise SourceUnavailable("connection refused")
        return max(self.blocks)

    async def block_hash(self, height: int) -> str:
        self.active_fetches += 1
        self.max_active_fetches = max(self.max_active_fetches, self.active_fetches)
        try:
            await asyncio.sleep(0.001)
            if height in self.failing_heights:
                raise SourceUnavailable(f"timeout fetching {height}")
            if height not in self.blocks:
                raise SourceProtocolError(f"unknown block {height}")
            return self.blocks[height].hash
        finally:
            self.active_fetches -= 1

    async def block(self, block_hash: str) -> RawBlock:
        await asyncio.sleep(0)
        return dataclasses.replace(self.by_hash[block_hash], events=None)

    async def events(self, block_hash: str) -> List[RawEvent]:
        self.events_calls.append(block_hash)
        return list(self.by_hash[block_hash].events or [])

    async def account_balance(self, address: str) -> str:
        self.balance_calls.append(address)
        await asyncio.sleep(0)
        if address in self.failing_balances:
            raise SourceUnavailable(f"balance of {address} unavailable")
        return self.balances.get(address, "0")

    async def subscribe(self):
        for raw in self.pushed:
            await asyncio.sleep(0)
            yield raw


@pytest.fixture
def make_writer(tmp_path):
    """Factory for SQLite writers with their tables created, one file per name"""
    writers = []

    def factory(name: str = "index"):
        writer = create_writer(
            WriterConfig(url=f"sqlite:///{tmp_path / name}.db", kind=WriterKind.SQLITE)
        )
        writer.create_tables_impl()
        writers.append(writer)
        return writer

    yield factory

    for writer in writers:
        writer.engine.dispose()


@pytest.fixture
def writer(make_writer):
    return make_writer()


def fetch_rows(writer, table_name: str, exclude=("id",)) -> List[dict]:
    table = schemas.metadata.tables[table_name]
    with writer.engine.connect() as conn:
        rows = conn.execute(select(table)).mappings().all()
    return [{k: v for k, v in row.items() if k not in exclude} for row in rows]


def as_multiset(rows: List[dict]) -> List[tuple]:
    return sorted(tuple(sorted(row.items(), key=lambda kv: kv[0])) for row in rows)
