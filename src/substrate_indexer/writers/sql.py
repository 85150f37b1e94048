import asyncio
import logging
from typing import Any, Dict, List

import pyarrow as pa
from sqlalchemy import Connection, Engine, Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from .. import schemas
from ..errors import PersistenceError
from ..schemas.blockchain_schemas import (
    BLOCKS_TABLE,
    EVENTS_TABLE,
    EXTRINSICS_TABLE,
    GAS_FEES_TABLE,
    TRANSACTIONS_TABLE,
)
from ..types.data import NormalizedBlock
from .base import CommitResult, DataWriter

logger = logging.getLogger(__name__)

SUPPORTED_DIALECTS = ("sqlite", "postgresql")


class Writer(DataWriter):
    """SQLAlchemy backed writer, the same statements run on sqlite and postgresql.

    Every call borrows its own connection from the engine pool, so concurrent
    commits never share a transaction.
    """

    def __init__(self, engine: Engine):
        if engine.dialect.name not in SUPPORTED_DIALECTS:
            raise ValueError(f"Unsupported database dialect: {engine.dialect.name}")
        self.engine = engine

    def _insert(self, table: Table):
        match self.engine.dialect.name:
            case "sqlite":
                return sqlite.insert(table)
            case "postgresql":
                return postgresql.insert(table)
            case _:
                raise ValueError(f"Unsupported database dialect: {self.engine.dialect.name}")

    def _insert_ignore(self, conn: Connection, table: Table, key: str, rows: List[Dict[str, Any]]) -> int:
        stmt = self._insert(table).on_conflict_do_nothing(index_elements=[key])
        written = 0
        for row in rows:
            written += conn.execute(stmt, row).rowcount
        return written

    def _insert_events(self, conn: Connection, rows: List[Dict[str, Any]]) -> int:
        if rows:
            conn.execute(schemas.events.insert(), rows)
        return len(rows)

    def _insert_extrinsics(
        self,
        conn: Connection,
        extrinsic_rows: List[Dict[str, Any]],
        gas_fee_rows: List[Dict[str, Any]],
    ) -> tuple[int, int]:
        gas_fees_written = 0
        for row in extrinsic_rows:
            result = conn.execute(schemas.extrinsics.insert(), row)
            extrinsic_id = result.inserted_primary_key[0]

            # gas fees carry the position of their extrinsic in the block, so
            # this only matches when that position equals the new row id
            for fee in gas_fee_rows:
                if fee["extrinsicId"] == extrinsic_id:
                    conn.execute(
                        schemas.gas_fees.insert(),
                        {"extrinsicId": extrinsic_id, "amount": fee["amount"]},
                    )
                    gas_fees_written += 1

        return len(extrinsic_rows), gas_fees_written

    def commit_impl(self, data: NormalizedBlock) -> CommitResult:
        tables: Dict[str, pa.Table] = data.to_tables()
        result = CommitResult(block_number=data.number)

        with self.engine.begin() as conn:
            result.blocks = self._insert_ignore(
                conn, schemas.blocks, "number", tables[BLOCKS_TABLE].to_pylist()
            )
            result.transactions = self._insert_ignore(
                conn,
                schemas.transactions,
                "contentHash",
                tables[TRANSACTIONS_TABLE].to_pylist(),
            )
            result.events = self._insert_events(conn, tables[EVENTS_TABLE].to_pylist())
            result.extrinsics, result.gas_fees = self._insert_extrinsics(
                conn,
                tables[EXTRINSICS_TABLE].to_pylist(),
                tables[GAS_FEES_TABLE].to_pylist(),
            )

        return result

    async def commit(self, data: NormalizedBlock) -> CommitResult:
        # Arrow conversion raises OverflowError or ValueError on out of range values
        try:
            result = await asyncio.to_thread(self.commit_impl, data)
        except (SQLAlchemyError, pa.ArrowException, OverflowError, ValueError) as e:
            logger.error(f"Rolled back block {data.number}: {e}")
            raise PersistenceError(data.number, str(e)) from e

        logger.debug(f"Committed {result}")
        return result

    def upsert_account_impl(self, address: str, balance: str) -> None:
        stmt = self._insert(schemas.accounts)
        stmt = stmt.on_conflict_do_update(
            index_elements=["address"],
            set_={"balance": stmt.excluded.balance},
        )
        with self.engine.begin() as conn:
            conn.execute(stmt, {"address": address, "balance": balance})

    async def upsert_account(self, address: str, balance: str) -> None:
        try:
            await asyncio.to_thread(self.upsert_account_impl, address, balance)
        except SQLAlchemyError as e:
            raise PersistenceError(None, f"account {address}: {e}") from e

    def create_tables_impl(self) -> None:
        logger.info("Creating database tables if they don't exist")
        schemas.metadata.create_all(self.engine)

    async def create_tables(self) -> None:
        await asyncio.to_thread(self.create_tables_impl)

    async def close(self) -> None:
        await asyncio.to_thread(self.engine.dispose)
