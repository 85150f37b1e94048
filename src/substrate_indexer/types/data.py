from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

import pyarrow as pa

from ..schemas.blockchain_schemas import (
    BLOCKS,
    BLOCKS_TABLE,
    EVENTS,
    EVENTS_TABLE,
    EXTRINSICS,
    EXTRINSICS_TABLE,
    GAS_FEES,
    GAS_FEES_TABLE,
    TRANSACTIONS,
    TRANSACTIONS_TABLE,
)


@dataclass(frozen=True)
class Block:
    number: int
    hash: str
    parentHash: str
    stateRoot: str
    extrinsicsRoot: str
    timestamp: Optional[int]


@dataclass(frozen=True)
class Transfer:
    contentHash: str
    blockNumber: int
    from_address: str
    to_address: str
    amount: str
    fee: str


@dataclass(frozen=True)
class Event:
    blockNumber: int
    section: str
    method: str
    data: str


@dataclass(frozen=True)
class Extrinsic:
    name: str
    weight: int


@dataclass(frozen=True)
class GasFee:
    extrinsicId: int
    amount: str


@dataclass
class NormalizedBlock:
    """Everything derived from one block, ready to be committed together"""

    block: Block
    transfers: List[Transfer] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    extrinsics: List[Extrinsic] = field(default_factory=list)
    gas_fees: List[GasFee] = field(default_factory=list)
    # Descriptions of sub-entities dropped because they were malformed
    skipped: List[str] = field(default_factory=list)

    @property
    def number(self) -> int:
        return self.block.number

    @property
    def participants(self) -> List[str]:
        """Transfer participants in transfer order, one entry per side"""
        out = []
        for transfer in self.transfers:
            out.append(transfer.from_address)
            out.append(transfer.to_address)
        return out

    def to_tables(self) -> Dict[str, pa.Table]:
        """Arrow tables keyed by destination table name"""
        return {
            BLOCKS_TABLE: pa.Table.from_pylist([asdict(self.block)], schema=BLOCKS),
            TRANSACTIONS_TABLE: pa.Table.from_pylist(
                [asdict(t) for t in self.transfers], schema=TRANSACTIONS
            ),
            EVENTS_TABLE: pa.Table.from_pylist(
                [asdict(e) for e in self.events], schema=EVENTS
            ),
            EXTRINSICS_TABLE: pa.Table.from_pylist(
                [asdict(e) for e in self.extrinsics], schema=EXTRINSICS
            ),
            GAS_FEES_TABLE: pa.Table.from_pylist(
                [asdict(g) for g in self.gas_fees], schema=GAS_FEES
            ),
        }

    def __str__(self) -> str:
        return (
            f"NormalizedBlock(number={self.block.number}, "
            f"{len(self.transfers)} transfers, {len(self.events)} events, "
            f"{len(self.extrinsics)} extrinsics, {len(self.gas_fees)} gas fees)"
        )
