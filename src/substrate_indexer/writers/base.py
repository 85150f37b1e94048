from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging

from ..types.data import NormalizedBlock

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    """Rows actually written per table, conflicts that were ignored count zero"""

    block_number: int
    blocks: int = 0
    transactions: int = 0
    events: int = 0
    extrinsics: int = 0
    gas_fees: int = 0


class DataWriter(ABC):
    """Base class for storage backends"""

    @abstractmethod
    async def create_tables(self) -> None:
        pass

    @abstractmethod
    async def commit(self, data: NormalizedBlock) -> CommitResult:
        """Write every row of a block in one transaction, raise PersistenceError on failure"""
        pass

    @abstractmethod
    async def upsert_account(self, address: str, balance: str) -> None:
        """Replace the balance snapshot of an account"""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
