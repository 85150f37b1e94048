import logging
from typing import Iterable

from .errors import MalformedDataError, PersistenceError, TransientFetchError
from .ingesters.base import ChainSource
from .writers.base import DataWriter

logger = logging.getLogger(__name__)


class Reconciler:
    """Keeps account balance snapshots in line with the chain.

    Balances are read from the source and stored as-is, the accounts table is
    a cache of chain state and is never derived from transfer amounts.
    Concurrent reconciliations of the same address are last-write-wins.
    """

    def __init__(self, source: ChainSource, writer: DataWriter):
        self.source = source
        self.writer = writer

    async def reconcile(self, address: str) -> bool:
        """Refresh one account, returns False if the previous snapshot was kept"""
        try:
            balance = await self.source.account_balance(address)
            await self.writer.upsert_account(address, balance)
        except (TransientFetchError, MalformedDataError, PersistenceError) as e:
            logger.warning(f"Could not reconcile balance of {address}: {e}")
            return False

        logger.debug(f"Balance for account {address} updated to {balance}")
        return True

    async def reconcile_all(self, addresses: Iterable[str]) -> int:
        """Reconcile addresses one after another, in order, returns how many succeeded"""
        updated = 0
        for address in addresses:
            if await self.reconcile(address):
                updated += 1
        return updated
