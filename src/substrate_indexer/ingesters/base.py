from abc import ABC, abstractmethod
from typing import AsyncIterator, List
import logging

from ..errors import SourceExhausted
from ..types.raw import RawBlock, RawEvent

logger = logging.getLogger(__name__)


class ChainSource(ABC):
    """Abstract base class for chain sources.

    Calls raise SourceUnavailable when the source can't be reached and
    SourceProtocolError when the answer can't be understood.
    """

    @abstractmethod
    async def latest_height(self) -> int:
        pass

    @abstractmethod
    async def block_hash(self, height: int) -> str:
        pass

    @abstractmethod
    async def block(self, block_hash: str) -> RawBlock:
        pass

    @abstractmethod
    async def events(self, block_hash: str) -> List[RawEvent]:
        pass

    @abstractmethod
    async def account_balance(self, address: str) -> str:
        """Free balance of an account, as a base-unit decimal string"""
        pass

    def subscribe(self) -> AsyncIterator[RawBlock]:
        """Push stream of new blocks, infinite and not restartable.

        Sources without one raise SourceExhausted, there is nothing to follow.
        """
        raise SourceExhausted(f"{type(self).__name__} has no block subscription")

    async def close(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
