"""
Error taxonomy for the indexing pipeline.

TransientFetchError   network or RPC failure, the current unit is abandoned
MalformedDataError    response is missing expected fields
PersistenceError      the block transaction was rolled back
SourceExhausted       the source is gone for good, ingestion stops
"""

from typing import Optional


class IndexerError(Exception):
    """Base class for every error raised by the pipeline"""


class TransientFetchError(IndexerError):
    pass


class SourceUnavailable(TransientFetchError):
    """The chain source could not be reached or answered with a server error"""


class MalformedDataError(IndexerError):
    pass


class SourceProtocolError(MalformedDataError):
    """The chain source answered with a payload that could not be understood"""


class PersistenceError(IndexerError):
    def __init__(self, block_number: Optional[int], message: str):
        super().__init__(f"block {block_number}: {message}")
        self.block_number = block_number


class SourceExhausted(IndexerError):
    """The chain source is permanently unreachable"""


__all__ = [
    "IndexerError",
    "TransientFetchError",
    "SourceUnavailable",
    "MalformedDataError",
    "SourceProtocolError",
    "PersistenceError",
    "SourceExhausted",
]
