from .data import Block, Event, Extrinsic, GasFee, NormalizedBlock, Transfer
from .raw import RawBlock, RawEvent, RawExtrinsic, RawHeader, TypedValue

__all__ = [
    "Block",
    "Event",
    "Extrinsic",
    "GasFee",
    "NormalizedBlock",
    "Transfer",
    "RawBlock",
    "RawEvent",
    "RawExtrinsic",
    "RawHeader",
    "TypedValue",
]
