from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class TypedValue:
    """One positional value of an event, with its chain type name when known"""

    type: Optional[str]
    value: Any


@dataclass
class RawEvent:
    section: str
    method: str
    data: List[TypedValue] = field(default_factory=list)


@dataclass
class RawExtrinsic:
    """An extrinsic as delivered by the source, before any interpretation"""

    section: Optional[str]
    method: Optional[str]
    hash: Optional[str] = None
    signer: Optional[str] = None
    args: Union[Dict[str, Any], List[Any], None] = None
    weight: Any = None
    partial_fee: Optional[str] = None


@dataclass
class RawHeader:
    number: int
    hash: str
    parent_hash: str
    state_root: str
    extrinsics_root: str


@dataclass
class RawBlock:
    header: RawHeader
    extrinsics: List[RawExtrinsic] = field(default_factory=list)
    # Filled when the payload already carried the events (pushed blocks)
    events: Optional[List[RawEvent]] = None

    @property
    def number(self) -> int:
        return self.header.number

    @property
    def hash(self) -> str:
        return self.header.hash


__all__ = ["TypedValue", "RawEvent", "RawExtrinsic", "RawHeader", "RawBlock"]
