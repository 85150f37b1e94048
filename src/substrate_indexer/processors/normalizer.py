import json
from typing import Any, Iterable, List, Optional, Tuple

from ..config import DEFAULT_TRANSFER_CALLS
from ..errors import MalformedDataError
from ..types.data import Block, Event, Extrinsic, GasFee, NormalizedBlock, Transfer
from ..types.raw import RawBlock, RawEvent, RawExtrinsic, TypedValue
from ..utils import base_units_to_decimal, content_hash, parse_base_units

TIMESTAMP_CALL = "timestamp.set"

# weight, timestamp and block number columns are int64
MAX_INT64 = 2**63 - 1


def call_name(section: str, method: str) -> str:
    return f"{section}.{method}"


def resolve_address(value: Any) -> str:
    """Accepts a plain address or a MultiAddress object ({"id": ...})"""
    if isinstance(value, str) and value:
        return value
    if isinstance(value, dict):
        for key in ("id", "Id"):
            if isinstance(value.get(key), str) and value[key]:
                return value[key]
    raise MalformedDataError(f"not an address: {value!r}")


def _int64(value: Any, what: str) -> int:
    number = parse_base_units(value)
    if not 0 <= number <= MAX_INT64:
        raise MalformedDataError(f"{what} out of range: {number}")
    return number


def parse_weight(weight: Any) -> int:
    """Weight is either a plain integer or a {refTime, proofSize} object"""
    if weight is None:
        return 0
    if isinstance(weight, dict):
        ref_time = weight.get("refTime", weight.get("ref_time"))
        if ref_time is None:
            raise MalformedDataError(f"weight without refTime: {weight!r}")
        return _int64(ref_time, "weight")
    return _int64(weight, "weight")


def transfer_args(args: Any) -> Tuple[str, int]:
    if isinstance(args, dict):
        dest = args.get("dest", args.get("to"))
        value = args.get("value", args.get("amount"))
    elif isinstance(args, (list, tuple)) and len(args) >= 2:
        dest, value = args[0], args[1]
    else:
        raise MalformedDataError(f"transfer without destination and value: {args!r}")

    if dest is None or value is None:
        raise MalformedDataError(f"transfer without destination and value: {args!r}")

    return resolve_address(dest), parse_base_units(value)


def timestamp_arg(args: Any) -> int:
    if isinstance(args, dict):
        now = args.get("now")
    elif isinstance(args, (list, tuple)) and args:
        now = args[0]
    else:
        now = None

    if now is None:
        raise MalformedDataError(f"timestamp.set without now: {args!r}")
    return _int64(now, "timestamp")


def serialize_event_data(data: Iterable[TypedValue]) -> str:
    items = []
    for item in data:
        value = item.value if isinstance(item.value, str) else json.dumps(
            item.value, sort_keys=True, separators=(",", ":")
        )
        items.append({"type": item.type, "value": value})
    return json.dumps(items)


def _normalize_block_header(raw: RawBlock, timestamp: Optional[int]) -> Block:
    header = raw.header
    if not isinstance(header.number, int) or isinstance(header.number, bool):
        raise MalformedDataError(f"block number is not an integer: {header.number!r}")
    if not 0 <= header.number <= MAX_INT64:
        raise MalformedDataError(f"block number out of range: {header.number}")
    if not header.hash:
        raise MalformedDataError(f"block {header.number} has no hash")

    return Block(
        number=header.number,
        hash=header.hash,
        parentHash=header.parent_hash,
        stateRoot=header.state_root,
        extrinsicsRoot=header.extrinsics_root,
        timestamp=timestamp,
    )


def _normalize_extrinsic(
    index: int,
    ext: RawExtrinsic,
    block_number: int,
    transfer_calls: frozenset,
) -> Tuple[Extrinsic, Optional[Transfer], Optional[GasFee]]:
    if not ext.section or not ext.method:
        raise MalformedDataError("missing call section or method")

    name = call_name(ext.section, ext.method)

    try:
        weight = parse_weight(ext.weight)
        fee = parse_base_units(ext.partial_fee) if ext.partial_fee is not None else None
    except ValueError as e:
        raise MalformedDataError(str(e)) from e

    transfer = None
    if name in transfer_calls:
        if not ext.signer:
            raise MalformedDataError(f"{name} without signer")
        try:
            to_address, amount = transfer_args(ext.args)
        except ValueError as e:
            raise MalformedDataError(str(e)) from e

        fee_units = fee if fee is not None else 0
        transfer = Transfer(
            contentHash=content_hash(
                ext.signer, to_address, str(amount), str(fee_units)
            ),
            blockNumber=block_number,
            from_address=ext.signer,
            to_address=to_address,
            amount=base_units_to_decimal(amount),
            fee=base_units_to_decimal(fee_units),
        )

    gas_fee = None
    if fee is not None:
        # The position inside the block, not the id the extrinsic row will get
        gas_fee = GasFee(extrinsicId=index, amount=base_units_to_decimal(fee))

    return Extrinsic(name=name, weight=weight), transfer, gas_fee


def normalize(
    raw: RawBlock,
    raw_events: List[RawEvent],
    transfer_calls: Iterable[str] = DEFAULT_TRANSFER_CALLS,
) -> NormalizedBlock:
    """Turn a raw block and its events into the rows that describe it.

    Pure: no I/O, same input gives the same output. Malformed extrinsics are
    left out and listed in NormalizedBlock.skipped; a malformed header raises
    MalformedDataError.
    """

    calls = frozenset(transfer_calls)
    block_number = raw.header.number

    timestamp = None
    extrinsics: List[Extrinsic] = []
    transfers: List[Transfer] = []
    gas_fees: List[GasFee] = []
    skipped: List[str] = []

    for index, ext in enumerate(raw.extrinsics):
        try:
            extrinsic, transfer, gas_fee = _normalize_extrinsic(
                index, ext, block_number, calls
            )
            if extrinsic.name == TIMESTAMP_CALL:
                try:
                    timestamp = timestamp_arg(ext.args)
                except ValueError as e:
                    raise MalformedDataError(str(e)) from e
        except MalformedDataError as e:
            skipped.append(f"extrinsic {index} ({ext.hash}): {e}")
            continue

        extrinsics.append(extrinsic)
        if transfer is not None:
            transfers.append(transfer)
        if gas_fee is not None:
            gas_fees.append(gas_fee)

    events = []
    for index, raw_event in enumerate(raw_events):
        if not raw_event.section or not raw_event.method:
            skipped.append(f"event {index}: missing section or method")
            continue
        events.append(
            Event(
                blockNumber=block_number,
                section=raw_event.section,
                method=raw_event.method,
                data=serialize_event_data(raw_event.data),
            )
        )

    return NormalizedBlock(
        block=_normalize_block_header(raw, timestamp),
        transfers=transfers,
        events=events,
        extrinsics=extrinsics,
        gas_fees=gas_fees,
        skipped=skipped,
    )


__all__ = ["normalize", "call_name", "resolve_address", "serialize_event_data"]
