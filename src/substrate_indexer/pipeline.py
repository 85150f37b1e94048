import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .config import DEFAULT_TRANSFER_CALLS, Config, PipelineMode
from .errors import (
    MalformedDataError,
    PersistenceError,
    SourceExhausted,
    SourceProtocolError,
    TransientFetchError,
)
from .ingesters.base import ChainSource
from .ingesters.factory import create_source
from .processors.normalizer import normalize
from .reconciler import Reconciler
from .types.raw import RawBlock
from .writers.base import CommitResult, DataWriter
from .writers.writer import create_writer

logger = logging.getLogger(__name__)

PROGRESS_LOG_INTERVAL = 100


class UnitState(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    PERSISTING = "persisting"
    RECONCILING = "reconciling"
    DONE = "done"
    FAILED = "failed"


@dataclass
class UnitResult:
    block_number: Optional[int]
    state: UnitState = UnitState.PENDING
    error: Optional[Exception] = None
    commit: Optional[CommitResult] = None


@dataclass
class IngestionReport:
    done: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    def add(self, result: UnitResult) -> None:
        if result.state == UnitState.DONE:
            self.done.append(result.block_number)
        else:
            self.failed.append(result.block_number)

    @property
    def total(self) -> int:
        return len(self.done) + len(self.failed)


@dataclass
class Context:
    """Collaborators shared by every unit of a run"""

    source: ChainSource
    writer: DataWriter
    reconciler: Reconciler
    transfer_calls: Iterable[str] = field(default_factory=lambda: list(DEFAULT_TRANSFER_CALLS))


async def _process(ctx: Context, unit: UnitResult, raw: Optional[RawBlock]) -> None:
    unit.state = UnitState.FETCHING
    if raw is None:
        block_hash = await ctx.source.block_hash(unit.block_number)
        raw = await ctx.source.block(block_hash)
        if raw.number != unit.block_number:
            raise SourceProtocolError(
                f"asked for block {unit.block_number}, got block {raw.number}"
            )
    unit.block_number = raw.number

    raw_events = raw.events
    if raw_events is None:
        raw_events = await ctx.source.events(raw.hash)

    unit.state = UnitState.NORMALIZING
    data = normalize(raw, raw_events, ctx.transfer_calls)
    for reason in data.skipped:
        logger.warning(f"Block {data.number}: skipped {reason}")

    unit.state = UnitState.PERSISTING
    unit.commit = await ctx.writer.commit(data)

    unit.state = UnitState.RECONCILING
    await ctx.reconciler.reconcile_all(data.participants)

    unit.state = UnitState.DONE
    logger.debug(f"Block {data.number} processed: {data}")


async def process_block(
    ctx: Context,
    block_number: Optional[int] = None,
    raw: Optional[RawBlock] = None,
) -> UnitResult:
    """Run one block through fetch, normalize, persist and reconcile.

    Failures of the unit are logged and reported in the result; only
    SourceExhausted escapes.
    """
    if block_number is None and raw is None:
        raise ValueError("process_block needs a block number or a raw block")

    unit = UnitResult(block_number=block_number if raw is None else raw.number)

    try:
        await _process(ctx, unit, raw)
    except SourceExhausted:
        raise
    except (TransientFetchError, MalformedDataError, PersistenceError) as e:
        failed_in = unit.state
        unit.state = UnitState.FAILED
        unit.error = e
        logger.error(f"Block {unit.block_number} failed while {failed_in.value}: {e}")

    return unit


async def run_backfill(
    ctx: Context,
    from_block: int = 0,
    to_block: Optional[int] = None,
    concurrency: int = 10,
) -> IngestionReport:
    """Process every block of [from_block, to_block] with at most `concurrency` in flight.

    No completion order is implied between blocks. to_block defaults to the
    latest height of the source.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    if to_block is None:
        try:
            to_block = await ctx.source.latest_height()
        except TransientFetchError as e:
            raise SourceExhausted(f"could not read latest height: {e}") from e

    report = IngestionReport()
    if from_block > to_block:
        logger.info(f"Nothing to backfill, from_block {from_block} is past {to_block}")
        return report

    total = to_block - from_block + 1
    logger.info(f"Backfilling blocks {from_block} to {to_block} with concurrency {concurrency}")

    # shared by all workers, each next() hands out a distinct block number
    numbers = iter(range(from_block, to_block + 1))

    async def worker():
        for number in numbers:
            report.add(await process_block(ctx, block_number=number))
            if report.total % PROGRESS_LOG_INTERVAL == 0:
                logger.info(f"Processed {report.total}/{total} blocks ({len(report.failed)} failed)")

    workers = [
        asyncio.create_task(worker(), name=f"backfill_worker_{i}")
        for i in range(min(concurrency, total))
    ]

    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise

    logger.info(
        f"Backfill finished: {len(report.done)} blocks done, {len(report.failed)} failed"
    )
    if report.failed:
        logger.warning(f"Failed blocks: {sorted(report.failed)}")

    return report


async def run_live(ctx: Context) -> IngestionReport:
    """Process pushed blocks one at a time, in arrival order.

    A block is fully committed (or rolled back) and reconciled before the
    next message is read.
    """
    report = IngestionReport()
    logger.info("Starting live ingestion")

    async for raw in ctx.source.subscribe():
        result = await process_block(ctx, raw=raw)
        report.add(result)
        if result.state == UnitState.DONE:
            logger.info(f"Block {result.block_number} processed successfully")

    logger.info(f"Block subscription ended after {report.total} blocks")
    return report


async def run_pipeline(config: Config, mode: Optional[PipelineMode] = None) -> IngestionReport:
    """Build the collaborators described by config and run the pipeline"""
    mode = mode or config.pipeline.mode
    logger.info(f"Running {mode.value} pipeline for {config.project_name}")

    writer = create_writer(config.writer)
    source = create_source(config.provider)

    try:
        await writer.create_tables()
        ctx = Context(
            source=source,
            writer=writer,
            reconciler=Reconciler(source, writer),
            transfer_calls=config.provider.transfer_calls,
        )

        match mode:
            case PipelineMode.BACKFILL:
                return await run_backfill(
                    ctx,
                    from_block=config.pipeline.from_block,
                    to_block=config.pipeline.to_block,
                    concurrency=config.pipeline.concurrency,
                )
            case PipelineMode.LIVE:
                return await run_live(ctx)
            case _:
                raise ValueError(f"Invalid pipeline mode: {mode}")
    finally:
        await source.close()
        await writer.close()


__all__ = [
    "UnitState",
    "UnitResult",
    "IngestionReport",
    "Context",
    "process_block",
    "run_backfill",
    "run_live",
    "run_pipeline",
]
