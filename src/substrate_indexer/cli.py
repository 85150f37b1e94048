import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .config import Config, PipelineMode, parse_config
from .errors import SourceExhausted
from .pipeline import run_pipeline
from .utils.logging_setup import setup_logging
from .writers.writer import create_writer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="substrate-indexer",
        description="Index Substrate blocks, transfers, events and balances into SQL",
    )
    parser.add_argument("--log-dir", default=os.environ.get("LOG_DIR", "logs"))
    parser.add_argument("--log-level", default=os.environ.get("LOGLEVEL", "INFO"))

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_command(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--config", default="config.yaml", help="path to the YAML config")
        return sub

    add_command("init-db", "create the database tables")

    backfill = add_command("backfill", "index a historical range of blocks")
    backfill.add_argument("--from-block", type=int, default=None)
    backfill.add_argument("--to-block", type=int, default=None, help="defaults to the latest height")
    backfill.add_argument("--concurrency", type=int, default=None)

    add_command("live", "index new blocks as they are pushed")
    add_command("run", "run the mode set in the config")

    return parser


async def init_db(config: Config) -> None:
    writer = create_writer(config.writer)
    try:
        await writer.create_tables()
    finally:
        await writer.close()


async def run(args: argparse.Namespace) -> int:
    config = parse_config(args.config)

    match args.command:
        case "init-db":
            await init_db(config)
            logger.info("Database tables are ready")
            return 0
        case "backfill":
            if args.from_block is not None:
                config.pipeline.from_block = args.from_block
            if args.to_block is not None:
                config.pipeline.to_block = args.to_block
            if args.concurrency is not None:
                config.pipeline.concurrency = args.concurrency
            await run_pipeline(config, PipelineMode.BACKFILL)
        case "live":
            await run_pipeline(config, PipelineMode.LIVE)
        case "run":
            await run_pipeline(config)
        case _:
            raise ValueError(f"Unknown command: {args.command}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    args = build_parser().parse_args(argv)
    setup_logging(log_dir=args.log_dir, level=args.log_level)

    try:
        return asyncio.run(run(args))
    except SourceExhausted as e:
        logger.error(f"Chain source exhausted, restart required: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
