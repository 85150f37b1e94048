import logging

from sqlalchemy import Engine, create_engine

from ..config import WriterConfig, WriterKind
from .base import DataWriter
from . import sql

logger = logging.getLogger(__name__)


def create_engine_from_config(config: WriterConfig) -> Engine:
    """Create SQLAlchemy engine from config, with a pool sized for the backfill"""
    match config.kind:
        case WriterKind.SQLITE:
            if not config.url.startswith("sqlite"):
                raise ValueError(f"sqlite writer needs a sqlite:// url, got {config.url}")
            # concurrent units run their transactions from worker threads
            return create_engine(
                config.url,
                echo=config.echo,
                pool_size=config.pool_size,
                max_overflow=config.pool_size,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        case WriterKind.POSTGRES:
            if not config.url.startswith("postgres"):
                raise ValueError(f"postgres writer needs a postgresql:// url, got {config.url}")
            return create_engine(
                config.url,
                echo=config.echo,
                pool_size=config.pool_size,
                max_overflow=config.pool_size,
                pool_pre_ping=True,
            )
        case _:
            raise ValueError(f"Invalid writer kind: {config.kind}")


def create_writer(config: WriterConfig) -> DataWriter:
    engine = create_engine_from_config(config)
    logger.info(f"Using {config.kind.value} storage at {engine.url.render_as_string(hide_password=True)}")
    return sql.Writer(engine)
