from .base import CommitResult, DataWriter
from .writer import create_engine_from_config, create_writer

__all__ = ["CommitResult", "DataWriter", "create_engine_from_config", "create_writer"]
