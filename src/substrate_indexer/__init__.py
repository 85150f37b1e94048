from . import config, errors
from .pipeline import Context, process_block, run_backfill, run_live, run_pipeline
from .processors.normalizer import normalize

__all__ = [
    "config",
    "errors",
    "Context",
    "normalize",
    "process_block",
    "run_backfill",
    "run_live",
    "run_pipeline",
]
