import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import dacite
import yaml

logger = logging.getLogger(__name__)


DEFAULT_TRANSFER_CALLS = [
    "balances.transfer",
    "balances.transferKeepAlive",
    "balances.transferAllowDeath",
]


class ProviderKind(str, Enum):
    SIDECAR = "sidecar"


class WriterKind(str, Enum):
    SQLITE = "sqlite"
    POSTGRES = "postgres"


class PipelineMode(str, Enum):
    BACKFILL = "backfill"
    LIVE = "live"


@dataclass
class ProviderConfig:
    """Chain source configuration"""

    url: str
    kind: ProviderKind = ProviderKind.SIDECAR
    ws_url: Optional[str] = None
    max_num_retries: int = 0
    retry_base_ms: int = 200
    retry_ceiling_ms: int = 5000
    http_req_timeout_millis: Optional[int] = None
    transfer_calls: List[str] = field(
        default_factory=lambda: list(DEFAULT_TRANSFER_CALLS)
    )


@dataclass
class WriterConfig:
    """Storage configuration"""

    url: str
    kind: WriterKind = WriterKind.SQLITE
    pool_size: int = 10
    echo: bool = False


@dataclass
class PipelineConfig:
    mode: PipelineMode = PipelineMode.BACKFILL
    from_block: int = 0
    to_block: Optional[int] = None
    concurrency: int = 10


@dataclass
class Config:
    """Main configuration"""

    provider: ProviderConfig
    writer: WriterConfig
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    project_name: str = "substrate-indexer"
    description: str = ""


def expand_env(value: Any) -> Any:
    """Expand ${VAR} references in every string of a raw config tree"""

    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, dict):
        return {k: expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(v) for v in value]
    return value


def config_from_dict(raw_config: Dict[str, Any]) -> Config:
    prepared_config = expand_env(raw_config)

    config = dacite.from_dict(
        data_class=Config,
        data=prepared_config,
        config=dacite.Config(cast=[Enum], strict=True),
    )

    if config.pipeline.concurrency < 1:
        raise ValueError(
            f"pipeline.concurrency must be at least 1, got {config.pipeline.concurrency}"
        )

    return config


def parse_config(config_path: str) -> Config:
    """Parse configuration from YAML file"""

    try:
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f)

        config = config_from_dict(raw_config)

        logger.info(f"Loaded configuration for project: {config.project_name}")
        logger.debug(f"Parsed Config: {config}")

        return config

    except Exception as e:
        logger.error(f"Error parsing config file {config_path}: {e}")
        raise
