from ..config import ProviderConfig, ProviderKind
from .base import ChainSource
from .sidecar import SidecarSource


def create_source(config: ProviderConfig) -> ChainSource:
    match config.kind:
        case ProviderKind.SIDECAR:
            return SidecarSource(config)
        case _:
            raise ValueError(f"Invalid provider kind: {config.kind}")
