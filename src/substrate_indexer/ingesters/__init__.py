from .base import ChainSource
from .factory import create_source
from .sidecar import SidecarSource

__all__ = ["ChainSource", "SidecarSource", "create_source"]
