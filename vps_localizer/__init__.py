"""VPS relocalization client: query a visual positioning service and align the local tracking origin."""

from .config import VpsConfig
from .facade import RelocalizationFacade

__all__ = ["VpsConfig", "RelocalizationFacade"]
