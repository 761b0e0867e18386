"""Core of the collection: traits, merges, palettes and the prize pool."""

from .collection import CompositeCollection
from .composite import BLANK_INDEX, CompositeEngine, Gene, MergeResult
from .config import DeploymentConfig, PoolConfig, preset_config
from .palette import PaletteTracker
from .pool import PrizePool
from .seeds import HostContext, SeedGenerator
from .tables import DivisorTable
from .traits import TraitStore, UnitRecord

__all__ = [
    "BLANK_INDEX",
    "CompositeCollection",
    "CompositeEngine",
    "DeploymentConfig",
    "DivisorTable",
    "Gene",
    "HostContext",
    "MergeResult",
    "PaletteTracker",
    "PoolConfig",
    "PrizePool",
    "SeedGenerator",
    "TraitStore",
    "UnitRecord",
    "preset_config",
]
