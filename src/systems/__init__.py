"""Engine systems: slot hashing, spatial indexing, the simulated arena."""

from src.systems.slot_hash import SlotHasher
from src.systems.spatial_hash import SpatialHash

__all__ = ["SlotHasher", "SpatialHash"]
