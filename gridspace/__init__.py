"""Spatial hashing, partitioning, hierarchy validation and timing stats on nested integer grids."""

__version__ = "0.9.1"

__all__ = ["component", "hash_map", "hashing", "partition", "timing", "validation"]