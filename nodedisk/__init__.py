"""Inventory, filtering and bookkeeping of a node's block devices as resources."""

__version__ = "0.1.0"