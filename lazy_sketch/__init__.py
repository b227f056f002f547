"""Pencil-sketch generation for chat: Replicate client, settings and asset saving."""

__version__ = "0.1.0"
