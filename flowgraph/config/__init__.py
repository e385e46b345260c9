"""
Config Module

Loads node definition catalogs from the config directory.
"""

from .loader import CatalogError, CatalogFile, CatalogLoader, NodeEntry

__all__ = ["CatalogError", "CatalogFile", "CatalogLoader", "NodeEntry"]
