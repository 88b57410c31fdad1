"""Marker management engine for the Hong Kong map: grid conversion, marker store, place search and cluster layout."""

__version__ = "0.1.0"
