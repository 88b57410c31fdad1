"""
Error taxonomy for the marker engine.

Every error here is caught at the boundary of the operation that raises it
and turned into a fallback value; none of them should reach the view layer.
"""


class MarkerMapError(Exception):
    """Base class for all marker engine errors."""


class ConversionError(MarkerMapError, ValueError):
    """Raised when grid coordinates cannot be converted to a usable lat/lon."""


class StorageError(MarkerMapError):
    """Base class for persistent storage failures."""


class StorageReadError(StorageError):
    """Raised when the backing store cannot be read."""


class StorageWriteError(StorageError):
    """Raised when the backing store rejects a write (quota, serialization, I/O)."""


class RemoteSearchError(MarkerMapError):
    """Raised on transport failures or non-success responses from the search service."""


class NotFoundError(MarkerMapError, LookupError):
    """Raised when a marker id is not present in the store."""

    def __init__(self, marker_id: int):
        super().__init__(f"Marker {marker_id} not found")
        self.marker_id = marker_id
