"""
Marker store.

Owns the canonical, insertion-ordered marker collection and mirrors it to a
key-value backing store under a single key as a JSON array.

Write-back only happens once the initial load has completed. Saving before
or during the load replay would overwrite the fuller stored state with the
empty pre-load collection.
"""
from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from markermap.domain.errors import NotFoundError, StorageReadError, StorageWriteError
from markermap.domain.models import (
    DEFAULT_MARKER_TYPE,
    GeoPoint,
    Marker,
    SearchCandidate,
    normalize_marker_type,
)
from markermap.storage.kv_storage import KeyValueStorage

logger = logging.getLogger(__name__)


def parse_markers(raw: str) -> Optional[List[Marker]]:
    """
    Parse a persisted JSON payload into markers.

    Returns None when the payload is not valid JSON or is not an array of
    marker-shaped objects. Later entries repeating an earlier id are dropped.
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Persisted markers are not valid JSON: %s", exc)
        return None
    if not isinstance(payload, list):
        logger.warning("Persisted markers are not a list (got %s)", type(payload).__name__)
        return None
    markers: List[Marker] = []
    seen_ids = set()
    for idx, item in enumerate(payload):
        try:
            marker = Marker.from_dict(item)
        except ValueError as exc:
            logger.warning("Persisted marker #%d is invalid: %s", idx, exc)
            return None
        if marker.id in seen_ids:
            logger.warning("Dropping persisted marker #%d with duplicate id %s", idx, marker.id)
            continue
        seen_ids.add(marker.id)
        markers.append(marker)
    return markers


class MarkerStore:
    """In-memory marker collection with load/save reconciliation against a KeyValueStorage."""

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        if storage_key is None:
            from markermap.settings import settings

            storage_key = settings.MARKERS_STORAGE_KEY
        self.storage = storage
        self.storage_key = storage_key
        self._clock = clock
        self._markers: List[Marker] = []
        self._last_id = 0
        self._loading = False
        self._loaded = False

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._markers)

    # Reads

    def list(self) -> List[Marker]:
        """Markers in insertion order. The list is a copy; the markers are live."""
        return list(self._markers)

    def get(self, marker_id: int) -> Marker:
        for marker in self._markers:
            if marker.id == marker_id:
                return marker
        raise NotFoundError(marker_id)

    # Mutations

    def _next_id(self) -> int:
        # Millisecond timestamp, bumped so ids strictly increase even within one ms.
        candidate = int(self._clock() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return candidate

    def create(self, candidate: SearchCandidate, geographic: GeoPoint) -> Marker:
        marker = Marker(
            id=self._next_id(),
            name_zh=candidate.name_zh,
            name_en=candidate.name_en or "",
            district_zh=candidate.district_zh or "",
            lat=geographic.lat,
            lon=geographic.lon,
            marker_type=int(DEFAULT_MARKER_TYPE),
            description="",
        )
        self._markers.append(marker)
        logger.debug("Created marker %s (%s) at %.6f,%.6f", marker.id, marker.name_zh, marker.lat, marker.lon)
        self._persist()
        return marker

    def update(
        self,
        marker_id: int,
        *,
        name_zh: Optional[str] = None,
        description: Optional[str] = None,
        marker_type: Optional[int] = None,
    ) -> Optional[Marker]:
        """
        Merge the provided fields into a marker.

        Omitted (None) fields are left untouched. An unknown `marker_type`
        falls back to the default category.

        Returns:
            The updated marker, or None if no marker has this id.
        """
        try:
            marker = self.get(marker_id)
        except NotFoundError as exc:
            logger.info("Ignoring update: %s", exc)
            return None
        if name_zh is not None:
            marker.name_zh = name_zh
        if description is not None:
            marker.description = description
        if marker_type is not None:
            marker.marker_type = normalize_marker_type(marker_type)
        self._persist()
        return marker

    def delete(self, marker_id: int) -> None:
        """Remove a marker. Deleting an unknown id is a no-op."""
        remaining = [m for m in self._markers if m.id != marker_id]
        if len(remaining) == len(self._markers):
            logger.debug("Delete of unknown marker %s ignored", marker_id)
            return
        self._markers = remaining
        self._persist()

    def clear(self) -> None:
        """Empty the collection and erase the persisted state."""
        self._markers = []
        if self._loading or not self._loaded:
            logger.debug("Erase suppressed until the initial load completes")
            return
        try:
            self.storage.remove(self.storage_key)
        except StorageWriteError as exc:
            logger.warning("Failed to erase persisted markers: %s", exc)

    # Persistence

    @contextmanager
    def _load_phase(self) -> Iterator[None]:
        self._loading = True
        try:
            yield
        finally:
            self._loading = False
            self._loaded = True

    def load(self) -> Optional[List[Marker]]:
        """
        Replace the in-memory collection with the persisted one.

        Returns the loaded markers, or None when nothing usable was stored;
        in that case the collection is left empty. Never writes back.
        """
        with self._load_phase():
            try:
                raw = self.storage.get(self.storage_key)
            except StorageReadError as exc:
                logger.warning("Failed to read persisted markers: %s", exc)
                raw = None
            markers = parse_markers(raw) if raw is not None else None
            self._markers = []
            for marker in markers or []:
                self._replay(marker)
        logger.debug("Loaded %d markers from storage key %s", len(self._markers), self.storage_key)
        return markers

    def _replay(self, marker: Marker) -> None:
        self._markers.append(marker)
        self._last_id = max(self._last_id, marker.id)
        self._persist()

    def save(self, markers: Optional[List[Marker]] = None) -> bool:
        """
        Serialize the whole collection under the storage key.

        Returns False when the write was suppressed (load not finished) or
        failed; the in-memory collection stays authoritative either way.
        """
        if self._loading or not self._loaded:
            logger.debug("Save suppressed until the initial load completes")
            return False
        to_save = self._markers if markers is None else markers
        try:
            payload = json.dumps([m.to_dict() for m in to_save], ensure_ascii=False)
            self.storage.set(self.storage_key, payload)
        except (TypeError, ValueError, StorageWriteError) as exc:
            logger.warning("Failed to persist %d markers: %s", len(to_save), exc)
            return False
        logger.debug("Saved %d markers to storage key %s", len(to_save), self.storage_key)
        return True

    def _persist(self) -> None:
        self.save()
