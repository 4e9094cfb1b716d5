"""Exact and near-duplicate detection against session and persisted hashes."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from .errors import InfrastructureFailure
from .stores import ImageHashStore, NullImageHashStore
from .types import (
    DuplicateKind,
    DuplicateOutcome,
    DuplicateRecord,
    ExactHash,
    ImageFingerprint,
    PerceptualHash,
)

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_DISTANCE = 10


class SessionHashCache:
    """Fingerprints seen during one upload batch, keyed by owner.

    Lives as long as the registry (one upload session) and is emptied by
    :meth:`clear`. It is not authoritative across restarts.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Dict[ExactHash, PerceptualHash]] = {}

    def contains_exact(self, owner_id: str, exact_hash: ExactHash) -> bool:
        return exact_hash in self._entries.get(owner_id, {})

    def perceptual_hashes(self, owner_id: str) -> List[PerceptualHash]:
        return list(self._entries.get(owner_id, {}).values())

    def add(self, owner_id: str, fingerprint: ImageFingerprint) -> None:
        self._entries.setdefault(owner_id, {})[fingerprint.exact] = fingerprint.perceptual

    def discard(self, owner_id: str, fingerprint: ImageFingerprint) -> None:
        owned = self._entries.get(owner_id)
        if owned is None:
            return
        owned.pop(fingerprint.exact, None)
        if not owned:
            del self._entries[owner_id]

    def clear_owner(self, owner_id: str) -> None:
        self._entries.pop(owner_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return sum(len(owned) for owned in self._entries.values())


class DuplicateRegistry:
    """Checks a candidate's hashes against the uploader's own history.

    Lookups never persist anything; a candidate that matches nothing is only
    reserved in the session cache so a second copy in the same batch is
    caught. Check-and-reserve runs under one lock, so two uploads cannot both
    miss each other.
    """

    def __init__(
        self,
        store: Optional[ImageHashStore] = None,
        similarity_distance: int = DEFAULT_SIMILARITY_DISTANCE,
        session_cache: Optional[SessionHashCache] = None,
    ) -> None:
        self.store: ImageHashStore = store or NullImageHashStore()
        self.similarity_distance = similarity_distance
        self.session = session_cache if session_cache is not None else SessionHashCache()
        self._lock = asyncio.Lock()

    async def check(
        self, owner_id: str, exact_hash: ExactHash, perceptual_hash: PerceptualHash
    ) -> DuplicateOutcome:
        fingerprint = ImageFingerprint(exact=exact_hash, perceptual=perceptual_hash)
        async with self._lock:
            outcome = await self._lookup(owner_id, fingerprint)
            if not outcome.is_duplicate:
                self.session.add(owner_id, fingerprint)
        logger.debug("Duplicate check for owner %s: %s", owner_id, outcome.kind.value)
        return outcome

    def release(self, owner_id: str, fingerprint: ImageFingerprint) -> None:
        """Forget a reservation made by :meth:`check` for a rejected or cancelled upload."""
        self.session.discard(owner_id, fingerprint)

    async def record_accepted(
        self, owner_id: str, listing_id: str, fingerprint: ImageFingerprint
    ) -> None:
        """Persist an accepted image once its listing is finalized."""
        try:
            await asyncio.to_thread(
                self.store.record_accepted_image_hash,
                owner_id,
                listing_id,
                fingerprint.exact,
                fingerprint.perceptual,
            )
        except Exception as exc:
            raise InfrastructureFailure(f"could not record image hash: {exc}") from exc

    def clear(self) -> None:
        self.session.clear()

    async def _lookup(self, owner_id: str, fingerprint: ImageFingerprint) -> DuplicateOutcome:
        if self.session.contains_exact(owner_id, fingerprint.exact):
            return DuplicateOutcome(kind=DuplicateKind.EXACT, distance=0)

        lookup_failed = False
        try:
            records = await asyncio.to_thread(self.store.get_owner_image_hashes, owner_id)
        except Exception as exc:
            logger.warning("Duplicate lookup for owner %s failed: %s", owner_id, exc)
            records = []
            lookup_failed = True

        for record in records:
            if record.exact_hash == fingerprint.exact:
                return DuplicateOutcome(
                    kind=DuplicateKind.EXACT, matched_record=record, distance=0
                )

        best: Optional[Tuple[int, Optional[DuplicateRecord]]] = None
        for record in records:
            distance = fingerprint.perceptual.distance(record.perceptual_hash)
            if best is None or distance < best[0]:
                best = (distance, record)
        for seen in self.session.perceptual_hashes(owner_id):
            distance = fingerprint.perceptual.distance(seen)
            if best is None or distance < best[0]:
                best = (distance, None)

        if best is not None and best[0] <= self.similarity_distance:
            return DuplicateOutcome(
                kind=DuplicateKind.SIMILAR,
                matched_record=best[1],
                distance=best[0],
                lookup_failed=lookup_failed,
            )
        return DuplicateOutcome(lookup_failed=lookup_failed)
