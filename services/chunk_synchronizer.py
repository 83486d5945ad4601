"""Chunk synchronizer for Mimir - reconciles fresh chunks with stored records."""

from collections import deque
from typing import Deque, Dict, List, Mapping, Set

from loguru import logger

from core.exceptions import DataIntegrityError
from core.models import Chunk, ChunkDiff, ChunkReorder, StoredChunkRecord
from core.types import ChunkId
from interfaces.chunk_store import ChunkStore
from .base_service import BaseService


def diff_chunks(
    fresh: List[Chunk],
    existing: Mapping[int, StoredChunkRecord]
) -> ChunkDiff:
    """Compute the reorder, new-or-updated and delete sets for one document.

    Stored records are bucketed by checksum. Fresh chunks are walked in
    position order and each takes the oldest unmatched record with the same
    checksum; a match at a different position becomes a reorder, no match
    means the chunk needs context and an embedding. Records left unmatched
    are deleted.

    Args:
        fresh: Chunks of the current document text, positions 0..n-1
        existing: Stored records of the same document keyed by position

    Returns:
        Diff describing the minimal store changes

    Raises:
        DataIntegrityError: If positions are not contiguous or a record ID repeats
    """
    ordered_fresh = sorted(fresh, key=lambda chunk: chunk.position)
    positions = [chunk.position for chunk in ordered_fresh]
    if positions != list(range(len(ordered_fresh))):
        raise DataIntegrityError("diff_chunks", "contiguous positions from 0", positions)

    buckets: Dict[str, Deque[StoredChunkRecord]] = {}
    seen_ids: Set[int] = set()
    for position in sorted(existing):
        record = existing[position]
        if record.id in seen_ids:
            raise DataIntegrityError("diff_chunks", "unique record ids", record.id)
        seen_ids.add(record.id)
        buckets.setdefault(record.checksum, deque()).append(record)

    diff = ChunkDiff()
    matched: Set[int] = set()

    for chunk in ordered_fresh:
        bucket = buckets.get(chunk.checksum)
        if bucket:
            record = bucket.popleft()
            matched.add(record.id)
            if record.position != chunk.position:
                diff.reordered.append(ChunkReorder(id=record.id, position=chunk.position))
        else:
            diff.new_or_updated.append(chunk)

    diff.deleted_ids = [
        existing[position].id
        for position in sorted(existing)
        if existing[position].id not in matched
    ]
    return diff


class ChunkSynchronizer(BaseService):
    """Service applying chunk diffs to a store."""

    def __init__(self, chunk_store: ChunkStore):
        super().__init__(chunk_store)

    def diff_document(self, path: str, fresh: List[Chunk]) -> ChunkDiff:
        """Diff fresh chunks against the records stored for `path`."""
        existing = self._db.fetch_existing_chunks(path)
        diff = diff_chunks(fresh, existing)
        logger.debug(
            f"{path}: {len(diff.reordered)} reordered, {len(diff.new_or_updated)} new or updated, "
            f"{len(diff.deleted_ids)} deleted ({len(existing)} stored, {len(fresh)} fresh)"
        )
        return diff

    def apply_deletes(self, ids: List[ChunkId]) -> None:
        if not ids:
            return
        logger.info(f"Deleting {len(ids)} stale chunk{'s' if len(ids) != 1 else ''}")
        self._db.delete_chunks_by_id(list(ids))

    def apply_reorders(self, moves: List[ChunkReorder]) -> None:
        if not moves:
            return
        logger.info(f"Reordering {len(moves)} chunk{'s' if len(moves) != 1 else ''}")
        self._db.update_chunk_positions(list(moves))
