"""Mimir Synchronization Models - Diff results and ingestion statistics."""

from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Tuple

from ..exceptions import DataIntegrityError
from ..types import ChunkId, Position
from .chunk import Chunk


@dataclass(frozen=True)
class ChunkReorder:
    """Request to move a stored record to a new position."""

    id: ChunkId
    position: Position


@dataclass
class ChunkDiff:
    """Result of reconciling fresh chunks against stored records.

    Attributes:
        reordered: Matched records whose position changed
        new_or_updated: Fresh chunks with no matching stored record
        deleted_ids: Stored records with no matching fresh chunk
    """

    reordered: List[ChunkReorder] = field(default_factory=list)
    new_or_updated: List[Chunk] = field(default_factory=list)
    deleted_ids: List[ChunkId] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when the stored records already match the document."""
        return not (self.reordered or self.new_or_updated or self.deleted_ids)


@dataclass
class IngestionStats:
    """Counters describing the work done by one ingestion run."""

    processed_documents: int = 0
    skipped_documents: int = 0
    upserted_chunks: int = 0
    reordered_chunks: int = 0
    deleted_chunks: int = 0
    pruned_documents: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Phase-one positions are TEMP_POSITION_OFFSET + record id, above any real position
TEMP_POSITION_OFFSET = 1_000_000


def plan_position_moves(
    moves: List[ChunkReorder]
) -> Tuple[List[ChunkReorder], List[ChunkReorder]]:
    """Split position updates into two collision-free phases.

    Phase one parks every moved record at a temporary position unique to its
    ID; phase two moves each record to its target. Applying the phases in
    order never leaves two records at the same (path, position).

    Raises:
        DataIntegrityError: If two moves target the same record
    """
    ids = [move.id for move in moves]
    if len(set(ids)) != len(ids):
        raise DataIntegrityError("plan_position_moves", "one move per record", ids)

    phase_one = [
        ChunkReorder(id=move.id, position=Position(TEMP_POSITION_OFFSET + move.id))
        for move in moves
    ]
    phase_two = list(moves)
    return phase_one, phase_two
