"""Tests for chunk reconciliation and two-phase position moves."""

import pytest

from core.exceptions import DataIntegrityError
from core.models import TEMP_POSITION_OFFSET, Chunk, ChunkReorder, StoredChunkRecord, plan_position_moves
from core.models.chunk import compute_checksum
from services.chunk_synchronizer import ChunkSynchronizer, diff_chunks


def chunks_of(*contents):
    return [Chunk.from_content(f"title {i}", content, i) for i, content in enumerate(contents)]


def stored(*entries):
    """Records from (id, position, content) tuples keyed by position."""
    return {
        position: StoredChunkRecord(id=chunk_id, position=position, checksum=compute_checksum(content))
        for chunk_id, position, content in entries
    }


class TestDiffChunks:
    def test_unchanged_document_is_empty_diff(self):
        diff = diff_chunks(chunks_of("a", "b"), stored((1, 0, "a"), (2, 1, "b")))

        assert diff.is_empty

    def test_new_document_is_all_new(self):
        fresh = chunks_of("a", "b")

        diff = diff_chunks(fresh, {})

        assert diff.new_or_updated == fresh
        assert diff.reordered == []
        assert diff.deleted_ids == []

    def test_insert_at_front_reorders_existing(self):
        diff = diff_chunks(chunks_of("new", "a", "b"), stored((1, 0, "a"), (2, 1, "b")))

        assert [chunk.content for chunk in diff.new_or_updated] == ["new"]
        assert diff.reordered == [ChunkReorder(id=1, position=1), ChunkReorder(id=2, position=2)]
        assert diff.deleted_ids == []

    def test_edited_section_replaces_record(self):
        diff = diff_chunks(chunks_of("a", "b changed"), stored((1, 0, "a"), (2, 1, "b")))

        assert [(chunk.content, chunk.position) for chunk in diff.new_or_updated] == [("b changed", 1)]
        assert diff.reordered == []
        assert diff.deleted_ids == [2]

    def test_removed_section_deletes_and_shifts(self):
        diff = diff_chunks(chunks_of("a", "c"), stored((1, 0, "a"), (2, 1, "b"), (3, 2, "c")))

        assert diff.new_or_updated == []
        assert diff.reordered == [ChunkReorder(id=3, position=1)]
        assert diff.deleted_ids == [2]

    def test_duplicate_checksums_match_in_position_order(self):
        diff = diff_chunks(chunks_of("dup", "dup"), stored((1, 0, "dup"), (2, 1, "x"), (3, 2, "dup")))

        assert diff.new_or_updated == []
        assert diff.reordered == [ChunkReorder(id=3, position=1)]
        assert diff.deleted_ids == [2]

    def test_swapped_sections(self):
        diff = diff_chunks(chunks_of("b", "a"), stored((1, 0, "a"), (2, 1, "b")))

        assert sorted(diff.reordered, key=lambda move: move.id) == [
            ChunkReorder(id=1, position=1),
            ChunkReorder(id=2, position=0),
        ]

    def test_non_contiguous_positions_rejected(self):
        fresh = [Chunk.from_content("", "a", 0), Chunk.from_content("", "b", 2)]

        with pytest.raises(DataIntegrityError):
            diff_chunks(fresh, {})

    def test_repeated_record_id_rejected(self):
        with pytest.raises(DataIntegrityError):
            diff_chunks(chunks_of("a"), stored((1, 0, "a"), (1, 1, "b")))


class TestPlanPositionMoves:
    def test_phase_one_parks_at_unique_temporary_positions(self):
        moves = [ChunkReorder(id=4, position=0), ChunkReorder(id=9, position=1)]

        phase_one, phase_two = plan_position_moves(moves)

        assert [move.position for move in phase_one] == [TEMP_POSITION_OFFSET + 4, TEMP_POSITION_OFFSET + 9]
        assert phase_two == moves

    def test_two_moves_for_one_record_rejected(self):
        with pytest.raises(DataIntegrityError):
            plan_position_moves([ChunkReorder(id=1, position=0), ChunkReorder(id=1, position=2)])


class TestChunkSynchronizer:
    def test_swap_applies_without_collisions(self, store):
        store.seed("guide.md", chunks_of("a", "b", "c"))
        synchronizer = ChunkSynchronizer(store)

        diff = synchronizer.diff_document("guide.md", chunks_of("c", "b", "a"))
        synchronizer.apply_reorders(diff.reordered)

        assert [row["content"] for row in store.rows_for("guide.md")] == ["c", "b", "a"]
        assert [row["position"] for row in store.rows_for("guide.md")] == [0, 1, 2]

    def test_deletes_remove_records(self, store):
        store.seed("guide.md", chunks_of("a", "b"))
        synchronizer = ChunkSynchronizer(store)

        diff = synchronizer.diff_document("guide.md", chunks_of("a"))
        synchronizer.apply_deletes(diff.deleted_ids)

        assert [row["content"] for row in store.rows_for("guide.md")] == ["a"]

    def test_empty_inputs_do_not_touch_store(self, store):
        synchronizer = ChunkSynchronizer(store)

        synchronizer.apply_deletes([])
        synchronizer.apply_reorders([])

        assert store.operations == []
