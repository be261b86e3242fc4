"""Chunked voxel world with a flat deterministic terrain generator."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 16
TREE_HEIGHT = 4

Cell = tuple[int, int, int]
ChunkPos = tuple[int, int, int]


class BlockType:
    """Block display names and their storage ids."""

    AIR = "Air"
    GRASS = "Grass"
    DIRT = "Dirt"
    STONE = "Stone"
    OAK_LOG = "Oak Log"
    UNLOADED = "Unloaded"

    NAMES: tuple[str, ...] = (AIR, GRASS, DIRT, STONE, OAK_LOG)

    @classmethod
    def id_of(cls, name: str) -> int:
        try:
            return cls.NAMES.index(name)
        except ValueError as exc:
            raise ValueError(f"Unknown block type '{name}'. Known: {', '.join(cls.NAMES)}") from exc

    @classmethod
    def name_of(cls, block_id: int) -> str:
        return cls.NAMES[int(block_id)]


@dataclass(frozen=True)
class WorldGenerationSettings:
    """World parameters taken from the loaded recording's manifest."""

    seed: int
    world_title: str


def chunk_of(cell: Cell) -> ChunkPos:
    """Return the chunk coordinate that contains ``cell``."""
    return (cell[0] // CHUNK_SIZE, cell[1] // CHUNK_SIZE, cell[2] // CHUNK_SIZE)


@dataclass
class FlatWorldGenerator:
    """Grass at y=-1, dirt for y in [-4, -2], stone below, air above.

    Oak trunks of ``TREE_HEIGHT`` logs grow upwards from each tree cell.
    """

    seed: int
    trees: tuple[Cell, ...] = ()

    def generate(self, chunk: ChunkPos) -> np.ndarray:
        blocks = np.zeros((CHUNK_SIZE, CHUNK_SIZE, CHUNK_SIZE), dtype=np.uint8)
        base_y = chunk[1] * CHUNK_SIZE
        for local_y in range(CHUNK_SIZE):
            y = base_y + local_y
            if y == -1:
                blocks[:, local_y, :] = BlockType.id_of(BlockType.GRASS)
            elif -4 <= y <= -2:
                blocks[:, local_y, :] = BlockType.id_of(BlockType.DIRT)
            elif y < -4:
                blocks[:, local_y, :] = BlockType.id_of(BlockType.STONE)

        log_id = BlockType.id_of(BlockType.OAK_LOG)
        for tree in self.trees:
            for height in range(TREE_HEIGHT):
                cell = (tree[0], tree[1] + height, tree[2])
                if chunk_of(cell) == chunk:
                    blocks[_local(cell)] = log_id
        return blocks


def _local(cell: Cell) -> tuple[int, int, int]:
    return (cell[0] % CHUNK_SIZE, cell[1] % CHUNK_SIZE, cell[2] % CHUNK_SIZE)


@dataclass
class WorldProvider:
    """Block storage; chunks stay ``Unloaded`` until explicitly loaded."""

    generator: FlatWorldGenerator
    _chunks: dict[ChunkPos, np.ndarray] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def load_chunk(self, chunk: ChunkPos) -> bool:
        """Generate and store ``chunk``; return False if it was already loaded."""
        with self._lock:
            if chunk in self._chunks:
                return False
        blocks = self.generator.generate(chunk)
        with self._lock:
            self._chunks.setdefault(chunk, blocks)
        LOGGER.debug("Loaded chunk %s", chunk)
        return True

    def is_loaded(self, cell: Cell) -> bool:
        with self._lock:
            return chunk_of(cell) in self._chunks

    def loaded_chunk_count(self) -> int:
        with self._lock:
            return len(self._chunks)

    def get_block(self, cell: Iterable[int]) -> str:
        """Return the display name of the block at ``cell``."""
        pos = _as_cell(cell)
        with self._lock:
            blocks = self._chunks.get(chunk_of(pos))
            if blocks is None:
                return BlockType.UNLOADED
            return BlockType.name_of(blocks[_local(pos)])

    def set_block(self, cell: Iterable[int], name: str) -> str:
        """Replace the block at ``cell`` and return the previous display name."""
        pos = _as_cell(cell)
        block_id = BlockType.id_of(name)
        with self._lock:
            blocks = self._chunks.get(chunk_of(pos))
            if blocks is None:
                raise LookupError(f"Cannot change block at {pos}: chunk {chunk_of(pos)} is not loaded.")
            previous = BlockType.name_of(blocks[_local(pos)])
            blocks[_local(pos)] = block_id
        return previous


def _as_cell(cell: Iterable[int]) -> Cell:
    x, y, z = (int(v) for v in cell)
    return (x, y, z)


def chunks_around(center: Cell, radius: int) -> list[ChunkPos]:
    """Chunks within ``radius`` of ``center``'s chunk, nearest first."""
    cx, cy, cz = chunk_of(center)
    chunks = [
        (cx + dx, cy + dy, cz + dz)
        for dx in range(-radius, radius + 1)
        for dy in range(-radius, radius + 1)
        for dz in range(-radius, radius + 1)
    ]
    chunks.sort(key=lambda c: (abs(c[0] - cx) + abs(c[1] - cy) + abs(c[2] - cz), c))
    return chunks
