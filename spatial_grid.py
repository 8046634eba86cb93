# spatial_grid.py

import math
import logging
from collections import namedtuple

import numba
import numpy as np

import constants
from logger_setup import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

# Uniform grid of square cells. Cell (cx, cy) has the flat key
# (cx - origin_x) + (cy - origin_y) * width. A dense grid stores one slot per
# key; a sparse grid stores only occupied cells, with cell_keys holding their
# sorted flat keys. Either way the particles of slot s are
# indices[offsets[s]:offsets[s + 1]].
SpatialGrid = namedtuple(
    'SpatialGrid',
    ['cell_size', 'origin_x', 'origin_y', 'width', 'height', 'offsets', 'indices', 'cell_keys'],
)


@numba.jit(nopython=True)
def cell_slot_jit(cell_x, cell_y, width, height, cell_keys):
    """Slot of local cell (cell_x, cell_y), or -1 when it is outside or empty."""
    if not (0 <= cell_x < width and 0 <= cell_y < height):
        return -1
    key = cell_y * width + cell_x
    if len(cell_keys) == 0:
        return key
    slot = np.searchsorted(cell_keys, key)
    if slot < len(cell_keys) and cell_keys[slot] == key:
        return slot
    return -1


@numba.jit(nopython=True)
def _place_particles_jit(particle_cells, offsets):
    """Stable placement pass of the counting sort."""
    indices = np.empty(len(particle_cells), dtype=np.int64)
    cursor = offsets[:-1].copy()
    for i in range(len(particle_cells)):
        cell = particle_cells[i]
        indices[cursor[cell]] = i
        cursor[cell] += 1
    return indices


@numba.jit(nopython=True)
def _gather_neighbors_jit(x, y, cell_size, origin_x, origin_y, width, height,
                          offsets, indices, cell_keys):
    """Collects the particle indices of the 3x3 block of cells around (x, y)."""
    cell_x = int(math.floor(x / cell_size)) - origin_x
    cell_y = int(math.floor(y / cell_size)) - origin_y

    total = 0
    for dx in range(-1, 2):
        for dy in range(-1, 2):
            slot = cell_slot_jit(cell_x + dx, cell_y + dy, width, height, cell_keys)
            if slot >= 0:
                total += offsets[slot + 1] - offsets[slot]

    found = np.empty(total, dtype=np.int64)
    k = 0
    for dx in range(-1, 2):
        for dy in range(-1, 2):
            slot = cell_slot_jit(cell_x + dx, cell_y + dy, width, height, cell_keys)
            if slot < 0:
                continue
            for ptr in range(offsets[slot], offsets[slot + 1]):
                found[k] = indices[ptr]
                k += 1
    return found


def empty_grid(cell_size):
    return SpatialGrid(
        cell_size=float(cell_size), origin_x=0, origin_y=0, width=0, height=0,
        offsets=np.zeros(1, dtype=np.int64), indices=np.empty(0, dtype=np.int64),
        cell_keys=np.empty(0, dtype=np.int64),
    )


def build_grid(positions: np.ndarray, cell_size: float) -> SpatialGrid:
    """
    Buckets particles into a uniform grid of square cells.

    This O(n) operation is a counting sort:
    1. Compute the integer cell of every particle.
    2. Count particles per cell and turn the counts into start offsets.
    3. Place particle indices into one flat array, ordered by cell and, within
       a cell, by particle index.

    The grid only spans the occupied cell range, so positions outside the
    simulation surface (or negative ones) are handled without special cases.
    When that range holds more than SPARSE_GRID_FACTOR cells per particle,
    only the occupied cells are kept, so memory stays O(n) however far apart
    the particles are.

    Data Contract:
    - Inputs:
        - positions (np.ndarray): (N, 2) array of particle positions.
        - cell_size (float): Edge length of a cell. Must be positive.
    - Outputs: SpatialGrid. Rebuilt from scratch on every call.
    """
    if cell_size <= 0:
        raise ValueError(f"cell_size must be positive, got {cell_size}")

    if len(positions) == 0:
        return empty_grid(cell_size)

    cells = np.floor(positions / cell_size).astype(np.int64)
    origin_x, origin_y = cells.min(axis=0)
    local = cells - (origin_x, origin_y)
    width = int(local[:, 0].max()) + 1
    height = int(local[:, 1].max()) + 1
    num_cells = width * height

    particle_cells = local[:, 1] * width + local[:, 0]

    if num_cells > constants.SPARSE_GRID_FACTOR * len(positions):
        cell_keys, particle_cells = np.unique(particle_cells, return_inverse=True)
        particle_cells = particle_cells.reshape(-1).astype(np.int64)
        num_slots = len(cell_keys)
    else:
        cell_keys = np.empty(0, dtype=np.int64)
        num_slots = num_cells

    counts = np.bincount(particle_cells, minlength=num_slots)

    offsets = np.zeros(num_slots + 1, dtype=np.int64)
    offsets[1:] = np.cumsum(counts)

    indices = _place_particles_jit(particle_cells, offsets)

    return SpatialGrid(
        cell_size=float(cell_size), origin_x=int(origin_x), origin_y=int(origin_y),
        width=width, height=height, offsets=offsets, indices=indices,
        cell_keys=cell_keys.astype(np.int64),
    )


def query_neighbors(grid: SpatialGrid, positions: np.ndarray, p_idx: int) -> np.ndarray:
    """
    Returns the candidate neighbours of particle p_idx: every particle in its
    own cell and the 8 adjacent cells, the particle itself included.

    This is a superset of the particles within one cell_size of p_idx;
    callers confirm with an explicit distance check.
    """
    if grid.width == 0:
        return np.empty(0, dtype=np.int64)
    x, y = positions[p_idx]
    return _gather_neighbors_jit(
        x, y, grid.cell_size, grid.origin_x, grid.origin_y,
        grid.width, grid.height, grid.offsets, grid.indices, grid.cell_keys,
    )
