# connections.py

import math
import logging
from collections import namedtuple

import numba
import numpy as np

import constants
from logger_setup import LOGGER_NAME
from spatial_grid import build_grid, cell_slot_jit

logger = logging.getLogger(LOGGER_NAME)


class Edge(namedtuple('Edge', ['source', 'target', 'distance', 'strength'])):
    """
    One proximity link. source < target, so every unordered pair has exactly
    one representation. strength falls linearly from 1 at distance 0 to 0 at
    the connection distance.
    """
    __slots__ = ()


@numba.jit(nopython=True, fastmath=True)
def _collect_edges_jit(positions, max_distance, cell_size, origin_x, origin_y,
                       grid_width, grid_height, grid_offsets, grid_indices, grid_cell_keys,
                       max_edges, sources, targets, distances):
    """
    Numba-accelerated proximity search.
    Walks particles in id order and, for each, the 3x3 block of cells around
    it. Only pairs with i < j are tested, so no pair is seen twice. Stops as
    soon as max_edges links are stored and returns the number stored.
    """
    count = 0
    if max_edges <= 0:
        return count

    for i in range(len(positions)):
        cell_x = int(math.floor(positions[i, 0] / cell_size)) - origin_x
        cell_y = int(math.floor(positions[i, 1] / cell_size)) - origin_y

        for dx in range(-1, 2):
            for dy in range(-1, 2):
                neighbor_idx = cell_slot_jit(cell_x + dx, cell_y + dy, grid_width, grid_height, grid_cell_keys)
                if neighbor_idx < 0:
                    continue

                for ptr in range(grid_offsets[neighbor_idx], grid_offsets[neighbor_idx + 1]):
                    j = grid_indices[ptr]
                    if i < j:
                        diff_x = positions[i, 0] - positions[j, 0]
                        diff_y = positions[i, 1] - positions[j, 1]
                        distance = math.sqrt(diff_x * diff_x + diff_y * diff_y)

                        # Coincident particles have no defined direction; skip them.
                        if 0.0 < distance < max_distance:
                            sources[count] = i
                            targets[count] = j
                            distances[count] = distance
                            count += 1
                            if count >= max_edges:
                                return count
    return count


def build_connections(positions: np.ndarray, descriptor, max_edges: int = constants.MAX_CONNECTIONS) -> list:
    """
    Derives the proximity graph for the current positions.

    A grid with cells one connection distance wide guarantees every pair
    closer than that distance sits in adjacent cells, so the 3x3 search plus
    an exact distance check finds all of them in amortised O(N).

    Data Contract:
    - Inputs:
        - positions (np.ndarray): (N, 2) positions; row i is particle id i.
        - descriptor (ObserverDescriptor): Supplies connection_distance.
        - max_edges (int): Cap on the number of links returned.
    - Outputs: list of Edge, in discovery order (particle id order).
    - Invariants: No self pairs, no duplicate pairs, every distance lies in
      (0, connection_distance).
    """
    max_distance = float(descriptor.connection_distance)
    if len(positions) < 2 or max_distance <= 0:
        return []

    positions = np.ascontiguousarray(positions, dtype=np.float64)
    grid = build_grid(positions, max_distance)

    sources = np.empty(max_edges, dtype=np.int64)
    targets = np.empty(max_edges, dtype=np.int64)
    distances = np.empty(max_edges, dtype=np.float64)

    count = _collect_edges_jit(
        positions, max_distance, grid.cell_size, grid.origin_x, grid.origin_y,
        grid.width, grid.height, grid.offsets, grid.indices, grid.cell_keys,
        max_edges, sources, targets, distances,
    )

    if count >= max_edges:
        logger.debug(f"Connection cap of {max_edges} reached; remaining pairs dropped this tick.")

    return [
        Edge(int(sources[k]), int(targets[k]), float(distances[k]),
             1.0 - float(distances[k]) / max_distance)
        for k in range(count)
    ]
