# telemetry.py

"""
Telemetry Aggregator

Derives the full metrics record from the current particle and connection
state. Every quantity is recomputed from scratch on each call; nothing is
carried over between aggregations except in TelemetryHistory, which only
stores finished records.

Data Contract:
- Inputs: a ParticleStore, the current connection list, the active
  observer descriptor and the computational budget in [0, 100].
- Outputs: TelemetryRecord (immutable).
- Invariants: A record is always produced wholesale, never patched field by
  field, except for `fps`, which the controller merges in with `_replace`.
"""

import math
import logging
from collections import deque, namedtuple

import numba
import numpy as np

import constants
from logger_setup import LOGGER_NAME
from observer_modes import ObserverMode

logger = logging.getLogger(LOGGER_NAME)


class TelemetryRecord(namedtuple('TelemetryRecord', [
        'fps', 'particle_count', 'connection_count', 'entropy', 'temperature',
        'kinetic_energy', 'potential_energy', 'total_energy', 'uncertainty',
        'network_density', 'free_energy', 'spatial_spread', 'avg_velocity',
        'info_deficit', 'computational_cost'])):
    __slots__ = ()

    @classmethod
    def empty(cls):
        return cls(*([0] * len(cls._fields)))


@numba.jit(nopython=True, fastmath=True)
def _pairwise_potential_jit(positions, connection_distance, repulsion_range):
    """
    Direct O(N^2) sum over every unordered pair.
    Pairs within connection_distance attract with -1/(d+1); pairs within
    repulsion_range additionally repel with +10/(d+1).
    """
    total = 0.0
    n = len(positions)
    for i in range(n):
        for j in range(i + 1, n):
            diff_x = positions[i, 0] - positions[j, 0]
            diff_y = positions[i, 1] - positions[j, 1]
            dist = math.sqrt(diff_x * diff_x + diff_y * diff_y)
            if dist < connection_distance:
                total -= 1.0 / (dist + 1.0)
            if dist < repulsion_range:
                total += 10.0 / (dist + 1.0)
    return total


def entropy_grid_size(budget: float) -> int:
    """Resolution g of the g x g occupancy grid used for entropy."""
    return max(constants.MIN_ENTROPY_GRID, int(math.floor(constants.MAX_ENTROPY_GRID * budget / 100)))


def shannon_entropy(positions: np.ndarray, bounds: tuple, budget: float = 100.0) -> float:
    """
    Spatial Shannon entropy in bits.

    The surface is split into g x g cells and H = -sum(p log2 p) is taken
    over occupied cells. A budget below 100 models a poorer observer: the
    result is pulled towards the maximum log2(g^2) by (100 - budget) / 100.
    """
    if len(positions) == 0:
        return 0.0

    g = entropy_grid_size(budget)
    width, height = bounds
    cell_x = np.clip(np.floor(positions[:, 0] / (width / g)).astype(np.int64), 0, g - 1)
    cell_y = np.clip(np.floor(positions[:, 1] / (height / g)).astype(np.int64), 0, g - 1)
    counts = np.bincount(cell_y * g + cell_x, minlength=g * g)

    probabilities = counts[counts > 0] / len(positions)
    entropy = float(-np.sum(probabilities * np.log2(probabilities)))

    max_entropy = math.log2(g * g)
    observer_uncertainty = (100.0 - budget) / 100.0
    return entropy + (max_entropy - entropy) * observer_uncertainty


def uncertainty_product(positions: np.ndarray, velocities: np.ndarray, budget: float = 100.0) -> float:
    """
    Heisenberg-style spread product sigma_x * sigma_v.

    Both variances combine the two axes and are inflated by a measurement
    error of 1 + (100 - budget) / 50. Defined as 0 for fewer than two
    particles.
    """
    if len(positions) < 2:
        return 0.0
    pos_variance = np.mean(np.sum((positions - positions.mean(axis=0))**2, axis=1))
    vel_variance = np.mean(np.sum((velocities - velocities.mean(axis=0))**2, axis=1))
    measurement_error = 1.0 + (100.0 - budget) / 50.0
    return float(math.sqrt(pos_variance * measurement_error) * math.sqrt(vel_variance * measurement_error))


def potential_energy(positions: np.ndarray, connection_distance: float) -> float:
    """Pairwise potential normalised by max(1, N)."""
    n = len(positions)
    if n < 2:
        return 0.0
    total = _pairwise_potential_jit(
        np.ascontiguousarray(positions, dtype=np.float64),
        float(connection_distance), constants.SHORT_RANGE_REPULSION,
    )
    return total / max(1, n)


def spatial_spread(positions: np.ndarray) -> float:
    """Root-mean-square distance of the particles from their centroid."""
    if len(positions) == 0:
        return 0.0
    return float(math.sqrt(np.mean(np.sum((positions - positions.mean(axis=0))**2, axis=1))))


def aggregate(store, connections, descriptor, budget: float = 100.0, fps: float = 0) -> TelemetryRecord:
    """Computes the full telemetry record for the current state."""
    positions = store.positions
    velocities = store.velocities
    n = store.num_particles

    entropy = shannon_entropy(positions, store.bounds, budget)

    speeds_sq = np.sum(velocities**2, axis=1)
    kinetic_energy = float(np.sum(0.5 * speeds_sq)) / max(1, n)
    temperature = math.sqrt(kinetic_energy) * 0.1

    potential = potential_energy(positions, descriptor.connection_distance)

    max_connections = n * (n - 1) / 2
    density = len(connections) / max_connections if max_connections > 0 else 0.0

    g = entropy_grid_size(budget)
    max_entropy = math.log2(g * g)

    return TelemetryRecord(
        fps=fps,
        particle_count=n,
        connection_count=len(connections),
        entropy=entropy,
        temperature=temperature,
        kinetic_energy=kinetic_energy,
        potential_energy=potential,
        total_energy=kinetic_energy + potential,
        uncertainty=uncertainty_product(positions, velocities, budget),
        network_density=density,
        free_energy=potential - temperature * entropy * 0.01,
        spatial_spread=spatial_spread(positions),
        avg_velocity=float(np.mean(np.sqrt(speeds_sq))) if n else 0.0,
        info_deficit=max_entropy - entropy,
        computational_cost=n * n,
    )


# --- Observer-specific metrics ---

def _trail_metrics(store, connections, descriptor):
    if store.trail_length < 2 or store.num_particles == 0:
        return {'mean_trail_length': 0.0}
    trails = store.trails[:, :store.trail_length]
    segments = np.sqrt(np.sum(np.diff(trails, axis=1)**2, axis=2))
    return {'mean_trail_length': float(np.mean(np.sum(segments, axis=1)))}


def _cluster_metrics(store, connections, descriptor):
    # The social renderer only draws links inside a cluster.
    clusters = store.clusters
    internal = sum(1 for edge in connections if clusters[edge.source] == clusters[edge.target])
    return {
        'cluster_count': descriptor.cluster_count or 0,
        'intra_cluster_fraction': internal / len(connections) if connections else 0.0,
    }


def _prediction_metrics(store, connections, descriptor):
    if store.num_particles == 0:
        return {'mean_prediction_error': 0.0, 'max_prediction_error': 0.0}
    return {
        'mean_prediction_error': float(np.mean(store.prediction_errors)),
        'max_prediction_error': float(np.max(store.prediction_errors)),
    }


def _strength_metrics(store, connections, descriptor):
    if not connections:
        return {'mean_connection_strength': 0.0}
    return {'mean_connection_strength': sum(edge.strength for edge in connections) / len(connections)}


def _thermal_metrics(store, connections, descriptor):
    if store.num_particles == 0:
        return {'mean_temperature': 0.0, 'thermal_energy': 0.0}
    # E_thermal = sum(C * T)
    return {
        'mean_temperature': float(np.mean(store.temperatures)),
        'thermal_energy': float(np.sum(store.heat_capacities * store.temperatures)),
    }


def _relativistic_metrics(store, connections, descriptor):
    if store.num_particles == 0:
        return {'mean_lorentz_factor': 1.0, 'max_lorentz_factor': 1.0,
                'mean_proper_time': 0.0, 'relativistic_kinetic_energy': 0.0}
    c = descriptor.speed_of_light or 0.0
    gammas = store.lorentz_factors
    # K = (gamma - 1) m c^2
    return {
        'mean_lorentz_factor': float(np.mean(gammas)),
        'max_lorentz_factor': float(np.max(gammas)),
        'mean_proper_time': float(np.mean(store.proper_times)),
        'relativistic_kinetic_energy': float(np.sum((gammas - 1.0) * store.rest_masses * c * c)),
    }


def _belief_metrics(store, connections, descriptor):
    if store.num_particles == 0:
        return {'mean_probability': 0.0, 'mean_variance': 0.0}
    return {
        'mean_probability': float(np.mean(store.probabilities)),
        'mean_variance': float(np.mean(store.variances)),
    }


OBSERVER_METRICS = {
    ObserverMode.QUANTUM: None,
    ObserverMode.CLASSICAL: _trail_metrics,
    ObserverMode.SOCIAL: _cluster_metrics,
    ObserverMode.CONSCIOUS: _prediction_metrics,
    ObserverMode.AI: _strength_metrics,
    ObserverMode.THERMODYNAMIC: _thermal_metrics,
    ObserverMode.RELATIVISTIC: _relativistic_metrics,
    ObserverMode.PROBABILISTIC: _belief_metrics,
}


def observer_metrics(store, connections, descriptor) -> dict:
    """Metrics that only make sense under the active observer."""
    compute = OBSERVER_METRICS[descriptor.mode]
    if compute is None:
        return {}
    return compute(store, connections, descriptor)


class TelemetryHistory:
    """
    Bounded time series of telemetry records, oldest evicted first.
    Feeds line charts: series('entropy') -> [(frame, value), ...].
    """
    def __init__(self, maxlen: int = constants.HISTORY_LENGTH):
        self._records = deque(maxlen=maxlen)

    def __len__(self):
        return len(self._records)

    def append(self, frame: int, record: TelemetryRecord):
        self._records.append((frame, record))

    def latest(self):
        return self._records[-1] if self._records else None

    def series(self, field: str) -> list:
        if field not in TelemetryRecord._fields:
            raise KeyError(f"Unknown telemetry field: {field}")
        return [(frame, getattr(record, field)) for frame, record in self._records]

    def clear(self):
        self._records.clear()


# (label, field, suffix) in display order.
TELEMETRY_LABELS = [
    ('FPS', 'fps', None),
    ('Particles (N)', 'particle_count', None),
    ('Connections (E)', 'connection_count', None),
    ('Temperature (T)', 'temperature', ''),
    ('Kinetic Energy (K)', 'kinetic_energy', ''),
    ('Potential Energy (U)', 'potential_energy', ''),
    ('Total Energy (E)', 'total_energy', ''),
    ('Shannon Entropy (H)', 'entropy', ' bits'),
    ('Info Deficit (dH)', 'info_deficit', ' bits'),
    ('Free Energy (F)', 'free_energy', ''),
    ('Uncertainty (dx*dp)', 'uncertainty', ''),
    ('Network Density (rho)', 'network_density', ''),
    ('Spatial Spread (sigma_r)', 'spatial_spread', ''),
    ('Avg Velocity (<v>)', 'avg_velocity', ''),
    ('Complexity (C)', 'computational_cost', ' ops'),
]


def format_telemetry(record: TelemetryRecord) -> list:
    """One 'label: value' line per metric, as shown in the telemetry panel."""
    lines = []
    for label, field, suffix in TELEMETRY_LABELS:
        value = getattr(record, field)
        if suffix is None:
            text = f"{int(value)}"
        elif field == 'computational_cost':
            text = f"{int(value):,}{suffix}"
        else:
            text = f"{value:.3f}{suffix}"
        lines.append(f"{label}: {text}")
    return lines
