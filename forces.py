# forces.py

import math
import logging

import numba
import numpy as np

import constants
from logger_setup import LOGGER_NAME
from observer_modes import ObserverMode, speed_limit
from spatial_grid import build_grid, cell_slot_jit

logger = logging.getLogger(LOGGER_NAME)

# --- JIT-Compiled Physics Functions ---
# Kept outside any class and operating only on NumPy arrays and scalars, as
# required by Numba's nopython mode.

@numba.jit(nopython=True, fastmath=True)
def _accumulate_repulsion_jit(positions, force_range, strength, origin_x, origin_y,
                              grid_width, grid_height, grid_offsets, grid_indices, grid_cell_keys, forces):
    """
    Short-range repulsion between every pair closer than force_range.
    Each neighbour pushes with magnitude strength / (d + 1) along the line
    joining the two particles; the +1 keeps the force finite as d -> 0.
    The grid cell size equals force_range.
    """
    for i in range(len(positions)):
        p_x = positions[i, 0]
        p_y = positions[i, 1]
        cell_x = int(math.floor(p_x / force_range)) - origin_x
        cell_y = int(math.floor(p_y / force_range)) - origin_y

        fx = 0.0
        fy = 0.0
        for dx in range(-1, 2):
            for dy in range(-1, 2):
                neighbor_idx = cell_slot_jit(cell_x + dx, cell_y + dy, grid_width, grid_height, grid_cell_keys)
                if neighbor_idx < 0:
                    continue
                for ptr in range(grid_offsets[neighbor_idx], grid_offsets[neighbor_idx + 1]):
                    j = grid_indices[ptr]
                    if j == i:
                        continue
                    diff_x = p_x - positions[j, 0]
                    diff_y = p_y - positions[j, 1]
                    dist = math.sqrt(diff_x * diff_x + diff_y * diff_y)
                    if 0.0 < dist < force_range:
                        force = strength / (dist + 1.0)
                        fx += (diff_x / dist) * force
                        fy += (diff_y / dist) * force
        forces[i, 0] = fx
        forces[i, 1] = fy


def clamp_speed(velocities: np.ndarray, max_speed: float):
    """Rescales every velocity faster than max_speed onto max_speed, in place."""
    speeds = np.sqrt(np.sum(velocities**2, axis=1))
    too_fast = speeds > max_speed
    if np.any(too_fast):
        velocities[too_fast] *= (max_speed / speeds[too_fast])[:, np.newaxis]


def apply_forces(store, descriptor, evolution_speed: float, rng: np.random.Generator):
    """
    Updates velocities for one playing tick: repulsion, thermal noise,
    damping, then the observer's speed cap.
    """
    n = store.num_particles
    force_range = descriptor.connection_distance * constants.FORCE_RANGE_FACTOR
    forces = np.zeros((n, 2), dtype=float)

    if force_range > 0:
        grid = build_grid(store.positions, force_range)
        _accumulate_repulsion_jit(
            store.positions, force_range, constants.REPULSION_STRENGTH * evolution_speed,
            grid.origin_x, grid.origin_y, grid.width, grid.height,
            grid.offsets, grid.indices, grid.cell_keys, forces,
        )

    noise_band = constants.THERMAL_NOISE * evolution_speed
    forces += rng.uniform(-noise_band, noise_band, (n, 2))

    store.velocities += forces
    store.velocities *= constants.DAMPING
    clamp_speed(store.velocities, speed_limit(descriptor))


def integrate(store):
    """
    Advances positions by one tick of velocity and applies the elastic walls:
    a particle that crossed an edge has that velocity component reversed and
    is clamped back onto the surface.
    """
    width, height = store.bounds
    store.positions += store.velocities

    for axis, limit in ((0, width), (1, height)):
        coords = store.positions[:, axis]
        crossed = (coords < 0) | (coords > limit)
        store.velocities[crossed, axis] *= -1
        store.positions[:, axis] = np.clip(coords, 0.0, limit)


# --- Observer-specific post-integration updates ---

def _update_trails(store, descriptor, playing, rng):
    """Appends the new positions to every trail, evicting the oldest at capacity."""
    capacity = store.trails.shape[1]
    if store.trail_length < capacity:
        store.trails[:, store.trail_length] = store.positions
        store.trail_length += 1
    else:
        store.trails[:, :-1] = store.trails[:, 1:].copy()
        store.trails[:, -1] = store.positions


def _update_predictions(store, descriptor, playing, rng):
    """
    Scores last tick's prediction against where each particle actually went,
    smooths the error, and predicts the next position by constant velocity.
    While playing, a small share of particles get kicked at random.
    """
    errors = np.sqrt(np.sum((store.predicted - store.positions)**2, axis=1))
    weight = constants.PREDICTION_ERROR_WEIGHT
    store.prediction_errors = errors * weight + store.prediction_errors * (1.0 - weight)
    store.predicted = store.positions + store.velocities

    if playing:
        surprised = rng.random(store.num_particles) < constants.SURPRISE_PROBABILITY
        count = int(np.count_nonzero(surprised))
        if count:
            magnitude = constants.SURPRISE_MAGNITUDE
            store.velocities[surprised] += rng.uniform(-magnitude, magnitude, (count, 2))


def _update_temperatures(store, descriptor, playing, rng):
    speeds = store.speeds()
    temps = constants.TEMPERATURE_RETENTION * store.temperatures + constants.SPEED_HEATING * speeds
    relaxation = constants.AMBIENT_RELAXATION
    store.temperatures = (1.0 - relaxation) * temps + relaxation * constants.AMBIENT_TEMPERATURE


def _update_relativity(store, descriptor, playing, rng):
    """
    Enforces the light-speed limit and advances proper time.

    Speeds are held strictly below c (at LIGHT_SPEED_CLAMP * c) so the
    Lorentz factor stays finite.
    """
    c = descriptor.speed_of_light
    if not c:
        return
    clamp_speed(store.velocities, c * constants.LIGHT_SPEED_CLAMP)
    beta = store.speeds() / c
    store.lorentz_factors = 1.0 / np.sqrt(1.0 - beta**2)
    store.proper_times += 1.0 / store.lorentz_factors


def _update_beliefs(store, descriptor, playing, rng):
    """
    Per-particle confidence update: slow particles are treated as more
    likely. Probabilities are independent scores and are not renormalised.
    """
    speeds = store.speeds()
    likelihood = np.exp(-constants.LIKELIHOOD_DECAY * speeds)
    prior = constants.PRIOR_WEIGHT
    store.probabilities = prior * store.probabilities + (1.0 - prior) * likelihood
    deviation = np.abs(speeds - constants.EXPECTED_SPEED)
    store.variances = prior * store.variances + (1.0 - prior) * deviation


POST_INTEGRATION_UPDATES = {
    ObserverMode.QUANTUM: None,
    ObserverMode.CLASSICAL: _update_trails,
    ObserverMode.SOCIAL: None,
    ObserverMode.CONSCIOUS: _update_predictions,
    ObserverMode.AI: None,
    ObserverMode.THERMODYNAMIC: _update_temperatures,
    ObserverMode.RELATIVISTIC: _update_relativity,
    ObserverMode.PROBABILISTIC: _update_beliefs,
}


def step(store, descriptor, evolution_speed: float, playing: bool, rng: np.random.Generator):
    """
    Runs one simulation step.

    Forces only act while playing; integration always runs, so pausing
    freezes the physics but not the motion already present. The active
    observer's post-integration update runs last.

    Data Contract:
    - Inputs:
        - store (ParticleStore): Modified in place.
        - descriptor (ObserverDescriptor): The active observer.
        - evolution_speed (float): Multiplies force and noise magnitudes.
        - playing (bool): Whether forces are applied this tick.
        - rng (np.random.Generator): Noise and perturbation source.
    - Invariants: After the call every position lies in [0, W] x [0, H].
    """
    if store.num_particles == 0:
        return

    if playing:
        apply_forces(store, descriptor, evolution_speed, rng)

    integrate(store)

    update = POST_INTEGRATION_UPDATES[descriptor.mode]
    if update is not None:
        update(store, descriptor, playing, rng)
