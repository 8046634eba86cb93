# particle_store.py

import math
import logging

import numpy as np

import constants
from logger_setup import LOGGER_NAME
from observer_modes import ObserverMode, get_descriptor
from particle import Particle

logger = logging.getLogger(LOGGER_NAME)

# Initial ranges for the mode-specific scalar fields.
TEMPERATURE_RANGE = (50.0, 150.0)
HEAT_CAPACITY_RANGE = (0.5, 1.5)
REST_MASS_RANGE = (1.0, 2.0)
INITIAL_PROBABILITY = 0.5
INITIAL_VARIANCE = 1.0


class ParticleStore:
    """
    Owns the state of every particle as parallel NumPy arrays (Structure of
    Arrays). Row i is the particle with id i.

    Data Contract:
    - Inputs:
        - positions (np.ndarray): (N, 2) float array.
        - velocities (np.ndarray): (N, 2) float array.
        - descriptor (ObserverDescriptor): The active observer.
        - bounds (tuple): The (width, height) of the simulation surface.
        - rng (np.random.Generator): Source for mode field initialisation.
    - Side Effects: None beyond its own arrays.
    - Invariants: All arrays keep length N for the lifetime of the store.
      Ids are 0..N-1 and never reused; a population change builds a new
      store. Every field is allocated regardless of mode so a mode switch
      never reallocates; snapshots expose only the active mode's fields.
    """
    def __init__(self, positions, velocities, descriptor, bounds, rng=None, clusters=None):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.bounds = (float(bounds[0]), float(bounds[1]))
        self.descriptor = descriptor

        self.positions = np.asarray(positions, dtype=float).reshape(-1, 2).copy()
        n = len(self.positions)
        if velocities is None:
            self.velocities = np.zeros((n, 2), dtype=float)
        else:
            self.velocities = np.asarray(velocities, dtype=float).reshape(-1, 2).copy()
        if len(self.velocities) != n:
            raise ValueError(f"Got {n} positions but {len(self.velocities)} velocities.")

        self.ids = np.arange(n, dtype=np.int64)
        if clusters is None:
            self.clusters = np.zeros(n, dtype=np.int64)
        else:
            self.clusters = np.asarray(clusters, dtype=np.int64).copy()

        # Classical. Every particle appends on the same tick, so one shared
        # length describes all trails.
        self.trails = np.zeros((n, constants.TRAIL_CAPACITY, 2), dtype=float)
        self.trail_length = 0

        # Conscious
        self.predicted = self.positions.copy()
        self.prediction_errors = np.zeros(n, dtype=float)

        # Thermodynamic
        self.temperatures = np.zeros(n, dtype=float)
        self.heat_capacities = np.ones(n, dtype=float)

        # Relativistic
        self.proper_times = np.zeros(n, dtype=float)
        self.rest_masses = np.ones(n, dtype=float)
        self.lorentz_factors = np.ones(n, dtype=float)

        # Probabilistic
        self.probabilities = np.full(n, INITIAL_PROBABILITY)
        self.variances = np.full(n, INITIAL_VARIANCE)

        self.init_mode_fields(descriptor.mode)

    @classmethod
    def create(cls, population_size: int, descriptor, rng: np.random.Generator, bounds: tuple):
        """
        Spawns a fresh population.

        Social observers with a cluster count C spread their particles over C
        spawn regions laid out in a near-square grid (cols = ceil(sqrt(C)));
        each particle picks a cluster uniformly and spawns uniformly inside
        that cluster's region. Every other observer spawns uniformly over the
        whole surface. Velocity components start uniform in [-1, 1].
        """
        width, height = float(bounds[0]), float(bounds[1])
        n = population_size

        if descriptor.mode is ObserverMode.SOCIAL and descriptor.cluster_count:
            count = descriptor.cluster_count
            clusters = rng.integers(0, count, n)
            cols = math.ceil(math.sqrt(count))
            rows = math.ceil(count / cols)
            region_width = width / cols
            region_height = height / rows
            origins = np.column_stack((
                (clusters % cols) * region_width,
                (clusters // cols) * region_height,
            ))
            positions = origins + rng.random((n, 2)) * (region_width, region_height)
        else:
            clusters = np.zeros(n, dtype=np.int64)
            positions = rng.random((n, 2)) * (width, height)

        velocities = rng.uniform(-1.0, 1.0, (n, 2))

        store = cls(positions, velocities, descriptor, (width, height), rng=rng, clusters=clusters)
        logger.info(
            f"ParticleStore created for {n} particles under the {descriptor.mode.value} observer "
            f"on a {width:.0f}x{height:.0f} surface."
        )
        return store

    @classmethod
    def from_arrays(cls, positions, velocities=None, descriptor=None, bounds=None, rng=None, clusters=None):
        """Builds a store from explicit state, for hand-built configurations."""
        if descriptor is None:
            descriptor = get_descriptor(ObserverMode.QUANTUM)
        if bounds is None:
            bounds = (constants.WIDTH, constants.HEIGHT)
        return cls(positions, velocities, descriptor, bounds, rng=rng, clusters=clusters)

    def __len__(self):
        return len(self.positions)

    @property
    def num_particles(self):
        return len(self.positions)

    @property
    def mode(self):
        return self.descriptor.mode

    def speeds(self) -> np.ndarray:
        return np.sqrt(np.sum(self.velocities**2, axis=1))

    def init_mode_fields(self, mode):
        """(Re)initialises the scalar fields owned by `mode`, in place."""
        n = self.num_particles
        if mode is ObserverMode.CLASSICAL:
            self.trail_length = 0
        elif mode is ObserverMode.CONSCIOUS:
            self.predicted[:] = self.positions
            self.prediction_errors.fill(0.0)
        elif mode is ObserverMode.THERMODYNAMIC:
            self.temperatures = self.rng.uniform(*TEMPERATURE_RANGE, n)
            self.heat_capacities = self.rng.uniform(*HEAT_CAPACITY_RANGE, n)
        elif mode is ObserverMode.RELATIVISTIC:
            self.proper_times.fill(0.0)
            self.rest_masses = self.rng.uniform(*REST_MASS_RANGE, n)
            self.lorentz_factors.fill(1.0)
        elif mode is ObserverMode.PROBABILISTIC:
            self.probabilities.fill(INITIAL_PROBABILITY)
            self.variances.fill(INITIAL_VARIANCE)

    def apply_observer(self, descriptor):
        """
        Switches the store to another observer without touching positions or
        velocities. Trails are dropped when leaving the classical observer and
        start empty when entering it; entering the social observer assigns
        clusters deterministically as id % cluster_count.
        """
        previous = self.descriptor.mode
        self.descriptor = descriptor

        if previous is ObserverMode.CLASSICAL and descriptor.mode is not ObserverMode.CLASSICAL:
            self.trail_length = 0

        if descriptor.mode is ObserverMode.SOCIAL and descriptor.cluster_count:
            self.clusters = self.ids % descriptor.cluster_count
        elif descriptor.mode is not ObserverMode.SOCIAL:
            self.clusters = np.zeros(self.num_particles, dtype=np.int64)

        self.init_mode_fields(descriptor.mode)

    def scale_velocities(self, factor: float):
        self.velocities *= factor

    def trail(self, p_idx: int) -> np.ndarray:
        """Past positions of one particle, oldest first."""
        return self.trails[p_idx, :self.trail_length]

    def color_of(self, p_idx: int) -> str:
        if self.descriptor.mode is ObserverMode.SOCIAL:
            palette = constants.CLUSTER_COLORS
            return palette[int(self.clusters[p_idx]) % len(palette)]
        return self.descriptor.color

    def particle(self, p_idx: int) -> Particle:
        mode = self.descriptor.mode
        x, y = self.positions[p_idx]
        vx, vy = self.velocities[p_idx]
        fields = {}
        if mode is ObserverMode.CLASSICAL:
            fields['trail'] = [tuple(point) for point in self.trail(p_idx)]
        elif mode is ObserverMode.CONSCIOUS:
            fields['predicted'] = tuple(self.predicted[p_idx])
            fields['prediction_error'] = float(self.prediction_errors[p_idx])
        elif mode is ObserverMode.THERMODYNAMIC:
            fields['temperature'] = float(self.temperatures[p_idx])
            fields['heat_capacity'] = float(self.heat_capacities[p_idx])
        elif mode is ObserverMode.RELATIVISTIC:
            fields['proper_time'] = float(self.proper_times[p_idx])
            fields['rest_mass'] = float(self.rest_masses[p_idx])
            fields['lorentz_factor'] = float(self.lorentz_factors[p_idx])
        elif mode is ObserverMode.PROBABILISTIC:
            fields['probability'] = float(self.probabilities[p_idx])
            fields['variance'] = float(self.variances[p_idx])

        return Particle(
            id=int(self.ids[p_idx]), x=float(x), y=float(y), vx=float(vx), vy=float(vy),
            cluster=int(self.clusters[p_idx]), color=self.color_of(p_idx), **fields,
        )

    def particles(self) -> list:
        """Ordered snapshots of every particle, by id."""
        return [self.particle(i) for i in range(self.num_particles)]
