"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from observer_modes import ObserverMode, get_descriptor  # noqa: E402
from particle_store import ParticleStore  # noqa: E402

BOUNDS = (800.0, 600.0)


class ZeroNoiseRng:
    """Stands in for np.random.Generator where noise must not interfere."""

    def uniform(self, low=0.0, high=1.0, size=None):
        return np.zeros(size)

    def random(self, size=None):
        # Always above any probability threshold, so no random events fire.
        return np.ones(size)


@pytest.fixture
def rng():
    """Seeded generator so every test run sees the same population."""
    return np.random.default_rng(1234)


@pytest.fixture
def zero_rng():
    return ZeroNoiseRng()


@pytest.fixture
def bounds():
    return BOUNDS


@pytest.fixture
def make_store(rng):
    """Builds a store from explicit positions/velocities under a given mode."""
    def _make(positions, velocities=None, mode=ObserverMode.QUANTUM, descriptor=None, bounds=BOUNDS):
        if descriptor is None:
            descriptor = get_descriptor(mode)
        return ParticleStore.from_arrays(
            np.array(positions, dtype=float),
            None if velocities is None else np.array(velocities, dtype=float),
            descriptor=descriptor, bounds=bounds, rng=rng,
        )
    return _make
