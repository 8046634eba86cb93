# observer_modes.py

"""
Observer Mode Registry

Static table of the eight observer interpretations and their immutable
descriptors. Every engine component receives a descriptor explicitly and
dispatches on its `mode` member; nothing looks modes up by free-form string
except `get_descriptor`, which rejects unknown names.

Data Contract:
- Descriptors are namedtuples and never mutated. Variants (e.g. a different
  speed of light) are produced with `_replace`.
- `connection_distance` defines both the proximity-graph radius and, halved,
  the force interaction radius.
"""

import enum
from collections import namedtuple

import constants


class ConfigurationError(ValueError):
    """Raised for configuration values outside the recognised set."""


class ObserverMode(enum.Enum):
    QUANTUM = 'quantum'
    CLASSICAL = 'classical'
    SOCIAL = 'social'
    CONSCIOUS = 'conscious'
    AI = 'ai'
    THERMODYNAMIC = 'thermodynamic'
    RELATIVISTIC = 'relativistic'
    PROBABILISTIC = 'probabilistic'


ObserverDescriptor = namedtuple(
    'ObserverDescriptor',
    ['mode', 'name', 'color', 'particle_size', 'connection_distance',
     'cluster_count', 'show_ghosts', 'show_trails', 'speed_of_light'],
    defaults=(None, False, False, None),
)


def speed_limit(descriptor):
    """Maximum particle speed allowed under the given observer."""
    if descriptor.speed_of_light is not None:
        return descriptor.speed_of_light * constants.LIGHT_SPEED_CLAMP
    return constants.MAX_SPEED


OBSERVER_DESCRIPTORS = {
    ObserverMode.QUANTUM: ObserverDescriptor(
        ObserverMode.QUANTUM, 'Quantum Observer', '#9b59b6', 3, 100.0,
        show_ghosts=True),
    ObserverMode.CLASSICAL: ObserverDescriptor(
        ObserverMode.CLASSICAL, 'Classical Observer', '#3498db', 5, 150.0,
        show_trails=True),
    ObserverMode.SOCIAL: ObserverDescriptor(
        ObserverMode.SOCIAL, 'Social Observer', '#27ae60', 6, 120.0,
        cluster_count=5),
    ObserverMode.CONSCIOUS: ObserverDescriptor(
        ObserverMode.CONSCIOUS, 'Conscious Observer', '#e67e22', 4, 110.0),
    ObserverMode.AI: ObserverDescriptor(
        ObserverMode.AI, 'AI Observer', '#1abc9c', 3, 90.0),
    ObserverMode.THERMODYNAMIC: ObserverDescriptor(
        ObserverMode.THERMODYNAMIC, 'Thermodynamic Observer', '#e74c3c', 4, 100.0),
    ObserverMode.RELATIVISTIC: ObserverDescriptor(
        ObserverMode.RELATIVISTIC, 'Relativistic Observer', '#f1c40f', 3, 130.0,
        speed_of_light=5.0),
    ObserverMode.PROBABILISTIC: ObserverDescriptor(
        ObserverMode.PROBABILISTIC, 'Probabilistic Observer', '#667eea', 4, 110.0),
}


def parse_mode(value):
    """
    Resolves an ObserverMode from an enum member or its string value.

    Raises ConfigurationError for anything outside the closed mode set.
    """
    if isinstance(value, ObserverMode):
        return value
    try:
        return ObserverMode(value)
    except ValueError:
        known = ', '.join(m.value for m in ObserverMode)
        raise ConfigurationError(
            f"Unknown observer mode {value!r}. Expected one of: {known}."
        ) from None


def get_descriptor(mode):
    return OBSERVER_DESCRIPTORS[parse_mode(mode)]
