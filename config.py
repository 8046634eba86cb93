# config.py

"""
Run configuration.

The 'simulation' section of config.json is validated into an immutable
SimulationConfig. The controller holds exactly one instance at a time and
replaces it (via `_replace`) whenever a control call changes a setting.

Data Contract:
- Inputs: a parsed config dict (or a path to config.json).
- Outputs: SimulationConfig namedtuple.
- Invariants: population_size is a non-negative int, observer_type is an
  ObserverMode, enable_telemetry is a bool, width/height are positive.
"""

import json
from collections import namedtuple

import constants
from observer_modes import ConfigurationError, ObserverMode, parse_mode

SimulationConfig = namedtuple(
    'SimulationConfig',
    ['population_size', 'observer_type', 'enable_telemetry', 'width', 'height',
     'evolution_speed', 'computational_budget'],
    defaults=(100, ObserverMode.QUANTUM, True, float(constants.WIDTH),
              float(constants.HEIGHT), 1.0, 100.0),
)


def _require_population(value):
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(
            f"populationSize must be a positive integer, got {value!r}."
        )
    return value


def _require_positive(name, value):
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive number, got {value!r}.")
    return float(value)


def from_dict(section):
    """
    Validates the 'simulation' section of the configuration file.

    Recognised keys: populationSize, observerType, enableTelemetry, width,
    height, evolutionSpeed, computationalBudget. Missing keys fall back to
    the SimulationConfig defaults.
    """
    defaults = SimulationConfig()

    population = _require_population(section.get('populationSize', defaults.population_size))
    mode = parse_mode(section.get('observerType', defaults.observer_type))

    telemetry = section.get('enableTelemetry', defaults.enable_telemetry)
    if not isinstance(telemetry, bool):
        raise ConfigurationError(f"enableTelemetry must be a boolean, got {telemetry!r}.")

    budget = section.get('computationalBudget', defaults.computational_budget)
    if isinstance(budget, bool) or not isinstance(budget, (int, float)) or not 0 <= budget <= 100:
        raise ConfigurationError(
            f"computationalBudget must be a number in [0, 100], got {budget!r}."
        )

    return SimulationConfig(
        population_size=population,
        observer_type=mode,
        enable_telemetry=telemetry,
        width=_require_positive('width', section.get('width', defaults.width)),
        height=_require_positive('height', section.get('height', defaults.height)),
        evolution_speed=_require_positive(
            'evolutionSpeed', section.get('evolutionSpeed', defaults.evolution_speed)),
        computational_budget=float(budget),
    )


def load_config(config_path='config.json'):
    """
    Reads config.json and returns (raw_config, SimulationConfig).

    The raw dict is returned too because the host still needs 'run_id',
    'master_seed' and the 'logging' section.
    """
    with open(config_path, 'r') as f:
        raw = json.load(f)

    if 'simulation' not in raw:
        raise ConfigurationError(f"{config_path} has no 'simulation' section.")
    return raw, from_dict(raw['simulation'])
