# controller.py

import time
import logging
from collections import deque

import numpy as np

import constants
import forces
from config import SimulationConfig
from connections import build_connections
from logger_setup import LOGGER_NAME
from observer_modes import ConfigurationError, get_descriptor, parse_mode
from particle_store import ParticleStore
from telemetry import TelemetryHistory, TelemetryRecord, aggregate, format_telemetry, observer_metrics

logger = logging.getLogger(LOGGER_NAME)


class SimulationController:
    """
    Orchestrates one simulation: owns the particle store, the connection
    list and the telemetry snapshot, and exposes the control API.

    Two independent flags govern a run:
    - running: whether ticks are being scheduled at all (start/stop).
    - is_playing: whether forces act during a tick (play/pause). A running
      but paused controller keeps integrating and rendering.

    Every tick runs, in order: frame-rate bookkeeping, force step,
    connection rebuild, render callback, and, every TELEMETRY_INTERVAL ticks,
    telemetry aggregation.

    Data Contract:
    - Inputs:
        - config (SimulationConfig): Initial immutable configuration.
        - rng (np.random.Generator): The master seeded random number generator.
        - scheduler (callable or None): request(callback) -> handle, used to
          schedule the next frame while running. Without one the host calls
          tick() itself.
        - cancel (callable or None): cancel(handle) for a pending request.
        - on_render (callable or None): Called with the controller each tick.
        - clock (callable): Returns the current time in seconds.
    - Invariants: Exactly one tick executes at a time; all particle mutation
      happens inside tick() or a control call.
    """
    def __init__(self, config: SimulationConfig, rng: np.random.Generator = None,
                 scheduler=None, cancel=None, on_render=None, clock=time.perf_counter):
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng()
        self._scheduler = scheduler
        self._cancel = cancel
        self.on_render = on_render
        self._clock = clock

        self.descriptor = get_descriptor(config.observer_type)
        self.is_playing = False
        self.running = False
        self.frame_count = 0
        self.fps = 0
        self._frame_times = deque(maxlen=constants.FPS_WINDOW)
        self._last_time = None
        self._pending = None

        self.connections = []
        self.telemetry = TelemetryRecord.empty()
        self.observer_stats = {}
        self.history = TelemetryHistory()

        self.store = None
        self.create()

    @property
    def bounds(self):
        return (self.config.width, self.config.height)

    # ===== POPULATION =====
    def create(self, population_size: int = None, mode=None):
        """Rebuilds the particle store from scratch."""
        if mode is not None:
            mode = parse_mode(mode)
            self.config = self.config._replace(observer_type=mode)
            self.descriptor = get_descriptor(mode)
        if population_size is not None:
            self._check_population(population_size)
            self.config = self.config._replace(population_size=population_size)

        self.store = ParticleStore.create(
            self.config.population_size, self.descriptor, self.rng, self.bounds
        )
        self.connections = []
        return self.store

    @staticmethod
    def _check_population(size):
        if isinstance(size, bool) or not isinstance(size, (int, np.integer)) or size < 0:
            raise ConfigurationError(f"Population size must be a non-negative integer, got {size!r}.")

    # ===== SCHEDULING =====
    def start(self):
        if self.running:
            return
        self.running = True
        self._last_time = self._clock()
        logger.info("Simulation started.")
        if self._scheduler is not None:
            self._pending = self._scheduler(self._on_frame)

    def stop(self):
        if not self.running:
            return
        self.running = False
        if self._pending is not None and self._cancel is not None:
            self._cancel(self._pending)
        self._pending = None
        logger.info(f"Simulation stopped after {self.frame_count} frames.")

    def _on_frame(self, *_):
        self._pending = None
        if not self.running:
            return
        self.tick()
        if self.running and self._scheduler is not None:
            self._pending = self._scheduler(self._on_frame)

    def _track_frame_rate(self, now):
        if now is None:
            now = self._clock()
        if self._last_time is not None:
            self._frame_times.append((now - self._last_time) * 1000.0)
        self._last_time = now

        if self.frame_count % constants.FPS_INTERVAL == 0 and self._frame_times:
            avg_delta = sum(self._frame_times) / len(self._frame_times)
            if avg_delta > 0:
                self.fps = round(1000.0 / avg_delta)
                self.telemetry = self.telemetry._replace(fps=self.fps)

    def tick(self, now: float = None):
        """
        Runs one frame. `now` is the frame timestamp in seconds; the
        controller's clock is read when it is omitted.
        """
        self._track_frame_rate(now)

        forces.step(self.store, self.descriptor, self.config.evolution_speed, self.is_playing, self.rng)
        self.connections = build_connections(self.store.positions, self.descriptor)

        if self.on_render is not None:
            self.on_render(self)

        if self.config.enable_telemetry and self.frame_count % constants.TELEMETRY_INTERVAL == 0:
            self.update_telemetry()

        self.frame_count += 1

    def update_telemetry(self):
        self.telemetry = aggregate(
            self.store, self.connections, self.descriptor,
            self.config.computational_budget, fps=self.fps,
        )
        self.observer_stats = observer_metrics(self.store, self.connections, self.descriptor)
        self.history.append(self.frame_count, self.telemetry)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Frame={self.frame_count}, " + ", ".join(format_telemetry(self.telemetry)))
        return self.telemetry

    # ===== PUBLIC API =====
    def set_observer(self, mode):
        """
        Switches the observer, keeping positions and velocities. Unknown modes
        raise ConfigurationError.
        """
        mode = parse_mode(mode)
        previous = self.descriptor.mode
        self.config = self.config._replace(observer_type=mode)
        self.descriptor = get_descriptor(mode)
        self.store.apply_observer(self.descriptor)
        logger.info(f"Observer switched from {previous.value} to {mode.value}.")

    def set_population(self, size: int):
        self._check_population(size)
        self.config = self.config._replace(population_size=size)
        self.create()
        logger.info(f"Population set to {size}.")

    def set_speed(self, speed: float):
        if speed < 0:
            raise ValueError(f"Evolution speed must be non-negative, got {speed}.")
        self.config = self.config._replace(evolution_speed=float(speed))

    def set_budget(self, budget: float):
        """Computational budget in [0, 100]; values outside are clamped."""
        self.config = self.config._replace(computational_budget=float(min(100.0, max(0.0, budget))))

    def play(self):
        self.is_playing = True

    def pause(self):
        self.is_playing = False

    def toggle_play(self) -> bool:
        self.is_playing = not self.is_playing
        return self.is_playing

    def add_heat(self, factor: float = constants.HEAT_FACTOR):
        self._scale_heat(factor)

    def remove_heat(self, factor: float = constants.COOL_FACTOR):
        self._scale_heat(factor)

    def _scale_heat(self, factor):
        if factor <= 0:
            raise ValueError(f"Heat factor must be positive, got {factor}.")
        self.store.scale_velocities(factor)

    def get_telemetry(self) -> TelemetryRecord:
        """Last computed snapshot; not recomputed on call."""
        return self.telemetry

    def get_observer_metrics(self) -> dict:
        return self.observer_stats

    def particles(self) -> list:
        return self.store.particles()
